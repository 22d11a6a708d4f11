"""
Lead Store Interface
Abstract base class for the system of record holding leads
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any

from calldesk.domain.models.lead import Lead


class LeadStore(ABC):
    """Abstract base class for lead stores"""

    @abstractmethod
    async def list_leads(self, filters: Optional[Dict[str, Any]] = None) -> List[Lead]:
        """
        List leads on the active worklist.

        Args:
            filters: Optional store-specific filter (e.g. {"assigned_to": "u1"})
        """
        pass

    @abstractmethod
    async def update_lead_status(self, lead_id: str, status: str) -> None:
        """Persist a new pipeline status for a lead"""
        pass

    @abstractmethod
    async def complete_call(self, lead_id: str) -> Lead:
        """Mark the lead's call as completed, removing it from the active worklist"""
        pass

    async def close(self) -> None:
        """Release resources"""
        return None
