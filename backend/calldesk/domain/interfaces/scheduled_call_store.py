"""
Scheduled-Call Store Interface
Abstract base class for persisting scheduled-call records
"""
from abc import ABC, abstractmethod
from typing import List
from datetime import datetime

from calldesk.domain.models.scheduled_call import ScheduledCall, CallOrigin


class ScheduledCallStore(ABC):
    """Abstract base class for scheduled-call stores"""

    @abstractmethod
    async def list_by_lead(self, lead_id: str) -> List[ScheduledCall]:
        """All scheduled calls of a lead, any status"""
        pass

    @abstractmethod
    async def create(
        self,
        lead_id: str,
        scheduled_time: datetime,
        notes: str = "",
        origin: CallOrigin = CallOrigin.MANUAL
    ) -> ScheduledCall:
        """
        Create a pending scheduled call.

        Returns:
            The stored record, including its store-assigned id
        """
        pass

    @abstractmethod
    async def update(
        self,
        call_id: str,
        scheduled_time: datetime,
        notes: str
    ) -> ScheduledCall:
        """Move a scheduled call to a new time and replace its notes"""
        pass

    @abstractmethod
    async def delete(self, call_id: str) -> None:
        """Delete a scheduled call"""
        pass

    async def close(self) -> None:
        """Release resources"""
        return None
