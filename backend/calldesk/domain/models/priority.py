"""
Priority Models
Computed every evaluation cycle, never persisted
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import ScheduledCall


class PriorityStatus(str, Enum):
    """Priority classification of a lead"""
    URGENT = "urgent"        # Next pending call is due or overdue
    SOON = "soon"            # Due within the next 30 minutes
    SCHEDULED = "scheduled"  # Due later
    NORMAL = "normal"        # Nothing pending


class PriorityClassification(BaseModel):
    """Priority of a lead at a given instant"""
    status: PriorityStatus
    text: str
    minutes: Optional[int] = Field(
        default=None,
        description="Signed minutes to due (negative when overdue); None when nothing is pending"
    )


class WorklistEntry(BaseModel):
    """One row of the ordered worklist"""
    lead: Lead
    priority: PriorityClassification
    countdown: Optional[str] = None
    call_status: Optional[str] = None
    next_call: Optional[ScheduledCall] = None


class WorklistSnapshot(BaseModel):
    """Ordered worklist as of ``generated_at``"""
    generated_at: datetime
    entries: List[WorklistEntry] = Field(default_factory=list)

    @property
    def lead_ids(self) -> List[str]:
        return [entry.lead.id for entry in self.entries]
