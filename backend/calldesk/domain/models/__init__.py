"""Domain models"""

from .lead import (
    Lead,
    LeadStatus,
    CallStatus,
)

from .scheduled_call import (
    ScheduledCall,
    ScheduledCallStatus,
    CallOrigin,
    AUTO_SCHEDULED_NOTE,
    AUTO_SCHEDULED_UPDATED_NOTE,
    AUTO_FOLLOW_UP_DELAY,
)

from .priority import (
    PriorityStatus,
    PriorityClassification,
    WorklistEntry,
    WorklistSnapshot,
)

__all__ = [
    # Leads
    "Lead",
    "LeadStatus",
    "CallStatus",
    # Scheduled calls
    "ScheduledCall",
    "ScheduledCallStatus",
    "CallOrigin",
    "AUTO_SCHEDULED_NOTE",
    "AUTO_SCHEDULED_UPDATED_NOTE",
    "AUTO_FOLLOW_UP_DELAY",
    # Priority
    "PriorityStatus",
    "PriorityClassification",
    "WorklistEntry",
    "WorklistSnapshot",
]
