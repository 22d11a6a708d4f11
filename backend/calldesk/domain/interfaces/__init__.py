"""Interfaces of the external collaborators the worklist core consumes"""

from .store_errors import StoreError
from .lead_store import LeadStore
from .scheduled_call_store import ScheduledCallStore
from .notification_sink import NotificationSink

__all__ = [
    "StoreError",
    "LeadStore",
    "ScheduledCallStore",
    "NotificationSink",
]
