"""
Lead and scheduled-call store implementations
"""
from calldesk.infrastructure.stores.memory import InMemoryLeadStore, InMemoryScheduledCallStore
from calldesk.infrastructure.stores.http_store import HttpLeadStore, HttpScheduledCallStore
from calldesk.infrastructure.stores.factory import StoreFactory

__all__ = [
    "InMemoryLeadStore",
    "InMemoryScheduledCallStore",
    "HttpLeadStore",
    "HttpScheduledCallStore",
    "StoreFactory",
]
