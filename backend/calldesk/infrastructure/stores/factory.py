"""
Store Factory
"""
import logging
from typing import Tuple

from calldesk.core.config import Settings
from calldesk.domain.interfaces.lead_store import LeadStore
from calldesk.domain.interfaces.scheduled_call_store import ScheduledCallStore
from calldesk.infrastructure.stores.http_store import HttpLeadStore, HttpScheduledCallStore
from calldesk.infrastructure.stores.memory import InMemoryLeadStore, InMemoryScheduledCallStore

logger = logging.getLogger(__name__)


class StoreFactory:
    """Builds the lead and scheduled-call stores for the configured backend"""

    BACKENDS = ("memory", "http", "supabase")

    @classmethod
    def create(cls, settings: Settings) -> Tuple[LeadStore, ScheduledCallStore]:
        backend = settings.store_backend.lower()

        if backend == "memory":
            stores = (InMemoryLeadStore(), InMemoryScheduledCallStore())
        elif backend == "http":
            kwargs = {
                "base_url": settings.leads_api_url,
                "token": settings.leads_api_token,
                "timeout": settings.leads_api_timeout,
            }
            stores = (HttpLeadStore(**kwargs), HttpScheduledCallStore(**kwargs))
        elif backend == "supabase":
            stores = cls._create_supabase(settings)
        else:
            available = ", ".join(cls.BACKENDS)
            raise ValueError(f"Unknown store backend: {backend}. Available: {available}")

        logger.info(f"Using {backend} stores")
        return stores

    @staticmethod
    def _create_supabase(settings: Settings) -> Tuple[LeadStore, ScheduledCallStore]:
        from supabase import create_client

        from calldesk.infrastructure.stores.supabase_store import (
            SupabaseLeadStore,
            SupabaseScheduledCallStore,
        )

        if not settings.supabase_url or not settings.supabase_service_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseLeadStore(client), SupabaseScheduledCallStore(client)
