"""
Supabase Stores
Lead and scheduled-call stores on the Supabase ``leads`` and
``scheduled_calls`` tables.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from calldesk.domain.interfaces.lead_store import LeadStore
from calldesk.domain.interfaces.scheduled_call_store import ScheduledCallStore
from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import CallOrigin, ScheduledCall, ScheduledCallStatus

logger = logging.getLogger(__name__)


class SupabaseLeadStore(LeadStore):
    """
    Leads table access.

    Active leads are rows with ``call_completed = false``; completing a
    call flips the flag and stamps ``call_completed_at``.
    """

    TABLE = "leads"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def list_leads(self, filters: Optional[Dict[str, Any]] = None) -> List[Lead]:
        try:
            query = self.supabase.table(self.TABLE).select("*").eq("call_completed", False)
            for field, value in (filters or {}).items():
                query = query.eq(field, value)
            response = query.order("created_at", desc=True).execute()
        except Exception as e:
            raise StoreError(f"Failed to list leads: {e}") from e
        return [Lead.from_store_dict(row) for row in response.data or []]

    async def update_lead_status(self, lead_id: str, status: str) -> None:
        try:
            response = self.supabase.table(self.TABLE).update(
                {"status": status}
            ).eq("id", lead_id).execute()
        except Exception as e:
            raise StoreError(f"Failed to update lead {lead_id}: {e}") from e
        if not response.data:
            raise StoreError(f"Lead not found: {lead_id}", status_code=404)

    async def complete_call(self, lead_id: str) -> Lead:
        try:
            response = self.supabase.table(self.TABLE).update({
                "call_completed": True,
                "call_completed_at": datetime.now(timezone.utc).isoformat(),
            }).eq("id", lead_id).execute()
        except Exception as e:
            raise StoreError(f"Failed to complete call for lead {lead_id}: {e}") from e
        if not response.data:
            raise StoreError(f"Lead not found: {lead_id}", status_code=404)
        return Lead.from_store_dict(response.data[0])


class SupabaseScheduledCallStore(ScheduledCallStore):
    """Scheduled-calls table access"""

    TABLE = "scheduled_calls"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def list_by_lead(self, lead_id: str) -> List[ScheduledCall]:
        try:
            response = self.supabase.table(self.TABLE).select("*").eq(
                "lead_id", lead_id
            ).order("scheduled_time").execute()
        except Exception as e:
            raise StoreError(f"Failed to list scheduled calls for lead {lead_id}: {e}") from e
        return [ScheduledCall.from_store_dict(row) for row in response.data or []]

    async def create(
        self,
        lead_id: str,
        scheduled_time: datetime,
        notes: str = "",
        origin: CallOrigin = CallOrigin.MANUAL
    ) -> ScheduledCall:
        row = {
            "lead_id": lead_id,
            "scheduled_time": scheduled_time.isoformat(),
            "status": ScheduledCallStatus.PENDING.value,
            "origin": origin.value,
            "notes": notes,
        }
        try:
            response = self.supabase.table(self.TABLE).insert(row).execute()
        except Exception as e:
            raise StoreError(f"Failed to create scheduled call for lead {lead_id}: {e}") from e
        if not response.data:
            raise StoreError(f"Insert returned no row for lead {lead_id}")
        return ScheduledCall.from_store_dict(response.data[0])

    async def update(self, call_id: str, scheduled_time: datetime, notes: str) -> ScheduledCall:
        try:
            response = self.supabase.table(self.TABLE).update({
                "scheduled_time": scheduled_time.isoformat(),
                "notes": notes,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }).eq("id", call_id).execute()
        except Exception as e:
            raise StoreError(f"Failed to update scheduled call {call_id}: {e}") from e
        if not response.data:
            raise StoreError(f"Scheduled call not found: {call_id}", status_code=404)
        return ScheduledCall.from_store_dict(response.data[0])

    async def delete(self, call_id: str) -> None:
        try:
            self.supabase.table(self.TABLE).delete().eq("id", call_id).execute()
        except Exception as e:
            raise StoreError(f"Failed to delete scheduled call {call_id}: {e}") from e
