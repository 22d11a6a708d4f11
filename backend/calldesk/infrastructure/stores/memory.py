"""
In-Memory Stores
Process-local lead and scheduled-call stores for development and tests.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from calldesk.domain.interfaces.lead_store import LeadStore
from calldesk.domain.interfaces.scheduled_call_store import ScheduledCallStore
from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import CallOrigin, ScheduledCall, ScheduledCallStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryLeadStore(LeadStore):
    """Leads kept in a dict; completed leads drop off the active list."""

    def __init__(self, leads: Optional[Iterable[Lead]] = None):
        self._leads: Dict[str, Lead] = {lead.id: lead for lead in (leads or [])}
        self._completed: Dict[str, Lead] = {}

    def add(self, lead: Lead) -> Lead:
        self._leads[lead.id] = lead
        return lead

    async def list_leads(self, filters: Optional[Dict[str, Any]] = None) -> List[Lead]:
        leads = list(self._leads.values())
        for field, value in (filters or {}).items():
            leads = [lead for lead in leads if getattr(lead, field, None) == value]
        return leads

    async def update_lead_status(self, lead_id: str, status: str) -> None:
        lead = self._leads.get(lead_id)
        if lead is None:
            raise StoreError(f"Lead not found: {lead_id}", status_code=404)
        self._leads[lead_id] = lead.model_copy(update={"status": status})

    async def complete_call(self, lead_id: str) -> Lead:
        lead = self._leads.pop(lead_id, None)
        if lead is None:
            raise StoreError(f"Lead not found: {lead_id}", status_code=404)
        self._completed[lead_id] = lead
        return lead

    @property
    def completed(self) -> List[Lead]:
        return list(self._completed.values())


class InMemoryScheduledCallStore(ScheduledCallStore):
    """Scheduled calls kept in a dict keyed by id."""

    def __init__(self, calls: Optional[Iterable[ScheduledCall]] = None, clock=_utcnow):
        self._calls: Dict[str, ScheduledCall] = {call.id: call for call in (calls or [])}
        self._clock = clock

    async def list_by_lead(self, lead_id: str) -> List[ScheduledCall]:
        return [call for call in self._calls.values() if call.lead_id == lead_id]

    async def create(
        self,
        lead_id: str,
        scheduled_time: datetime,
        notes: str = "",
        origin: CallOrigin = CallOrigin.MANUAL
    ) -> ScheduledCall:
        now = self._clock()
        call = ScheduledCall(
            id=str(uuid.uuid4()),
            lead_id=lead_id,
            scheduled_time=scheduled_time,
            status=ScheduledCallStatus.PENDING,
            origin=origin,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self._calls[call.id] = call
        return call

    async def update(self, call_id: str, scheduled_time: datetime, notes: str) -> ScheduledCall:
        call = self._calls.get(call_id)
        if call is None:
            raise StoreError(f"Scheduled call not found: {call_id}", status_code=404)
        updated = call.model_copy(update={
            "scheduled_time": scheduled_time,
            "notes": notes,
            "updated_at": self._clock(),
        })
        self._calls[call_id] = updated
        return updated

    async def delete(self, call_id: str) -> None:
        if self._calls.pop(call_id, None) is None:
            raise StoreError(f"Scheduled call not found: {call_id}", status_code=404)
