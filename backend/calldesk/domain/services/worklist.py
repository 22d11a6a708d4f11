"""
Worklist
Holds the operator's leads and their local call state, and turns them into
an ordered, classified snapshot.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from calldesk.domain.interfaces.lead_store import LeadStore
from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.lead import CallStatus, Lead
from calldesk.domain.models.priority import (
    PriorityClassification,
    PriorityStatus,
    WorklistEntry,
    WorklistSnapshot,
)
from calldesk.domain.models.scheduled_call import ScheduledCall
from calldesk.domain.services.countdown import CountdownNotifier, format_countdown, pending_auto_call
from calldesk.domain.services.priority_evaluator import PriorityEvaluator, next_pending_call
from calldesk.domain.services.scheduled_call_cache import ScheduledCallCache
from calldesk.domain.services.scheduled_call_repository import ScheduledCallRepository
from calldesk.domain.services.worklist_sorter import sort_worklist

logger = logging.getLogger(__name__)


SnapshotListener = Callable[[WorklistSnapshot], None]


class LeadRefreshError(Exception):
    """Raised when a user-initiated lead load fails."""

    def __init__(self, message: str = "Could not load leads. Please try again."):
        self.message = message
        super().__init__(self.message)


class UnknownLeadError(KeyError):
    """Raised when an action names a lead that is not on the worklist."""

    def __init__(self, lead_id: str):
        self.lead_id = lead_id
        super().__init__(lead_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Worklist:
    """
    Local worklist state.

    All mutation happens on the event loop that owns the worklist; no locks
    are taken. Once closed, late store responses are dropped.
    """

    def __init__(
        self,
        lead_store: LeadStore,
        repository: ScheduledCallRepository,
        evaluator: Optional[PriorityEvaluator] = None,
        notifier: Optional[CountdownNotifier] = None,
        clock: Callable[[], datetime] = _utcnow,
        lead_filters: Optional[Dict[str, Any]] = None,
        retry_attempts: int = 2,
        retry_delay_seconds: float = 10.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.lead_store = lead_store
        self.repository = repository
        self.evaluator = evaluator or PriorityEvaluator()
        self.notifier = notifier or CountdownNotifier()
        self.clock = clock
        self.lead_filters = lead_filters
        self.retry_attempts = retry_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

        self._leads: Dict[str, Lead] = {}
        self._call_status: Dict[str, CallStatus] = {}
        self._overdue_call_ids: Set[str] = set()
        self._listeners: List[SnapshotListener] = []
        self._snapshot: Optional[WorklistSnapshot] = None
        self._loading = False
        self._closed = False

    @property
    def cache(self) -> ScheduledCallCache:
        return self.repository.cache

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def leads(self) -> List[Lead]:
        return list(self._leads.values())

    @property
    def snapshot(self) -> Optional[WorklistSnapshot]:
        return self._snapshot

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, silent: bool = False) -> bool:
        """
        Fetch the lead list, then every lead's scheduled calls.

        Silent loads retry with a fixed delay and give up quietly; a
        user-initiated load raises LeadRefreshError, or ScheduledCallFetchError
        once the worklist has been rebuilt from the calls that did load.

        Returns:
            True if the lead list was refreshed
        """
        if silent and self._loading:
            logger.debug("Lead refresh already running, skipping")
            return False

        self._loading = True
        try:
            leads = await self._fetch_leads(silent)
        finally:
            self._loading = False

        if leads is None or self._closed:
            return False

        self._leads = {lead.id: lead for lead in leads}
        for lead_id in [lid for lid in self._call_status if lid not in self._leads]:
            del self._call_status[lead_id]
        self.cache.retain_leads(self._leads)

        # Calls are always needed for sorting; a failed fetch still leaves a
        # worklist built from whatever calls are cached
        try:
            await self.repository.refresh_all(list(self._leads), silent=silent)
        finally:
            self.recompute()

        if not silent:
            logger.info(f"Loaded {len(self._leads)} leads")
        return True

    async def _fetch_leads(self, silent: bool) -> Optional[List[Lead]]:
        attempts = 1 + (self.retry_attempts if silent else 0)

        for attempt in range(1, attempts + 1):
            try:
                return await self.lead_store.list_leads(self.lead_filters)
            except StoreError as e:
                if not silent:
                    logger.error(f"Failed to fetch leads: {e}")
                    raise LeadRefreshError() from e
                if attempt < attempts:
                    logger.debug(f"Silent lead refresh failed ({attempt}/{attempts}): {e}")
                    await self._sleep(self.retry_delay_seconds)
                    continue
                logger.warning(f"Silent lead refresh gave up after {attempts} attempts: {e}")
        return None

    async def refresh_scheduled_calls(self, silent: bool = True) -> int:
        """Re-poll every lead's scheduled calls."""
        if not self._leads:
            return 0
        return await self.repository.refresh_all(list(self._leads), silent=silent)

    # ------------------------------------------------------------------
    # Lead state
    # ------------------------------------------------------------------

    def get_lead(self, lead_id: str) -> Lead:
        lead = self._leads.get(lead_id)
        if lead is None:
            raise UnknownLeadError(lead_id)
        return lead

    def has_lead(self, lead_id: str) -> bool:
        return lead_id in self._leads

    def call_status(self, lead_id: str) -> Optional[CallStatus]:
        return self._call_status.get(lead_id)

    def set_call_status(self, lead_id: str, status: CallStatus) -> None:
        self._call_status[lead_id] = status

    def replace_lead(self, lead: Lead) -> None:
        if lead.id in self._leads:
            self._leads[lead.id] = lead

    def remove_lead(self, lead_id: str) -> None:
        """Take a lead off the worklist with everything tracked for it."""
        self._leads.pop(lead_id, None)
        self._call_status.pop(lead_id, None)
        self.cache.drop_lead(lead_id)
        self.notifier.forget(lead_id)

    def scheduled_calls(self, lead_id: str) -> List[ScheduledCall]:
        return self.cache.get(lead_id)

    def pending_auto_call(self, lead_id: str) -> Optional[ScheduledCall]:
        return pending_auto_call(self.cache.get(lead_id))

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def priority_for(self, lead_id: str, now: Optional[datetime] = None) -> PriorityClassification:
        lead = self.get_lead(lead_id)
        return self.evaluator.evaluate(lead, self.cache.get(lead_id), now or self.clock())

    def sorted_leads(self, now: Optional[datetime] = None) -> List[Lead]:
        return sort_worklist(self._leads.values(), self.cache.all(), now or self.clock())

    def detect_newly_overdue(self, now: Optional[datetime] = None) -> List[ScheduledCall]:
        """
        Pending calls that reached their time since the last check.

        Each call is reported once; calls no longer pending leave the set.
        """
        now = now or self.clock()
        newly_overdue: List[ScheduledCall] = []
        still_overdue: Set[str] = set()

        for lead_id in self._leads:
            for call in self.cache.get(lead_id):
                if not call.is_pending or call.scheduled_time > now:
                    continue
                still_overdue.add(call.id)
                if call.id not in self._overdue_call_ids:
                    newly_overdue.append(call)

        self._overdue_call_ids = still_overdue
        for call in newly_overdue:
            logger.info(f"Scheduled call {call.id} for lead {call.lead_id} is now due")
        return newly_overdue

    def needs_priority_refresh(self, now: Optional[datetime] = None) -> bool:
        """True if any lead is due within the soon window or overdue."""
        now = now or self.clock()
        for lead_id in self._leads:
            call = next_pending_call(self.cache.get(lead_id))
            if call is not None and self.evaluator.evaluate(
                self._leads[lead_id], [call], now
            ).status in (PriorityStatus.URGENT, PriorityStatus.SOON):
                return True
        return False

    def tick_countdowns(self, now: Optional[datetime] = None) -> Dict[str, str]:
        """
        Advance countdowns and reminders, and carry the new countdowns into
        the current snapshot without re-sorting it.
        """
        countdowns = self.notifier.tick(self._leads, self.cache.all(), now or self.clock())

        snapshot = self._snapshot
        if snapshot is not None and any(
            entry.countdown != countdowns.get(entry.lead.id) for entry in snapshot.entries
        ):
            self._snapshot = snapshot.model_copy(update={"entries": [
                entry.model_copy(update={"countdown": countdowns.get(entry.lead.id)})
                for entry in snapshot.entries
            ]})
            self._publish(self._snapshot)
        return countdowns

    def recompute(self, now: Optional[datetime] = None) -> WorklistSnapshot:
        """Re-sort and re-classify every lead, then notify listeners."""
        now = now or self.clock()
        calls_by_lead = self.cache.all()

        entries = []
        for lead in sort_worklist(self._leads.values(), calls_by_lead, now):
            calls = calls_by_lead.get(lead.id, [])
            status = self._call_status.get(lead.id)
            entries.append(WorklistEntry(
                lead=lead,
                priority=self.evaluator.evaluate(lead, calls, now),
                countdown=self._countdown(calls, now),
                call_status=status.value if status else None,
                next_call=next_pending_call(calls),
            ))

        self._snapshot = WorklistSnapshot(generated_at=now, entries=entries)
        self._publish(self._snapshot)
        return self._snapshot

    @staticmethod
    def _countdown(calls: List[ScheduledCall], now: datetime) -> Optional[str]:
        call = pending_auto_call(calls)
        return format_countdown(call.scheduled_time - now) if call else None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def _publish(self, snapshot: WorklistSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Worklist listener failed: {e}", exc_info=True)

    def close(self) -> None:
        """Stop accepting store responses."""
        self._closed = True
        self.cache.close()
        self._listeners.clear()
