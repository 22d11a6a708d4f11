"""
Scheduled Call Cache
Local view of every lead's scheduled calls.

Writes made through this process are applied immediately (optimistic) and
queued as pending writes until a fetch from the store shows the store has
caught up. Reconciliation is last-writer-wins on ``updated_at``; a pending
write that the store never confirms expires after ``PENDING_WRITE_TTL``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from calldesk.domain.models.scheduled_call import ScheduledCall

logger = logging.getLogger(__name__)


@dataclass
class _PendingWrite:
    call: ScheduledCall
    written_at: datetime


@dataclass
class _Tombstone:
    lead_id: str
    deleted_at: datetime


class ScheduledCallCache:
    """Per-lead scheduled calls with a pending-write queue."""

    PENDING_WRITE_TTL = timedelta(seconds=60)

    def __init__(self, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._clock = clock
        self._calls: Dict[str, List[ScheduledCall]] = {}
        self._pending_writes: Dict[str, _PendingWrite] = {}
        self._tombstones: Dict[str, _Tombstone] = {}
        self._closed = False
        self._version = 0

    @property
    def version(self) -> int:
        """Bumped on every change, so readers can tell when to re-sort."""
        return self._version

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, lead_id: str) -> List[ScheduledCall]:
        return list(self._calls.get(lead_id, ()))

    def all(self) -> Dict[str, List[ScheduledCall]]:
        return {lead_id: list(calls) for lead_id, calls in self._calls.items()}

    def find(self, lead_id: str, call_id: str) -> Optional[ScheduledCall]:
        for call in self._calls.get(lead_id, ()):
            if call.id == call_id:
                return call
        return None

    def pending_write_count(self) -> int:
        return len(self._pending_writes)

    # ------------------------------------------------------------------
    # Local (optimistic) mutations
    # ------------------------------------------------------------------

    def apply_local_write(self, call: ScheduledCall) -> None:
        """Insert or replace a call written by this process."""
        if self._closed:
            return
        self._pending_writes[call.id] = _PendingWrite(call=call, written_at=self._clock())
        self._tombstones.pop(call.id, None)

        calls = self._calls.setdefault(call.lead_id, [])
        for index, existing in enumerate(calls):
            if existing.id == call.id:
                calls[index] = call
                break
        else:
            calls.append(call)
        self._bump()

    def apply_local_delete(self, lead_id: str, call_id: str) -> None:
        """Remove a call deleted by this process."""
        if self._closed:
            return
        self._pending_writes.pop(call_id, None)
        self._tombstones[call_id] = _Tombstone(lead_id=lead_id, deleted_at=self._clock())

        calls = self._calls.get(lead_id)
        if calls is not None:
            self._calls[lead_id] = [call for call in calls if call.id != call_id]
        self._bump()

    def drop_lead(self, lead_id: str) -> None:
        """Forget a lead that left the worklist."""
        removed = self._calls.pop(lead_id, None)
        for call_id in [cid for cid, pw in self._pending_writes.items() if pw.call.lead_id == lead_id]:
            del self._pending_writes[call_id]
        for call_id in [cid for cid, tomb in self._tombstones.items() if tomb.lead_id == lead_id]:
            del self._tombstones[call_id]
        if removed is not None:
            self._bump()

    def retain_leads(self, lead_ids: Iterable[str]) -> None:
        """Drop every lead not in ``lead_ids``."""
        keep = set(lead_ids)
        for lead_id in [lid for lid in self._calls if lid not in keep]:
            self.drop_lead(lead_id)

    # ------------------------------------------------------------------
    # Reconciliation with the store
    # ------------------------------------------------------------------

    def reconcile(self, lead_id: str, remote_calls: Iterable[ScheduledCall]) -> bool:
        """
        Merge a fresh store listing for one lead.

        Returns:
            True if the lead's calls changed
        """
        if self._closed:
            logger.debug(f"Ignoring scheduled calls for lead {lead_id}: cache closed")
            return False

        now = self._clock()
        merged: Dict[str, ScheduledCall] = {}

        for call in remote_calls:
            tomb = self._tombstones.get(call.id)
            if tomb is not None:
                if now - tomb.deleted_at < self.PENDING_WRITE_TTL:
                    continue
                # The store still has it long after our delete: store wins
                del self._tombstones[call.id]
            merged[call.id] = call

        # Tombstones the store no longer lists are settled
        for call_id in [
            cid for cid, tomb in self._tombstones.items()
            if tomb.lead_id == lead_id and cid not in merged
        ]:
            del self._tombstones[call_id]

        for call_id, pending in list(self._pending_writes.items()):
            if pending.call.lead_id != lead_id:
                continue
            expired = now - pending.written_at >= self.PENDING_WRITE_TTL
            remote = merged.get(call_id)

            if remote is not None and remote.updated_at >= pending.call.updated_at:
                # Store caught up (or someone wrote after us)
                del self._pending_writes[call_id]
            elif expired:
                logger.debug(f"Pending write for scheduled call {call_id} expired, store wins")
                del self._pending_writes[call_id]
            else:
                merged[call_id] = pending.call

        new_calls = list(merged.values())
        if new_calls == self._calls.get(lead_id):
            return False

        self._calls[lead_id] = new_calls
        self._bump()
        return True

    def close(self) -> None:
        """Stop accepting updates; late responses are ignored."""
        self._closed = True

    def clear(self) -> None:
        self._calls.clear()
        self._pending_writes.clear()
        self._tombstones.clear()
        self._bump()

    def _bump(self) -> None:
        self._version += 1
