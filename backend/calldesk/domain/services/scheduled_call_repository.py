"""
Scheduled Call Repository
Reads and writes scheduled calls through the store and keeps the local
cache in step with every successful operation.
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from calldesk.domain.interfaces.scheduled_call_store import ScheduledCallStore
from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.scheduled_call import CallOrigin, ScheduledCall
from calldesk.domain.services.scheduled_call_cache import ScheduledCallCache

logger = logging.getLogger(__name__)


class ScheduledCallFetchError(Exception):
    """Raised when a user-initiated fetch of scheduled calls fails."""

    def __init__(self, lead_id: str, message: Optional[str] = None):
        self.lead_id = lead_id
        self.message = message or f"Could not load scheduled calls for lead {lead_id}"
        super().__init__(self.message)


class ScheduledCallRepository:
    """
    Scheduled-call client over a ScheduledCallStore.

    Silent (background) fetches retry a bounded number of times with a
    fixed delay and never raise. User-initiated fetches try once and raise
    ScheduledCallFetchError. A silent fetch for a lead that already has a
    fetch in flight is skipped.
    """

    def __init__(
        self,
        store: ScheduledCallStore,
        cache: ScheduledCallCache,
        retry_attempts: int = 2,
        retry_delay_seconds: float = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.store = store
        self.cache = cache
        self.retry_attempts = retry_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

        # lead id -> number of fetches running for it
        self._in_flight: Dict[str, int] = {}

        # Stats
        self._fetches = 0
        self._fetch_failures = 0
        self._retries = 0

    def is_in_flight(self, lead_id: str) -> bool:
        return lead_id in self._in_flight

    async def fetch_for_lead(self, lead_id: str, silent: bool = False) -> Optional[List[ScheduledCall]]:
        """
        Fetch a lead's scheduled calls and reconcile them into the cache.

        Returns:
            The cached calls after reconciliation, or None when a silent
            fetch was skipped or gave up
        """
        if silent and lead_id in self._in_flight:
            logger.debug(f"Fetch already in flight for lead {lead_id}, skipping")
            return None

        self._in_flight[lead_id] = self._in_flight.get(lead_id, 0) + 1
        try:
            return await self._fetch_with_retry(lead_id, silent)
        finally:
            remaining = self._in_flight[lead_id] - 1
            if remaining:
                self._in_flight[lead_id] = remaining
            else:
                del self._in_flight[lead_id]

    async def _fetch_with_retry(self, lead_id: str, silent: bool) -> Optional[List[ScheduledCall]]:
        attempts = 1 + (self.retry_attempts if silent else 0)

        for attempt in range(1, attempts + 1):
            self._fetches += 1
            try:
                calls = await self.store.list_by_lead(lead_id)
            except StoreError as e:
                self._fetch_failures += 1
                if not silent:
                    logger.error(f"Failed to fetch scheduled calls for lead {lead_id}: {e}")
                    raise ScheduledCallFetchError(lead_id) from e

                if attempt < attempts:
                    self._retries += 1
                    logger.debug(
                        f"Silent fetch for lead {lead_id} failed ({attempt}/{attempts}), "
                        f"retrying in {self.retry_delay_seconds}s: {e}"
                    )
                    await self._sleep(self.retry_delay_seconds)
                    continue

                logger.warning(f"Giving up silent fetch for lead {lead_id} after {attempts} attempts: {e}")
                return None

            if self.cache.closed:
                return None
            self.cache.reconcile(lead_id, calls)
            return self.cache.get(lead_id)

        return None

    async def refresh_all(self, lead_ids: Iterable[str], silent: bool = True) -> int:
        """
        Fetch every lead's calls concurrently.

        Returns:
            Number of leads whose fetch completed
        """
        lead_ids = list(lead_ids)
        if not lead_ids:
            return 0

        results = await asyncio.gather(
            *(self.fetch_for_lead(lead_id, silent=silent) for lead_id in lead_ids),
            return_exceptions=not silent
        )

        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            raise errors[0]
        return sum(1 for r in results if r is not None)

    async def create(
        self,
        lead_id: str,
        scheduled_time: datetime,
        notes: str = "",
        origin: CallOrigin = CallOrigin.MANUAL
    ) -> ScheduledCall:
        call = await self.store.create(lead_id, scheduled_time, notes=notes, origin=origin)
        self.cache.apply_local_write(call)
        logger.info(f"Created scheduled call {call.id} for lead {lead_id} at {scheduled_time.isoformat()}")
        return call

    async def update(self, call: ScheduledCall, scheduled_time: datetime, notes: str) -> ScheduledCall:
        updated = await self.store.update(call.id, scheduled_time, notes)
        self.cache.apply_local_write(updated)
        logger.info(f"Moved scheduled call {call.id} to {scheduled_time.isoformat()}")
        return updated

    async def delete(self, lead_id: str, call_id: str) -> None:
        await self.store.delete(call_id)
        self.cache.apply_local_delete(lead_id, call_id)
        logger.info(f"Deleted scheduled call {call_id} for lead {lead_id}")

    def get_stats(self) -> dict:
        """Get repository statistics."""
        return {
            "fetches": self._fetches,
            "fetch_failures": self._fetch_failures,
            "retries": self._retries,
            "in_flight": len(self._in_flight),
            "pending_writes": self.cache.pending_write_count(),
        }
