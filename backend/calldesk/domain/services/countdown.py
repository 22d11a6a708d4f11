"""
Countdown & Reminder Emitter
Per-lead countdowns to auto-generated follow-ups, plus a one-shot reminder
when a follow-up comes within the reminder window.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Mapping, Optional, Set

from calldesk.domain.interfaces.notification_sink import NotificationSink
from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import ScheduledCall

logger = logging.getLogger(__name__)


REMINDER_WINDOW = timedelta(minutes=15)
REMINDER_TITLE = "Call Reminder"
OVERDUE_LABEL = "Overdue"


def format_countdown(remaining: timedelta) -> str:
    """``{hours}h {minutes}m`` while time remains, ``Overdue`` after."""
    if remaining <= timedelta(0):
        return OVERDUE_LABEL
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def pending_auto_call(calls: Iterable[ScheduledCall]) -> Optional[ScheduledCall]:
    """The lead's pending auto-generated follow-up (earliest if several)."""
    candidates = [call for call in calls if call.is_pending and call.is_auto_generated]
    if not candidates:
        return None
    return min(candidates, key=ScheduledCall.ordering_key)


@dataclass(frozen=True)
class ReminderLatch:
    """Records which follow-up a lead was already reminded about."""
    call_id: str
    scheduled_time: datetime


class CountdownNotifier:
    """
    Computes countdowns and emits latched reminders.

    A reminder fires at most once per follow-up: the latch is keyed by lead
    and re-arms only when the lead's follow-up changes (new call, or the
    call was moved to another time). Sink failures are logged and
    swallowed.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        title: str = REMINDER_TITLE,
        reminder_window: timedelta = REMINDER_WINDOW
    ):
        self.sink = sink
        self.title = title
        self.reminder_window = reminder_window

        self.permission_granted = False
        self._countdowns: Dict[str, str] = {}
        self._latches: Dict[str, ReminderLatch] = {}
        self._deliveries: Set[asyncio.Task] = set()

        # Stats
        self._reminders_sent = 0
        self._reminders_failed = 0

    @property
    def countdowns(self) -> Dict[str, str]:
        return dict(self._countdowns)

    async def request_permission(self) -> bool:
        """Ask the sink for permission once; a missing or failing sink means no alerts."""
        if self.sink is None:
            self.permission_granted = False
            return False
        try:
            self.permission_granted = bool(await self.sink.request_permission())
        except Exception as e:
            logger.warning(f"Notification permission request failed ({self.sink.name}): {e}")
            self.permission_granted = False
        return self.permission_granted

    def is_notified(self, lead_id: str, call: ScheduledCall) -> bool:
        latch = self._latches.get(lead_id)
        return (
            latch is not None
            and latch.call_id == call.id
            and latch.scheduled_time == call.scheduled_time
        )

    def tick(
        self,
        leads_by_id: Mapping[str, Lead],
        calls_by_lead: Mapping[str, Iterable[ScheduledCall]],
        now: datetime
    ) -> Dict[str, str]:
        """
        Recompute every countdown and fire due reminders.

        Returns:
            lead id -> countdown string, for leads with a pending follow-up
        """
        countdowns: Dict[str, str] = {}
        active: Set[str] = set()

        for lead_id, calls in calls_by_lead.items():
            call = pending_auto_call(calls)
            if call is None:
                continue
            active.add(lead_id)

            remaining = call.scheduled_time - now
            countdowns[lead_id] = format_countdown(remaining)

            if timedelta(0) < remaining <= self.reminder_window and not self.is_notified(lead_id, call):
                lead = leads_by_id.get(lead_id)
                if lead is None:
                    continue
                self._latches[lead_id] = ReminderLatch(call_id=call.id, scheduled_time=call.scheduled_time)
                self._dispatch(lead)

        # Follow-ups that went away release their latch
        for lead_id in [lid for lid in self._latches if lid not in active]:
            del self._latches[lead_id]

        self._countdowns = countdowns
        return dict(countdowns)

    def forget(self, lead_id: str) -> None:
        self._latches.pop(lead_id, None)
        self._countdowns.pop(lead_id, None)

    def _dispatch(self, lead: Lead) -> None:
        if self.sink is None or not self.permission_granted:
            logger.debug(f"Reminder for lead {lead.id} not delivered: notifications unavailable")
            return
        body = f"Time to call {lead.display_name} - scheduled call is due soon!"
        task = asyncio.get_running_loop().create_task(self._deliver(lead.id, body))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    async def _deliver(self, lead_id: str, body: str) -> None:
        try:
            await self.sink.show(self.title, body)
            self._reminders_sent += 1
            logger.info(f"Reminder sent for lead {lead_id} via {self.sink.name}")
        except Exception as e:
            self._reminders_failed += 1
            logger.warning(f"Failed to show reminder for lead {lead_id}: {e}")

    async def wait_for_deliveries(self) -> None:
        """Wait for reminders already dispatched."""
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._deliveries):
            task.cancel()
        await self.wait_for_deliveries()

    def get_stats(self) -> dict:
        return {
            "permission_granted": self.permission_granted,
            "reminders_sent": self._reminders_sent,
            "reminders_failed": self._reminders_failed,
            "latched_leads": len(self._latches),
        }
