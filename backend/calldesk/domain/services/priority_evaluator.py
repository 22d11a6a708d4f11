"""
Priority Evaluator
Classifies a lead by its next pending scheduled call
"""
import logging
import math
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional

import pytz

from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import ScheduledCall
from calldesk.domain.models.priority import PriorityClassification, PriorityStatus

logger = logging.getLogger(__name__)


# Calls due within this many minutes are "soon"
SOON_WINDOW_MINUTES = 30


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Resolve a zone name, falling back to UTC for unknown zones."""
    if not name:
        return pytz.UTC
    try:
        return pytz.timezone(name)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.warning(f"Unknown display timezone {name!r}, using UTC")
        return pytz.UTC


def next_pending_call(calls: Iterable[ScheduledCall]) -> Optional[ScheduledCall]:
    """Earliest pending call; ties broken by creation time, then id."""
    pending = [call for call in calls if call.is_pending]
    if not pending:
        return None
    return min(pending, key=ScheduledCall.ordering_key)


def minutes_until(scheduled_time: datetime, now: datetime) -> int:
    """Whole minutes from ``now`` to ``scheduled_time``, floored (negative once passed)."""
    return math.floor((scheduled_time - now) / timedelta(minutes=1))


def is_due_soon(call: ScheduledCall, now: datetime) -> bool:
    return minutes_until(call.scheduled_time, now) <= SOON_WINDOW_MINUTES


def format_clock_time(moment: datetime, tz: tzinfo) -> str:
    """Clock time as shown to the operator, e.g. ``3:05:00 PM``."""
    local = moment.astimezone(tz)
    return local.strftime("%I:%M:%S %p").lstrip("0")


class PriorityEvaluator:
    """
    Pure priority classification.

    Rules, in order:
    1. No pending call -> normal
    2. Next pending call at or before now -> urgent
    3. Due within 30 minutes -> soon
    4. Otherwise scheduled; auto-generated follow-ups are flagged low priority
    """

    def __init__(self, display_timezone: Optional[str] = None):
        self._tz = resolve_timezone(display_timezone)

    @property
    def timezone(self) -> tzinfo:
        """Zone used for clock times shown to the operator"""
        return self._tz

    def evaluate(
        self,
        lead: Lead,
        calls: Iterable[ScheduledCall],
        now: Optional[datetime] = None
    ) -> PriorityClassification:
        now = now or datetime.now(timezone.utc)
        calls = list(calls)

        if not calls:
            return PriorityClassification(status=PriorityStatus.NORMAL, text="No scheduled calls")

        next_call = next_pending_call(calls)
        if next_call is None:
            return PriorityClassification(status=PriorityStatus.NORMAL, text="No pending calls")

        call_time = next_call.scheduled_time
        minutes_diff = minutes_until(call_time, now)

        if call_time <= now:
            overdue = abs(minutes_diff)
            return PriorityClassification(
                status=PriorityStatus.URGENT,
                text=f"Overdue: {overdue} min ago",
                minutes=-overdue
            )

        if minutes_diff <= SOON_WINDOW_MINUTES:
            return PriorityClassification(
                status=PriorityStatus.SOON,
                text=f"Due in {minutes_diff} min",
                minutes=minutes_diff
            )

        clock = format_clock_time(call_time, self._tz)
        if next_call.is_auto_generated:
            text = f"Auto-scheduled for {clock} (Low Priority)"
        else:
            text = f"Scheduled for {clock}"

        return PriorityClassification(
            status=PriorityStatus.SCHEDULED,
            text=text,
            minutes=minutes_diff
        )


def evaluate(
    lead: Lead,
    calls: Iterable[ScheduledCall],
    now: Optional[datetime] = None
) -> PriorityClassification:
    """Evaluate with a UTC clock display."""
    return _default_evaluator.evaluate(lead, calls, now)


_default_evaluator = PriorityEvaluator()
