"""
Worklist Sorter
Orders leads by scheduled-call priority
"""
import functools
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import ScheduledCall
from calldesk.domain.services.priority_evaluator import is_due_soon, next_pending_call


def _by_time(a: ScheduledCall, b: ScheduledCall) -> int:
    if a.scheduled_time < b.scheduled_time:
        return -1
    if a.scheduled_time > b.scheduled_time:
        return 1
    return 0


def compare_next_calls(
    a_call: Optional[ScheduledCall],
    b_call: Optional[ScheduledCall],
    now: datetime
) -> int:
    """
    Pairwise order of two leads given their next pending calls.

    Negative when lead A goes first, positive when B goes first, 0 to keep
    the incoming order.

    1. Overdue calls first, most overdue first
    2. Leads with nothing pending before leads with a future call
    3. Future calls: an auto-generated follow-up beats a manual call only
       when due within 30 minutes, otherwise it sinks below it. Two
       follow-ups compare by the 30-minute window, then by time. Two manual
       calls compare by time.
    """
    a_overdue = a_call is not None and a_call.scheduled_time <= now
    b_overdue = b_call is not None and b_call.scheduled_time <= now

    # Priority 1: overdue
    if a_overdue and b_overdue:
        return _by_time(a_call, b_call)
    if a_overdue:
        return -1
    if b_overdue:
        return 1

    # Priority 2: nothing pending
    if a_call is None and b_call is None:
        return 0
    if a_call is None:
        return -1
    if b_call is None:
        return 1

    # Priority 3: future calls
    a_auto = a_call.is_auto_generated
    b_auto = b_call.is_auto_generated
    a_soon = is_due_soon(a_call, now)
    b_soon = is_due_soon(b_call, now)

    if a_auto and b_auto:
        if a_soon and not b_soon:
            return -1
        if b_soon and not a_soon:
            return 1
        return _by_time(a_call, b_call)

    if a_auto:
        return -1 if a_soon else 1
    if b_auto:
        return 1 if b_soon else -1

    return _by_time(a_call, b_call)


def sort_worklist(
    leads: Iterable[Lead],
    calls_by_lead: Mapping[str, Iterable[ScheduledCall]],
    now: Optional[datetime] = None
) -> List[Lead]:
    """
    Order leads for calling.

    The comparator is applied pairwise through a stable sort; leads that
    compare equal keep their incoming order.
    """
    now = now or datetime.now(timezone.utc)
    leads = list(leads)

    next_calls: Dict[str, Optional[ScheduledCall]] = {
        lead.id: next_pending_call(calls_by_lead.get(lead.id, ()))
        for lead in leads
    }

    def compare(a: Lead, b: Lead) -> int:
        return compare_next_calls(next_calls[a.id], next_calls[b.id], now)

    return sorted(leads, key=functools.cmp_to_key(compare))
