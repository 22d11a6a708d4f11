"""
Test helpers: fixed instants, fake clock/sleep and record builders
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import (
    AUTO_SCHEDULED_NOTE,
    CallOrigin,
    ScheduledCall,
    ScheduledCallStatus,
)


T0 = datetime(2026, 3, 2, 14, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock"""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeSleep:
    """Records requested delays instead of sleeping"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_lead(lead_id: str, name: str = "", **kwargs) -> Lead:
    return Lead(id=lead_id, name=name or f"Lead {lead_id}", phone="+15551234567", **kwargs)


def make_call(
    call_id: str,
    lead_id: str,
    scheduled_time: Optional[datetime],
    auto: bool = False,
    status: ScheduledCallStatus = ScheduledCallStatus.PENDING,
    created_at: datetime = T0 - timedelta(days=1),
    updated_at: Optional[datetime] = None,
) -> ScheduledCall:
    return ScheduledCall(
        id=call_id,
        lead_id=lead_id,
        scheduled_time=scheduled_time,
        status=status,
        origin=CallOrigin.AUTO if auto else CallOrigin.MANUAL,
        notes=AUTO_SCHEDULED_NOTE if auto else "",
        created_at=created_at,
        updated_at=updated_at or created_at,
    )
