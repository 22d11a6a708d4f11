"""
Scheduled Call Model
A future call appointment tied to a lead, either booked by the operator or
created automatically after a failed call attempt.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, Any, Dict
from datetime import datetime, timezone, timedelta
from enum import Enum


class ScheduledCallStatus(str, Enum):
    """Lifecycle of a scheduled call"""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class CallOrigin(str, Enum):
    """Who created the scheduled call"""
    MANUAL = "manual"
    AUTO = "auto"


# Reserved notes written on auto-generated follow-ups. Stores that predate the
# explicit origin field are read through these.
AUTO_SCHEDULED_NOTE = "Auto-scheduled after call not connected"
AUTO_SCHEDULED_UPDATED_NOTE = f"{AUTO_SCHEDULED_NOTE} (updated)"
AUTO_SCHEDULED_NOTES = frozenset({AUTO_SCHEDULED_NOTE, AUTO_SCHEDULED_UPDATED_NOTE})

# Delay between a failed attempt and its automatic follow-up
AUTO_FOLLOW_UP_DELAY = timedelta(hours=2)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a store timestamp into an aware UTC datetime.

    Returns None for missing or unparseable values instead of raising.
    Naive values are taken to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def origin_from_notes(notes: Optional[str]) -> CallOrigin:
    return CallOrigin.AUTO if (notes or "").strip() in AUTO_SCHEDULED_NOTES else CallOrigin.MANUAL


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduledCall(BaseModel):
    """
    A scheduled call for a lead.

    Only PENDING calls with a usable ``scheduled_time`` take part in
    priority evaluation, sorting, overdue detection and countdowns.
    Completed/cancelled calls are kept for history only.
    """

    # Identity
    id: str = Field(..., description="Store identifier")
    lead_id: str = Field(..., description="Owning lead")

    # Timing; None when the store held an unparseable value
    scheduled_time: Optional[datetime] = None

    status: ScheduledCallStatus = Field(default=ScheduledCallStatus.PENDING)
    origin: CallOrigin = Field(default=CallOrigin.MANUAL)
    notes: str = ""

    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def _lenient_time(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _aware_timestamps(cls, value: Any) -> datetime:
        return parse_timestamp(value) or _utcnow()

    @property
    def is_pending(self) -> bool:
        return self.status == ScheduledCallStatus.PENDING and self.scheduled_time is not None

    @property
    def is_auto_generated(self) -> bool:
        return self.origin == CallOrigin.AUTO

    def ordering_key(self) -> tuple:
        """Deterministic order among pending calls: time, then creation, then id."""
        return (self.scheduled_time, self.created_at, self.id)

    @classmethod
    def from_store_dict(cls, data: dict) -> "ScheduledCall":
        """
        Deserialize a store record.

        Accepts snake_case rows and the camelCase documents of the REST API
        (``_id``, ``leadId``, ``scheduledTime``...). ``origin`` falls back to
        the reserved notes tag when the record does not carry one.
        """
        notes = data.get("notes") or ""
        lead = data.get("lead_id", data.get("leadId"))
        if isinstance(lead, dict):
            lead = lead.get("_id") or lead.get("id")
        created_by = data.get("created_by", data.get("createdBy"))
        if isinstance(created_by, dict):
            created_by = created_by.get("_id") or created_by.get("id")

        status = data.get("status") or ScheduledCallStatus.PENDING.value
        if status not in {s.value for s in ScheduledCallStatus}:
            # Anything we do not recognise is treated as no longer pending
            status = ScheduledCallStatus.CANCELLED.value

        origin = data.get("origin")
        if origin not in {o.value for o in CallOrigin}:
            origin = origin_from_notes(notes).value

        return cls(
            id=str(data.get("id") or data.get("_id")),
            lead_id=str(lead),
            scheduled_time=data.get("scheduled_time", data.get("scheduledTime")),
            status=status,
            origin=origin,
            notes=notes,
            created_by=str(created_by) if created_by else None,
            created_at=data.get("created_at", data.get("createdAt")),
            updated_at=data.get("updated_at", data.get("updatedAt")),
        )

    def __repr__(self) -> str:
        return (
            f"ScheduledCall(id={self.id}, lead={self.lead_id}, "
            f"time={self.scheduled_time.isoformat() if self.scheduled_time else None}, "
            f"status={self.status.value}, origin={self.origin.value})"
        )
