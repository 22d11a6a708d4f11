"""
Lead Domain Models
"""
from pydantic import BaseModel, Field
from typing import Optional, Any, Dict
from datetime import datetime, timezone
from enum import Enum


class LeadStatus(str, Enum):
    """Pipeline status vocabulary"""
    NEW = "New"
    QUALIFIED = "Qualified"
    NEGOTIATION = "Negotiation"
    CLOSED = "Closed"
    LOST = "Lost"


class CallStatus(str, Enum):
    """Outcome of the operator's last call attempt (local only, never persisted)"""
    CONNECTED = "connected"
    NOT_CONNECTED = "not_connected"


def is_valid_lead_status(status: str) -> bool:
    return status in {s.value for s in LeadStatus}


class Lead(BaseModel):
    """Lead on the operator's worklist"""
    id: str
    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    company: Optional[str] = None
    status: str = LeadStatus.NEW.value  # New, Qualified, Negotiation, Closed, Lost
    notes: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    assigned_to: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or "lead"

    @classmethod
    def from_store_dict(cls, data: Dict[str, Any]) -> "Lead":
        """
        Build a lead from a store record.

        Accepts both snake_case rows (Supabase) and the camelCase documents
        served by the leads REST API (``_id``, ``createdAt``, ``assignedTo``).
        """
        created_at = data.get("created_at") or data.get("createdAt")
        assigned = data.get("assigned_to", data.get("assignedTo"))
        if isinstance(assigned, dict):
            assigned = assigned.get("_id") or assigned.get("id")

        fields = {
            "id": str(data.get("id") or data.get("_id")),
            "name": data.get("name") or "",
            "phone": data.get("phone") or data.get("phone_number") or "",
            "email": data.get("email"),
            "company": data.get("company"),
            "status": data.get("status") or LeadStatus.NEW.value,
            "notes": data.get("notes") or "",
            "assigned_to": str(assigned) if assigned else None,
        }
        if created_at:
            fields["created_at"] = created_at
        return cls(**fields)
