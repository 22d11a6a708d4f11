"""
Worklist API Endpoints
Ordered worklist and the operator's call actions.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from calldesk.api.v1.dependencies import get_call_actions, get_worklist_worker
from calldesk.domain.models.lead import Lead
from calldesk.domain.models.priority import PriorityClassification, WorklistSnapshot
from calldesk.domain.models.scheduled_call import ScheduledCall
from calldesk.domain.services.call_actions import (
    CallActionService,
    NotConnectedResult,
    ScheduleValidationError,
    WorklistActionError,
)
from calldesk.domain.services.worklist import UnknownLeadError
from calldesk.workers.worklist_worker import WorklistWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/worklist", tags=["Worklist"])


# =============================================================================
# Request/Response Models
# =============================================================================

class NotConnectedRequest(BaseModel):
    """Outcome of an unanswered call"""
    confirmed: bool = Field(True, description="Operator confirmed a follow-up should be scheduled")


class ScheduleCallRequest(BaseModel):
    """Request to schedule (or move) a lead's call"""
    scheduled_time: Optional[str] = Field(None, description="Call time in ISO format")


class UpdateLeadStatusRequest(BaseModel):
    """Request to change a lead's pipeline status"""
    status: str = Field(..., description="New, Qualified, Negotiation, Closed or Lost")


class CallCompletedResponse(BaseModel):
    lead: Lead
    message: str = "Call completed"


class LeadScheduledCallsResponse(BaseModel):
    """A lead's scheduled calls plus the time to pre-fill the scheduling form with"""
    lead_id: str
    scheduled_calls: List[ScheduledCall]
    suggested_time: Optional[datetime] = None


class DeleteScheduledCallResponse(BaseModel):
    deleted: bool


# =============================================================================
# Helpers
# =============================================================================

def _unknown_lead(e: UnknownLeadError) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Lead not found: {e.lead_id}")


def _action_failed(e: WorklistActionError) -> HTTPException:
    return HTTPException(status_code=502, detail=e.message)


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=WorklistSnapshot)
async def get_worklist(worker: WorklistWorker = Depends(get_worklist_worker)):
    """Ordered worklist, most urgent first."""
    return worker.worklist.snapshot or worker.worklist.recompute()


@router.post("/refresh")
async def refresh_worklist(worker: WorklistWorker = Depends(get_worklist_worker)):
    """Re-poll scheduled calls and re-sort on the next tick."""
    worker.refresh_now()
    return {"status": "refresh scheduled"}


@router.get("/{lead_id}/priority", response_model=PriorityClassification)
async def get_lead_priority(lead_id: str, worker: WorklistWorker = Depends(get_worklist_worker)):
    try:
        return worker.worklist.priority_for(lead_id)
    except UnknownLeadError as e:
        raise _unknown_lead(e)


@router.get("/{lead_id}/scheduled-calls", response_model=LeadScheduledCallsResponse)
async def get_lead_scheduled_calls(
    lead_id: str,
    worker: WorklistWorker = Depends(get_worklist_worker),
    actions: CallActionService = Depends(get_call_actions)
):
    if not worker.worklist.has_lead(lead_id):
        raise HTTPException(status_code=404, detail=f"Lead not found: {lead_id}")
    return LeadScheduledCallsResponse(
        lead_id=lead_id,
        scheduled_calls=worker.worklist.scheduled_calls(lead_id),
        suggested_time=actions.suggested_schedule_time(lead_id)
    )


@router.post("/{lead_id}/connected", response_model=CallCompletedResponse)
async def mark_connected(lead_id: str, actions: CallActionService = Depends(get_call_actions)):
    """Record a connected call; the lead leaves the worklist."""
    try:
        lead = await actions.mark_connected(lead_id)
    except UnknownLeadError as e:
        raise _unknown_lead(e)
    except WorklistActionError as e:
        raise _action_failed(e)
    return CallCompletedResponse(lead=lead)


@router.post("/{lead_id}/not-connected", response_model=NotConnectedResult)
async def mark_not_connected(
    lead_id: str,
    request: NotConnectedRequest,
    actions: CallActionService = Depends(get_call_actions)
):
    """
    Record an unanswered call.

    With confirmation a follow-up is auto-scheduled two hours out. A failed
    follow-up write still returns 200 with ``follow_up_scheduled: false``.
    """
    try:
        return await actions.mark_not_connected(lead_id, confirmed=request.confirmed)
    except UnknownLeadError as e:
        raise _unknown_lead(e)


@router.post("/{lead_id}/scheduled-calls", response_model=ScheduledCall)
async def schedule_call(
    lead_id: str,
    request: ScheduleCallRequest,
    actions: CallActionService = Depends(get_call_actions)
):
    """Schedule a call, or move the lead's pending auto-scheduled follow-up."""
    try:
        return await actions.schedule_or_update(lead_id, request.scheduled_time)
    except ScheduleValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except UnknownLeadError as e:
        raise _unknown_lead(e)
    except WorklistActionError as e:
        raise _action_failed(e)


@router.delete("/{lead_id}/scheduled-calls/{call_id}", response_model=DeleteScheduledCallResponse)
async def delete_scheduled_call(
    lead_id: str,
    call_id: str,
    confirmed: bool = Query(False, description="Operator confirmed the deletion"),
    actions: CallActionService = Depends(get_call_actions)
):
    try:
        deleted = await actions.delete_scheduled_call(lead_id, call_id, confirmed=confirmed)
    except WorklistActionError as e:
        raise _action_failed(e)
    return DeleteScheduledCallResponse(deleted=deleted)


@router.patch("/{lead_id}/status", response_model=Lead)
async def update_lead_status(
    lead_id: str,
    request: UpdateLeadStatusRequest,
    actions: CallActionService = Depends(get_call_actions)
):
    try:
        return await actions.update_lead_status(lead_id, request.status)
    except ScheduleValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except UnknownLeadError as e:
        raise _unknown_lead(e)
    except WorklistActionError as e:
        raise _action_failed(e)
