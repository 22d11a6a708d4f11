"""
Call Actions
Operator actions on the worklist: call outcomes, scheduling, deletion and
lead status changes.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Set, Union

from pydantic import BaseModel

from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.lead import CallStatus, Lead, LeadStatus, is_valid_lead_status
from calldesk.domain.models.scheduled_call import (
    AUTO_FOLLOW_UP_DELAY,
    AUTO_SCHEDULED_NOTE,
    AUTO_SCHEDULED_UPDATED_NOTE,
    CallOrigin,
    ScheduledCall,
    parse_timestamp,
)
from calldesk.domain.services.scheduled_call_repository import ScheduledCallFetchError
from calldesk.domain.services.worklist import Worklist

logger = logging.getLogger(__name__)


class ScheduleValidationError(ValueError):
    """Raised before any store call when a time or lead status is unusable."""

    def __init__(self, message: str = "Please select a time for the scheduled call"):
        self.message = message
        super().__init__(self.message)


class WorklistActionError(Exception):
    """Raised when a user-initiated action could not be completed."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class NotConnectedResult(BaseModel):
    """Outcome of marking a call as not connected"""
    lead_id: str
    call_status: CallStatus = CallStatus.NOT_CONNECTED
    follow_up_scheduled: bool = False
    scheduled_call: Optional[ScheduledCall] = None
    message: str = ""


NOT_CONNECTED_FAILURE_MESSAGE = (
    "Call marked as not connected, but there was an issue scheduling the follow-up call. "
    "You can manually schedule it later."
)


class CallActionService:
    """
    Imperative actions exposed to the presentation layer.

    Local state is updated first; the stores are written afterwards and a
    failed write never rolls back the local call status.
    """

    def __init__(
        self,
        worklist: Worklist,
        follow_up_delay: timedelta = AUTO_FOLLOW_UP_DELAY
    ):
        self.worklist = worklist
        self.follow_up_delay = follow_up_delay

        self._scheduling: Set[str] = set()
        self._updating_status: Set[str] = set()

    @property
    def repository(self):
        return self.worklist.repository

    # ------------------------------------------------------------------
    # Call outcomes
    # ------------------------------------------------------------------

    async def mark_connected(self, lead_id: str) -> Lead:
        """
        Record a connected call and take the lead off the worklist.

        Raises:
            WorklistActionError: If the lead store rejects the completion
        """
        self.worklist.get_lead(lead_id)
        self.worklist.set_call_status(lead_id, CallStatus.CONNECTED)

        try:
            lead = await self.worklist.lead_store.complete_call(lead_id)
        except StoreError as e:
            logger.error(f"Failed to complete call for lead {lead_id}: {e}")
            raise WorklistActionError("Failed to complete call. Please try again.") from e

        self.worklist.remove_lead(lead_id)
        self.worklist.recompute()
        logger.info(f"Call completed for lead {lead_id}")
        return lead

    async def mark_not_connected(self, lead_id: str, confirmed: bool = True) -> NotConnectedResult:
        """
        Record a failed call attempt and, if the operator confirmed,
        auto-schedule a follow-up two hours out.

        A pending follow-up is moved rather than duplicated. The result is
        merged into the cache right away so the worklist re-sorts before any
        re-fetch. If the store write fails the
        not-connected status is kept and the result says so.
        """
        self.worklist.get_lead(lead_id)
        self.worklist.set_call_status(lead_id, CallStatus.NOT_CONNECTED)

        if not confirmed:
            self.worklist.recompute()
            return NotConnectedResult(lead_id=lead_id, message="Call marked as not connected.")

        scheduled_time = self.worklist.clock() + self.follow_up_delay
        existing = self.worklist.pending_auto_call(lead_id)
        try:
            if existing is not None:
                # One pending follow-up per lead: push the existing one out
                call = await self.repository.update(existing, scheduled_time, AUTO_SCHEDULED_NOTE)
            else:
                call = await self.repository.create(
                    lead_id,
                    scheduled_time,
                    notes=AUTO_SCHEDULED_NOTE,
                    origin=CallOrigin.AUTO
                )
        except StoreError as e:
            logger.error(f"Failed to auto-schedule follow-up for lead {lead_id}: {e}")
            self.worklist.recompute()
            return NotConnectedResult(lead_id=lead_id, message=NOT_CONNECTED_FAILURE_MESSAGE)

        self.worklist.recompute()

        # Consistency re-read; the optimistic record stays if this fails
        await self.repository.fetch_for_lead(lead_id, silent=True)
        self.worklist.recompute()

        local_time = call.scheduled_time.astimezone(self.worklist.evaluator.timezone)
        message = (
            f"Call not connected! Follow-up call automatically scheduled for "
            f"{local_time.strftime('%Y-%m-%d %I:%M %p')}. "
            f"You'll be notified 15 minutes before the scheduled time."
        )
        return NotConnectedResult(
            lead_id=lead_id,
            follow_up_scheduled=True,
            scheduled_call=call,
            message=message
        )

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def suggested_schedule_time(self, lead_id: str) -> Optional[datetime]:
        """Time of the lead's pending follow-up, for pre-filling the scheduling form."""
        call = self.worklist.pending_auto_call(lead_id)
        return call.scheduled_time if call else None

    def _parse_schedule_time(self, value: Union[datetime, str, None]) -> datetime:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ScheduleValidationError()

        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                raise ScheduleValidationError(f"Invalid scheduled time: {value!r}")
        else:
            parsed = value

        if parsed.tzinfo is None:
            # Operator-entered wall-clock time
            parsed = self.worklist.evaluator.timezone.localize(parsed)
        return parse_timestamp(parsed)

    async def schedule_or_update(
        self,
        lead_id: str,
        scheduled_time: Union[datetime, str, None]
    ) -> ScheduledCall:
        """
        Schedule a call for a lead.

        A pending auto-generated follow-up is moved rather than duplicated,
        so a lead never has two. Otherwise a manual call is created.

        Raises:
            ScheduleValidationError: No usable time (no store call is made)
            WorklistActionError: The store write failed
        """
        when = self._parse_schedule_time(scheduled_time)
        self.worklist.get_lead(lead_id)

        if lead_id in self._scheduling:
            raise WorklistActionError("A call is already being scheduled for this lead.")
        self._scheduling.add(lead_id)

        try:
            existing = self.worklist.pending_auto_call(lead_id)
            try:
                if existing is not None:
                    call = await self.repository.update(existing, when, AUTO_SCHEDULED_UPDATED_NOTE)
                else:
                    call = await self.repository.create(lead_id, when, notes="", origin=CallOrigin.MANUAL)
            except StoreError as e:
                logger.error(f"Failed to schedule call for lead {lead_id}: {e}")
                raise WorklistActionError("Failed to schedule call. Please try again.") from e

            try:
                await self.repository.fetch_for_lead(lead_id)
            except ScheduledCallFetchError as e:
                logger.warning(f"Scheduled call saved but re-read failed: {e.message}")

            self.worklist.recompute()
            return call
        finally:
            self._scheduling.discard(lead_id)

    async def delete_scheduled_call(self, lead_id: str, call_id: str, confirmed: bool = True) -> bool:
        """
        Delete a scheduled call after operator confirmation.

        Returns:
            True if deleted, False if the operator declined
        """
        if not confirmed:
            return False

        try:
            await self.repository.delete(lead_id, call_id)
        except StoreError as e:
            logger.error(f"Failed to delete scheduled call {call_id}: {e}")
            raise WorklistActionError("Failed to delete scheduled call. Please try again.") from e

        self.worklist.recompute()
        return True

    # ------------------------------------------------------------------
    # Lead status
    # ------------------------------------------------------------------

    async def update_lead_status(self, lead_id: str, status: str) -> Lead:
        """Change a lead's pipeline status."""
        if not is_valid_lead_status(status):
            allowed = ", ".join(s.value for s in LeadStatus)
            raise ScheduleValidationError(f"Invalid lead status {status!r}. Allowed: {allowed}")

        lead = self.worklist.get_lead(lead_id)
        if lead_id in self._updating_status:
            raise WorklistActionError("A status update is already in progress for this lead.")
        self._updating_status.add(lead_id)

        try:
            await self.worklist.lead_store.update_lead_status(lead_id, status)
        except StoreError as e:
            logger.error(f"Failed to update lead status for {lead_id}: {e}")
            raise WorklistActionError("Failed to update lead status. Please try again.") from e
        finally:
            self._updating_status.discard(lead_id)

        updated = lead.model_copy(update={"status": status})
        self.worklist.replace_lead(updated)
        self.worklist.recompute()
        logger.info(f"Lead {lead_id} status -> {status}")
        return updated
