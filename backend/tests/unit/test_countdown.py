"""
Unit Tests for Countdown & Reminder Emitter
"""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from calldesk.domain.models.lead import Lead
from calldesk.domain.services.countdown import CountdownNotifier, format_countdown

from tests.unit.helpers import T0, make_call, make_lead


def _sink(granted: bool = True) -> MagicMock:
    sink = MagicMock()
    sink.name = "mock"
    sink.request_permission = AsyncMock(return_value=granted)
    sink.show = AsyncMock()
    return sink


LEADS = {"L1": make_lead("L1", "Ada"), "L2": Lead(id="L2")}


class TestFormatCountdown:

    @pytest.mark.parametrize("remaining,expected", [
        (timedelta(hours=1, minutes=59, seconds=59), "1h 59m"),
        (timedelta(minutes=2), "0h 2m"),
        (timedelta(seconds=90), "0h 1m"),
        (timedelta(seconds=30), "0h 0m"),
        (timedelta(0), "Overdue"),
        (timedelta(minutes=-3), "Overdue"),
    ])
    def test_format(self, remaining, expected):
        """Test hours/minutes formatting and the overdue label"""
        assert format_countdown(remaining) == expected


class TestCountdownTick:
    """Tests for per-tick countdown computation"""

    def test_countdown_transitions_to_overdue(self):
        """Scenario: 90 seconds remaining, then one tick past the due time"""
        notifier = CountdownNotifier()
        calls = {"L1": [make_call("c1", "L1", T0 + timedelta(seconds=90), auto=True)]}

        assert notifier.tick(LEADS, calls, T0) == {"L1": "0h 1m"}
        assert notifier.tick(LEADS, calls, T0 + timedelta(seconds=91)) == {"L1": "Overdue"}

    def test_only_auto_generated_calls_count_down(self):
        """Test that manual calls have no countdown"""
        notifier = CountdownNotifier()
        calls = {"L1": [make_call("c1", "L1", T0 + timedelta(hours=1))]}

        assert notifier.tick(LEADS, calls, T0) == {}


class TestReminders:
    """Latched reminder delivery"""

    @pytest.mark.asyncio
    async def test_reminder_fires_once_inside_window(self):
        """Test a single reminder when the follow-up is 15 minutes out"""
        sink = _sink()
        notifier = CountdownNotifier(sink=sink)
        await notifier.request_permission()
        calls = {"L1": [make_call("c1", "L1", T0 + timedelta(minutes=20), auto=True)]}

        notifier.tick(LEADS, calls, T0)
        notifier.tick(LEADS, calls, T0 + timedelta(minutes=5))
        notifier.tick(LEADS, calls, T0 + timedelta(minutes=6))
        notifier.tick(LEADS, calls, T0 + timedelta(minutes=14))
        await notifier.wait_for_deliveries()

        sink.show.assert_awaited_once_with(
            "Call Reminder",
            "Time to call Ada - scheduled call is due soon!"
        )
        assert notifier.get_stats()["reminders_sent"] == 1

    @pytest.mark.asyncio
    async def test_unnamed_lead_uses_generic_name(self):
        """Test the reminder body for a lead without a name"""
        sink = _sink()
        notifier = CountdownNotifier(sink=sink)
        await notifier.request_permission()
        calls = {"L2": [make_call("c2", "L2", T0 + timedelta(minutes=10), auto=True)]}

        notifier.tick(LEADS, calls, T0)
        await notifier.wait_for_deliveries()

        sink.show.assert_awaited_once_with("Call Reminder", "Time to call lead - scheduled call is due soon!")

    @pytest.mark.asyncio
    async def test_moved_follow_up_rearms_latch(self):
        """Test that rescheduling a follow-up allows a new reminder"""
        sink = _sink()
        notifier = CountdownNotifier(sink=sink)
        await notifier.request_permission()
        first = make_call("c1", "L1", T0 + timedelta(minutes=10), auto=True)
        moved = first.model_copy(update={"scheduled_time": T0 + timedelta(minutes=70)})

        notifier.tick(LEADS, {"L1": [first]}, T0)
        notifier.tick(LEADS, {"L1": [moved]}, T0 + timedelta(minutes=1))
        notifier.tick(LEADS, {"L1": [moved]}, T0 + timedelta(minutes=60))
        await notifier.wait_for_deliveries()

        assert sink.show.await_count == 2

    @pytest.mark.asyncio
    async def test_overdue_follow_up_does_not_fire(self):
        """Test that a follow-up already past due never triggers a reminder"""
        sink = _sink()
        notifier = CountdownNotifier(sink=sink)
        await notifier.request_permission()
        calls = {"L1": [make_call("c1", "L1", T0 - timedelta(minutes=1), auto=True)]}

        notifier.tick(LEADS, calls, T0)
        await notifier.wait_for_deliveries()

        sink.show.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sink_failure_is_swallowed(self):
        """Test that a failing sink neither raises nor affects countdowns"""
        sink = _sink()
        sink.show.side_effect = RuntimeError("permission revoked")
        notifier = CountdownNotifier(sink=sink)
        await notifier.request_permission()
        calls = {"L1": [make_call("c1", "L1", T0 + timedelta(minutes=10), auto=True)]}

        countdowns = notifier.tick(LEADS, calls, T0)
        await notifier.wait_for_deliveries()

        assert countdowns == {"L1": "0h 10m"}
        assert notifier.get_stats()["reminders_failed"] == 1
        assert notifier.is_notified("L1", calls["L1"][0])

    @pytest.mark.asyncio
    async def test_denied_permission_latches_without_delivery(self):
        """Test that no alert is shown when permission is denied"""
        sink = _sink(granted=False)
        notifier = CountdownNotifier(sink=sink)
        assert await notifier.request_permission() is False
        calls = {"L1": [make_call("c1", "L1", T0 + timedelta(minutes=10), auto=True)]}

        notifier.tick(LEADS, calls, T0)
        await notifier.wait_for_deliveries()

        sink.show.assert_not_awaited()
        assert notifier.is_notified("L1", calls["L1"][0])

    @pytest.mark.asyncio
    async def test_permission_request_failure(self):
        """Test that a throwing permission request means no alerts"""
        sink = _sink()
        sink.request_permission.side_effect = RuntimeError("unsupported")
        notifier = CountdownNotifier(sink=sink)

        assert await notifier.request_permission() is False

    @pytest.mark.asyncio
    async def test_no_sink(self):
        """Test that a missing sink is not an error"""
        notifier = CountdownNotifier()

        assert await notifier.request_permission() is False
        calls = {"L1": [make_call("c1", "L1", T0 + timedelta(minutes=10), auto=True)]}
        assert notifier.tick(LEADS, calls, T0) == {"L1": "0h 10m"}
