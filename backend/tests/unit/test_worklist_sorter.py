"""
Unit Tests for Worklist Sorter
"""
from datetime import timedelta

from calldesk.domain.models.scheduled_call import ScheduledCallStatus
from calldesk.domain.services.worklist_sorter import compare_next_calls, sort_worklist

from tests.unit.helpers import T0, make_call, make_lead


def _ids(leads):
    return [lead.id for lead in leads]


class TestSortPrecedence:
    """Tests for the pairwise precedence rules"""

    def test_manual_soon_beats_auto_later(self):
        """Scenario: manual call in 10 min goes before an auto follow-up in 40 min"""
        x, y = make_lead("X"), make_lead("Y")
        calls = {
            "X": [make_call("cx", "X", T0 + timedelta(minutes=10))],
            "Y": [make_call("cy", "Y", T0 + timedelta(minutes=40), auto=True)],
        }

        assert _ids(sort_worklist([y, x], calls, T0)) == ["X", "Y"]
        assert _ids(sort_worklist([x, y], calls, T0)) == ["X", "Y"]

    def test_auto_within_window_beats_later_manual(self):
        """Test that a follow-up due within 30 minutes outranks a manual call"""
        calls = {
            "A": [make_call("ca", "A", T0 + timedelta(minutes=20), auto=True)],
            "M": [make_call("cm", "M", T0 + timedelta(minutes=10))],
        }

        result = sort_worklist([make_lead("M"), make_lead("A")], calls, T0)

        assert _ids(result) == ["A", "M"]

    def test_auto_outside_window_sinks_below_any_manual(self):
        """Test that a distant follow-up sinks even below a later manual call"""
        calls = {
            "A": [make_call("ca", "A", T0 + timedelta(minutes=45), auto=True)],
            "M": [make_call("cm", "M", T0 + timedelta(hours=5))],
        }

        result = sort_worklist([make_lead("A"), make_lead("M")], calls, T0)

        assert _ids(result) == ["M", "A"]

    def test_overdue_first_most_overdue_first(self):
        """Test that overdue leads lead the list in order of lateness"""
        calls = {
            "late5": [make_call("c1", "late5", T0 - timedelta(minutes=5))],
            "late30": [make_call("c2", "late30", T0 - timedelta(minutes=30), auto=True)],
            "none": [],
            "soon": [make_call("c3", "soon", T0 + timedelta(minutes=5))],
        }
        leads = [make_lead(lid) for lid in ("soon", "none", "late5", "late30")]

        result = sort_worklist(leads, calls, T0)

        assert _ids(result) == ["late30", "late5", "none", "soon"]

    def test_no_pending_call_beats_future_call(self):
        """Test that a lead with nothing pending comes before one with a future call"""
        calls = {
            "F": [make_call("cf", "F", T0 + timedelta(minutes=1))],
            "D": [make_call("cd", "D", T0 - timedelta(hours=1), status=ScheduledCallStatus.COMPLETED)],
        }

        result = sort_worklist([make_lead("F"), make_lead("D")], calls, T0)

        assert _ids(result) == ["D", "F"]

    def test_two_auto_calls_window_then_time(self):
        """Test ordering between two follow-ups"""
        calls = {
            "far": [make_call("c1", "far", T0 + timedelta(minutes=90), auto=True)],
            "near": [make_call("c2", "near", T0 + timedelta(minutes=25), auto=True)],
            "mid": [make_call("c3", "mid", T0 + timedelta(minutes=60), auto=True)],
        }
        leads = [make_lead(lid) for lid in ("far", "mid", "near")]

        assert _ids(sort_worklist(leads, calls, T0)) == ["near", "mid", "far"]

    def test_equal_leads_keep_incoming_order(self):
        """Test stability for leads without calls"""
        leads = [make_lead(lid) for lid in ("c", "a", "b")]

        assert _ids(sort_worklist(leads, {}, T0)) == ["c", "a", "b"]


class TestSortProperties:

    def test_sorting_is_idempotent(self):
        """Test that re-sorting a sorted worklist does not drift"""
        calls = {
            "L1": [make_call("c1", "L1", T0 + timedelta(minutes=45), auto=True)],
            "L2": [make_call("c2", "L2", T0 + timedelta(minutes=10))],
            "L3": [],
            "L4": [make_call("c4", "L4", T0 - timedelta(minutes=3))],
            "L5": [make_call("c5", "L5", T0 + timedelta(minutes=15), auto=True)],
            "L6": [make_call("c6", "L6", T0 + timedelta(hours=3))],
        }
        leads = [make_lead(f"L{i}") for i in range(1, 7)]

        once = sort_worklist(leads, calls, T0)
        twice = sort_worklist(once, calls, T0)

        assert _ids(once) == _ids(twice)
        assert _ids(once) == ["L4", "L3", "L5", "L2", "L6", "L1"]

    def test_comparator_is_antisymmetric(self):
        """Test compare(a, b) == -compare(b, a) across rule combinations"""
        samples = [
            None,
            make_call("o", "x", T0 - timedelta(minutes=1)),
            make_call("m10", "x", T0 + timedelta(minutes=10)),
            make_call("m90", "x", T0 + timedelta(minutes=90)),
            make_call("a20", "x", T0 + timedelta(minutes=20), auto=True),
            make_call("a50", "x", T0 + timedelta(minutes=50), auto=True),
        ]

        for a in samples:
            for b in samples:
                assert compare_next_calls(a, b, T0) == -compare_next_calls(b, a, T0)
