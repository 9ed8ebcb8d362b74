"""
test_break_matcher.py — Unit tests for break window building and greedy matching.

Tests cover:
  - build_break_windows: projection, end/duration fallbacks, skipped rows
  - match_breaks: tolerance boundary, extended flag, greedy claiming,
    idle periods as candidates, audit detail

All tests are pure unit tests; no database or external services required.
"""

from datetime import time, timedelta

import pytest

from adherence.models.domain import BreakWindow, Interval
from adherence.services.break_matcher import build_break_windows, match_breaks
from fakes import DAY, LOCAL_TZ, at, scheduled_break


def _window(h, m, minutes, end=None):
    start = at(h, m)
    return BreakWindow(start=start, end=end or start + timedelta(minutes=minutes), planned_minutes=float(minutes))


def _actual(h, m, minutes, kind="break"):
    start = at(h, m)
    return Interval(start, start + timedelta(minutes=minutes), kind)


# ===========================================================================
# Class 1: Window projection
# ===========================================================================

class TestBuildBreakWindows:

    def test_window_uses_entry_end(self):
        windows = build_break_windows([scheduled_break(start=time(13, 0), end=time(13, 30), minutes=15)], DAY, LOCAL_TZ)
        assert len(windows) == 1
        assert windows[0].start == at(13, 0)
        assert windows[0].end == at(13, 30)
        assert windows[0].planned_minutes == 15

    def test_window_from_duration_when_no_end(self):
        windows = build_break_windows([scheduled_break(start=time(10, 0), end=None, minutes=15)], DAY, LOCAL_TZ)
        assert windows[0].end == at(10, 15)

    def test_planned_falls_back_to_window_length(self):
        windows = build_break_windows([scheduled_break(start=time(10, 0), end=time(10, 20), minutes=0)], DAY, LOCAL_TZ)
        assert windows[0].planned_minutes == pytest.approx(20.0)

    def test_unconfirmed_and_startless_entries_skipped(self):
        entries = [
            scheduled_break(start=time(10, 0), confirmed=False),
            scheduled_break(start=None, end=None),
            scheduled_break(start=time(15, 0), end=time(15, 15)),
        ]
        windows = build_break_windows(entries, DAY, LOCAL_TZ)
        assert [w.start for w in windows] == [at(15, 0)]

    def test_windows_sorted_chronologically(self):
        entries = [
            scheduled_break(start=time(15, 0), end=time(15, 15), entry_id="b2"),
            scheduled_break(start=time(10, 0), end=time(10, 15), entry_id="b1"),
        ]
        windows = build_break_windows(entries, DAY, LOCAL_TZ)
        assert [w.id for w in windows] == ["b1", "b2"]


# ===========================================================================
# Class 2: Matching
# ===========================================================================

class TestMatchBreaks:

    def test_no_scheduled_breaks_is_full_compliance(self):
        result = match_breaks([_actual(10, 0, 30)], [])
        assert result.percentage == 100.0
        assert result.missed_breaks_count == 0
        assert result.extended_breaks_count == 0

    def test_planned_minus_tolerance_matches(self):
        """30 min planned, 25 min taken → within 5 min tolerance."""
        result = match_breaks([_actual(13, 0, 25)], [_window(13, 0, 30)])
        assert result.missed_breaks_count == 0
        assert result.percentage == 100.0

    def test_planned_minus_six_does_not_match(self):
        result = match_breaks([_actual(13, 0, 24)], [_window(13, 0, 30)])
        assert result.missed_breaks_count == 1
        assert result.percentage == 0.0

    def test_extended_break_flagged(self):
        result = match_breaks([_actual(13, 0, 36)], [_window(13, 0, 30)])
        assert result.missed_breaks_count == 0
        assert result.extended_breaks_count == 1

    def test_planned_plus_tolerance_not_extended(self):
        result = match_breaks([_actual(13, 0, 35)], [_window(13, 0, 30)])
        assert result.extended_breaks_count == 0

    def test_start_outside_window_misses(self):
        result = match_breaks([_actual(13, 20, 15)], [_window(13, 0, 15)])
        assert result.missed_breaks_count == 1

    def test_start_on_window_end_is_inside(self):
        result = match_breaks([_actual(13, 15, 15)], [_window(13, 0, 15)])
        assert result.missed_breaks_count == 0

    def test_one_long_break_cannot_cover_two_slots(self):
        """
        Windows 10:00–10:15 and 10:10–10:25; a single 15 min break at 10:12
        starts inside both. The earlier window claims it, the later one is missed.
        """
        windows = [_window(10, 0, 15), _window(10, 10, 15)]
        result = match_breaks([_actual(10, 12, 15)], windows)
        assert result.matched_count == 1
        assert result.missed_breaks_count == 1
        assert result.percentage == 50.0
        assert result.matches[0].matched
        assert not result.matches[1].matched

    def test_first_qualifying_candidate_in_window_wins(self):
        """A too-short candidate is skipped; the next qualifying one is claimed."""
        candidates = [_actual(13, 1, 5), _actual(13, 5, 15), _actual(13, 10, 14)]
        result = match_breaks(candidates, [_window(13, 0, 15)])
        assert result.matches[0].actual.start == at(13, 5)

    def test_too_short_candidate_left_for_later_window(self):
        """
        The 15 min break at 10:20 is too short for the 30 min window, so that
        window claims the 10:25 break and the 15 min one goes to the next slot.
        """
        windows = [_window(10, 0, 30), _window(10, 20, 15)]
        candidates = [_actual(10, 20, 15), _actual(10, 25, 30)]
        result = match_breaks(candidates, windows)
        assert result.matches[0].actual.start == at(10, 25)
        assert result.matches[1].actual.start == at(10, 20)
        assert result.percentage == 100.0

    def test_idle_period_satisfies_break(self):
        result = match_breaks([_actual(13, 0, 16, kind="idle")], [_window(13, 0, 15)])
        assert result.missed_breaks_count == 0
        detail = result.actual_breaks_detail()
        assert detail == [{
            "start": at(13, 0).isoformat(),
            "end": at(13, 16).isoformat(),
            "duration_minutes": 16,
            "source": "idle",
        }]

    def test_explicit_break_preferred_on_tie(self):
        candidates = [_actual(13, 0, 15, kind="idle"), _actual(13, 0, 15, kind="break")]
        result = match_breaks(candidates, [_window(13, 0, 15)])
        assert result.matches[0].actual.kind == "break"

    def test_percentage_rounded(self):
        windows = [_window(10, 0, 15), _window(13, 0, 15), _window(16, 0, 15)]
        result = match_breaks([_actual(10, 0, 15)], windows)
        assert result.percentage == 33.33

    def test_scheduled_detail(self):
        result = match_breaks([_actual(13, 0, 15)], [_window(13, 0, 15)])
        detail = result.scheduled_breaks_detail()
        assert detail[0]["matched"] is True
        assert detail[0]["extended"] is False
        assert detail[0]["duration_minutes"] == 15

    def test_custom_tolerance(self):
        result = match_breaks([_actual(13, 0, 25)], [_window(13, 0, 30)], tolerance_minutes=2)
        assert result.missed_breaks_count == 1
