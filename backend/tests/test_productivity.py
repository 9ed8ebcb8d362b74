"""
test_productivity.py — Unit tests for the Productivity Estimator.

Tests cover:
  - span attribution to work / non-work applications
  - idle, break and away exclusion (true intersection, union of overlaps)
  - classification defaults when the classifier flag is unknown
  - residual credit and the empty-window case
  - randomized event streams never double-count an instant

All tests are pure unit tests; no database or external services required.
"""

import random
from datetime import timedelta

import pytest

from adherence.services.productivity import estimate_productivity, is_work_activity
from adherence.services.scoring import apply_exceptions
from adherence.services.timeline import Timeline, reconstruct_timeline
from fakes import at, event, shift


def _metrics(events, day_window, schedule=None):
    return estimate_productivity(reconstruct_timeline(events, day_window, schedule or shift()))


# ===========================================================================
# Class 1: Attribution
# ===========================================================================

class TestAttribution:

    def test_work_non_work_and_idle(self, day_window):
        """
        09:00–17:00 window (480 min):
          09:00 Excel (work) → 12:00 YouTube (non-work) → 12:30 Excel (work)
          idle 15:00–15:30
        work = 180 + 240 = 420, non-work = 30, idle = 30
        """
        events = [
            event("LOGIN", at(9, 0)),
            event("WINDOW_CHANGE", at(9, 0), app="Excel", work=True),
            event("WINDOW_CHANGE", at(12, 0), app="YouTube", work=False),
            event("WINDOW_CHANGE", at(12, 30), app="Excel", work=True),
            event("IDLE_START", at(15, 0)),
            event("IDLE_END", at(15, 30)),
            event("LOGOFF", at(17, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.total_work_window_minutes == pytest.approx(480.0)
        assert m.productive_time_minutes == pytest.approx(420.0)
        assert m.work_app_time_minutes == pytest.approx(420.0)
        assert m.non_work_app_time_minutes == pytest.approx(30.0)
        assert m.idle_time_minutes == pytest.approx(30.0)
        assert m.away_time_minutes == pytest.approx(0.0)
        assert m.available_minutes == pytest.approx(450.0)

    def test_idle_inside_non_work_span_reduces_non_work(self, day_window):
        events = [
            event("LOGIN", at(9, 0)),
            event("BROWSER_TAB_CHANGE", at(10, 0), app="Chrome", work=False),
            event("IDLE_START", at(10, 20)),
            event("IDLE_END", at(10, 40)),
            event("WINDOW_CHANGE", at(11, 0), app="Excel", work=True),
            event("LOGOFF", at(12, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.non_work_app_time_minutes == pytest.approx(40.0)
        assert m.productive_time_minutes == pytest.approx(120.0)

    def test_break_excluded_from_all_buckets(self, day_window):
        events = [
            event("LOGIN", at(9, 0)),
            event("BREAK_START", at(10, 0)),
            event("BREAK_END", at(10, 30)),
            event("LOGOFF", at(11, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.productive_time_minutes == pytest.approx(90.0)
        assert m.idle_time_minutes == 0
        assert m.available_minutes == pytest.approx(90.0)

    def test_overlapping_idle_and_break_counted_once(self, day_window):
        events = [
            event("LOGIN", at(9, 0)),
            event("BREAK_START", at(10, 0)),
            event("IDLE_START", at(10, 5)),
            event("IDLE_END", at(10, 40)),
            event("BREAK_END", at(10, 30)),
            event("LOGOFF", at(11, 0)),
        ]
        m = _metrics(events, day_window)
        # Union of 10:00–10:30 and 10:05–10:40 is 40 min
        assert m.available_minutes == pytest.approx(80.0)
        assert m.productive_time_minutes == pytest.approx(80.0)

    def test_away_time_between_sessions(self, day_window):
        events = [
            event("LOGIN", at(9, 0)),
            event("LOGOFF", at(12, 0)),
            event("LOGIN", at(13, 0)),
            event("LOGOFF", at(17, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.away_time_minutes == pytest.approx(60.0)
        assert m.productive_time_minutes == pytest.approx(420.0)

    def test_idle_while_away_counts_as_away_only(self, day_window):
        events = [
            event("LOGIN", at(9, 0)),
            event("IDLE_START", at(11, 30)),
            event("LOGOFF", at(12, 0)),
            event("LOGIN", at(13, 0)),
            event("IDLE_END", at(13, 10)),
            event("LOGOFF", at(17, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.away_time_minutes == pytest.approx(60.0)
        assert m.idle_time_minutes == pytest.approx(40.0)
        assert m.productive_time_minutes == pytest.approx(380.0)

    def test_activity_outside_window_ignored(self, day_window):
        events = [
            event("WINDOW_CHANGE", at(8, 0), app="Netflix", work=False),
            event("LOGIN", at(9, 0)),
            event("LOGOFF", at(10, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.non_work_app_time_minutes == 0
        assert m.productive_time_minutes == pytest.approx(60.0)

    def test_end_events_do_not_open_spans(self, day_window):
        events = [
            event("LOGIN", at(9, 0)),
            event("WINDOW_CHANGE", at(9, 0), app="Excel", work=True),
            event("APPLICATION_END", at(9, 30), app="Solitaire", work=False),
            event("LOGOFF", at(10, 0)),
        ]
        m = _metrics(events, day_window)
        assert m.non_work_app_time_minutes == 0
        assert m.productive_time_minutes == pytest.approx(60.0)

    def test_no_window_is_all_zero(self):
        m = estimate_productivity(Timeline())
        assert m.productive_time_minutes == 0
        assert m.total_work_window_minutes == 0


# ===========================================================================
# Class 2: Classification
# ===========================================================================

class TestClassification:

    def test_explicit_flag_wins(self):
        assert is_work_activity(event("CALL_START", at(9, 0), app="Zoom", work=False)) is False
        assert is_work_activity(event("WINDOW_CHANGE", at(9, 0), app="Game", work=True)) is True

    def test_communication_defaults_to_work(self):
        assert is_work_activity(event("TEAMS_MEETING_START", at(9, 0), app="Teams")) is True

    def test_client_website_defaults_to_work(self):
        assert is_work_activity(event("CLIENT_WEBSITE_ACCESS", at(9, 0), app="Chrome")) is True

    def test_untracked_app_defaults_to_work(self):
        assert is_work_activity(event("WINDOW_CHANGE", at(9, 0))) is True
        assert is_work_activity(None) is True

    def test_named_unclassified_app_is_non_work(self):
        assert is_work_activity(event("WINDOW_CHANGE", at(9, 0), app="Spotify")) is False


# ===========================================================================
# Class 3: Randomized no-double-counting
# ===========================================================================

_RANDOM_TYPES = [
    "IDLE_START", "IDLE_END", "BREAK_START", "BREAK_END", "LOGOFF", "LOGIN",
    "WINDOW_CHANGE", "APPLICATION_FOCUS", "BROWSER_TAB_CHANGE", "CALL_START", "CALL_END",
]


def _random_day(rng):
    when = at(8, 0) + timedelta(minutes=rng.randint(0, 90))
    events = [event("LOGIN", when)]
    for _ in range(rng.randint(5, 60)):
        when += timedelta(seconds=rng.randint(1, 45 * 60))
        kind = rng.choice(_RANDOM_TYPES)
        app = rng.choice([None, "Excel", "Chrome", "Spotify"])
        work = rng.choice([None, True, False])
        events.append(event(kind, when, app=app, work=work))
    return events


class TestNoDoubleCounting:
    """
    After exception adjustment, idle + away + work-app + non-work-app never
    exceeds the work window, for any event stream.
    """

    @pytest.mark.parametrize("seed", range(40))
    def test_buckets_fit_in_window(self, seed, day_window):
        rng = random.Random(seed)
        events = _random_day(rng)
        m = _metrics(events, day_window)
        eps = 1e-6

        assert m.work_app_time_minutes + m.non_work_app_time_minutes == pytest.approx(m.available_minutes, abs=1e-6)
        assert (
            m.idle_time_minutes + m.away_time_minutes
            + m.work_app_time_minutes + m.non_work_app_time_minutes
        ) <= m.total_work_window_minutes + eps

        adjusted = apply_exceptions(m, rng.randint(0, 120))
        assert adjusted.idle_time_minutes >= 0
        assert adjusted.away_time_minutes >= 0
        assert adjusted.work_app_time_minutes == m.work_app_time_minutes
        assert (
            adjusted.idle_time_minutes + adjusted.away_time_minutes
            + adjusted.work_app_time_minutes + adjusted.non_work_app_time_minutes
        ) <= m.total_work_window_minutes + eps
