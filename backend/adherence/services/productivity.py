"""
Productivity Estimator.

Splits the work window [actual_start, work_end) into four disjoint
buckets: away, idle, work-application and non-work-application time.
Break time is excluded from all four.

Foreground attribution walks the activity events in time order. Each
span between consecutive activity events (plus the lead-in from
actual_start and the lead-out to work_end) is charged to the event that
opened it, after removing whatever part of that span is covered by idle,
break or away intervals.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from adherence.models.domain import (
    ACTIVITY_EVENT_TYPES,
    WORK_BY_NATURE_EVENT_TYPES,
    Interval,
    RawEvent,
)
from adherence.services import intervals
from adherence.services.timeline import Timeline


@dataclass
class ActivityMetrics:
    """Minutes per bucket (floats; rounded only when a summary is built)."""
    productive_time_minutes: float = 0.0
    idle_time_minutes: float = 0.0
    away_time_minutes: float = 0.0
    non_work_app_time_minutes: float = 0.0
    work_app_time_minutes: float = 0.0
    available_minutes: float = 0.0
    total_work_window_minutes: float = 0.0


def is_work_activity(event: Optional[RawEvent]) -> bool:
    """
    Classify the span opened by ``event``.

    An explicit classifier flag always wins. Without one, communication
    and client-website activity counts as work, and so does a span with
    no tracked application (logged in, no foreground window reported).
    A named application with no verdict is treated as non-work.
    """
    if event is None:
        return True
    if event.is_work_application is not None:
        return event.is_work_application
    if event.event_type in WORK_BY_NATURE_EVENT_TYPES:
        return True
    return not event.application_name


def estimate_productivity(
    timeline: Timeline,
    activity_events: Optional[Iterable[RawEvent]] = None,
) -> ActivityMetrics:
    """
    Compute activity metrics for a reconstructed timeline.

    ``activity_events`` defaults to the activity-type events of the
    timeline itself.
    """
    window = timeline.work_window
    if window is None:
        return ActivityMetrics()

    if activity_events is None:
        activity_events = timeline.events
    openers: List[RawEvent] = sorted(
        (
            e for e in activity_events
            if e.event_type in ACTIVITY_EVENT_TYPES and window.start <= e.event_timestamp < window.end
        ),
        key=lambda e: e.event_timestamp,
    )

    away = intervals.merge(intervals.clip(timeline.away_periods, window))
    idle = intervals.subtract(intervals.clip(timeline.idle_periods, window), away)
    excluded = intervals.merge(
        intervals.clip(timeline.idle_periods + timeline.break_periods + timeline.away_periods, window)
    )

    total = window.minutes
    excluded_minutes = intervals.total_minutes(excluded)
    available = max(0.0, total - excluded_minutes)

    # (span, opener) pairs covering the whole window
    boundaries = [window.start] + [e.event_timestamp for e in openers] + [window.end]
    span_openers: List[Optional[RawEvent]] = [None] + openers

    work = 0.0
    non_work = 0.0
    for idx, opener in enumerate(span_openers):
        span = Interval(boundaries[idx], boundaries[idx + 1])
        if span.end <= span.start:
            continue
        remainder = max(0.0, span.minutes - intervals.overlap_minutes(span, excluded))
        if is_work_activity(opener):
            work += remainder
        else:
            non_work += remainder

    # A foreground app that never changed leaves no events; its time is work
    residual = available - (work + non_work)
    if residual > 0:
        work += residual

    return ActivityMetrics(
        productive_time_minutes=work,
        idle_time_minutes=intervals.total_minutes(idle),
        away_time_minutes=intervals.total_minutes(away),
        non_work_app_time_minutes=non_work,
        work_app_time_minutes=work,
        available_minutes=available,
        total_work_window_minutes=total,
    )
