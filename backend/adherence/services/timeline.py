"""
Timeline Reconstructor.

Rebuilds one employee's working day from the sparse event stream:
actual start/end, the end of the measurable work window, and the idle,
break and away intervals.

"The day" is the half-open local calendar day in the configured timezone.
Stored schedule times-of-day are local wall-clock times in that same
timezone and are projected to absolute instants with ``project_time``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, List, Optional

from adherence.models.domain import EventType, Interval, RawEvent, ScheduleEntry

logger = logging.getLogger("adherence-engine.timeline")


@dataclass(frozen=True)
class DayWindow:
    """Local calendar day expressed in UTC: [start, end)."""
    schedule_date: date
    start: datetime
    end: datetime
    tz: tzinfo

    @classmethod
    def for_date(cls, schedule_date: date, tz: tzinfo) -> "DayWindow":
        # Wall-clock midnights; with an IANA zone a DST day is 23 or 25 hours long
        local_start = datetime.combine(schedule_date, time(0, 0), tzinfo=tz)
        local_end = datetime.combine(schedule_date + timedelta(days=1), time(0, 0), tzinfo=tz)
        return cls(
            schedule_date=schedule_date,
            start=local_start.astimezone(timezone.utc),
            end=local_end.astimezone(timezone.utc),
            tz=tz,
        )

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600.0


def project_time(schedule_date: date, time_of_day: Optional[time], tz: tzinfo) -> Optional[datetime]:
    """Project a local time-of-day onto ``schedule_date`` as a UTC instant."""
    if time_of_day is None:
        return None
    local = datetime.combine(schedule_date, time_of_day.replace(tzinfo=None), tzinfo=tz)
    return local.astimezone(timezone.utc)


@dataclass
class Timeline:
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    work_end: Optional[datetime] = None
    idle_periods: List[Interval] = field(default_factory=list)
    break_periods: List[Interval] = field(default_factory=list)
    away_periods: List[Interval] = field(default_factory=list)
    events: List[RawEvent] = field(default_factory=list)

    @property
    def has_events(self) -> bool:
        return bool(self.events)

    @property
    def work_window(self) -> Optional[Interval]:
        """[actual_start, work_end), or None when the window is empty or unknown."""
        if self.actual_start is None or self.work_end is None:
            return None
        if self.work_end <= self.actual_start:
            return None
        return Interval(self.actual_start, self.work_end, "work")


def _pair_intervals(
    events: List[RawEvent],
    start_type: EventType,
    end_type: EventType,
    kind: str,
    close_at: Optional[datetime],
) -> List[Interval]:
    intervals: List[Interval] = []
    open_start: Optional[datetime] = None
    for event in events:
        if event.event_type == start_type:
            # A re-emitted START restarts the open interval
            open_start = event.event_timestamp
        elif event.event_type == end_type:
            # END without a preceding START is discarded
            if open_start is not None:
                if event.event_timestamp > open_start:
                    intervals.append(Interval(open_start, event.event_timestamp, kind))
                open_start = None
    if open_start is not None and close_at is not None and close_at > open_start:
        intervals.append(Interval(open_start, close_at, kind))
    return intervals


def reconstruct_timeline(
    events: Iterable[RawEvent],
    day: DayWindow,
    shift: Optional[ScheduleEntry] = None,
) -> Timeline:
    """
    Derive the actual timeline for one employee-day.

    ``events`` may be unordered and may spill outside the day; only events
    inside ``day`` are used. ``shift`` supplies the fallback work end when
    the agent never logged off.
    """
    # sorted() is stable, so same-instant events keep their stored order
    day_events = sorted(
        (e for e in events if day.contains(e.event_timestamp)),
        key=lambda e: e.event_timestamp,
    )
    if not day_events:
        logger.debug("No events inside day window %s", day.schedule_date.isoformat())

    logins = [e for e in day_events if e.event_type == EventType.LOGIN]
    logoffs = [e for e in day_events if e.event_type == EventType.LOGOFF]

    actual_start: Optional[datetime] = None
    if logins:
        actual_start = logins[0].event_timestamp
    elif day_events:
        actual_start = day_events[0].event_timestamp

    actual_end: Optional[datetime] = None
    if logoffs:
        actual_end = logoffs[-1].event_timestamp
    elif day_events:
        actual_end = day_events[-1].event_timestamp

    work_end: Optional[datetime] = None
    if logoffs:
        work_end = logoffs[-1].event_timestamp
    elif shift is not None and shift.end_time is not None:
        work_end = project_time(day.schedule_date, shift.end_time, day.tz)
    elif day_events:
        work_end = day_events[-1].event_timestamp

    idle_periods = _pair_intervals(day_events, EventType.IDLE_START, EventType.IDLE_END, "idle", work_end)
    break_periods = _pair_intervals(day_events, EventType.BREAK_START, EventType.BREAK_END, "break", work_end)
    # A trailing LOGOFF is the end of the day, not an absence
    away_periods = _pair_intervals(day_events, EventType.LOGOFF, EventType.LOGIN, "away", None)

    return Timeline(
        actual_start=actual_start,
        actual_end=actual_end,
        work_end=work_end,
        idle_periods=idle_periods,
        break_periods=break_periods,
        away_periods=away_periods,
        events=day_events,
    )
