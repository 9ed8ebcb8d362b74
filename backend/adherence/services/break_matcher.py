"""
Break Matcher — pairs observed breaks with scheduled break windows.

Matching is greedy and time-ordered: each scheduled window, earliest
first, claims the first still-unclaimed actual interval that starts
inside the window and lasts at least ``planned − tolerance`` minutes.
A claimed interval can satisfy only one window, so one long break never
covers two slots.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta, tzinfo
from typing import Iterable, List, Optional

from adherence.config import DEFAULT_BREAK_TOLERANCE_MINUTES
from adherence.models.domain import BreakWindow, Interval, ScheduleEntry
from adherence.services.scoring import round_half_up
from adherence.services.timeline import project_time

logger = logging.getLogger("adherence-engine.breaks")


@dataclass
class BreakMatch:
    window: BreakWindow
    actual: Optional[Interval]
    extended: bool = False

    @property
    def matched(self) -> bool:
        return self.actual is not None


@dataclass
class BreakComplianceResult:
    percentage: float
    missed_breaks_count: int
    extended_breaks_count: int
    matches: List[BreakMatch] = field(default_factory=list)
    actual_breaks: List[Interval] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return sum(1 for m in self.matches if m.matched)

    def scheduled_breaks_detail(self) -> list[dict]:
        return [
            {
                "id": m.window.id,
                "start": m.window.start.isoformat(),
                "end": m.window.end.isoformat(),
                "duration_minutes": round(m.window.planned_minutes),
                "matched": m.matched,
                "extended": m.extended,
            }
            for m in self.matches
        ]

    def actual_breaks_detail(self) -> list[dict]:
        """Explicit breaks plus any idle interval that satisfied a scheduled window."""
        claimed_idle = [m.actual for m in self.matches if m.actual is not None and m.actual.kind != "break"]
        detail = sorted(self.actual_breaks + claimed_idle, key=lambda iv: (iv.start, iv.kind))
        return [
            {
                "start": iv.start.isoformat(),
                "end": iv.end.isoformat(),
                "duration_minutes": round(iv.minutes),
                "source": iv.kind or "break",
            }
            for iv in detail
        ]


def build_break_windows(
    entries: Iterable[ScheduleEntry],
    schedule_date: date,
    tz: tzinfo,
) -> List[BreakWindow]:
    """Project confirmed break entries onto the day, chronologically."""
    windows: List[BreakWindow] = []
    for entry in entries:
        if not entry.is_break or not entry.is_confirmed:
            continue
        start = project_time(schedule_date, entry.start_time, tz)
        if start is None:
            logger.warning(
                "Skipping break entry without start time",
                extra={"employee_id": entry.employee_id, "schedule_date": schedule_date.isoformat()},
            )
            continue
        duration = max(0, int(entry.break_duration_minutes or 0))
        end = project_time(schedule_date, entry.end_time, tz)
        if end is None or end <= start:
            end = start + timedelta(minutes=duration)
        planned = float(duration) if duration > 0 else (end - start).total_seconds() / 60.0
        windows.append(BreakWindow(start=start, end=end, planned_minutes=planned, id=entry.id))
    return sorted(windows, key=lambda w: w.start)


def match_breaks(
    actual_intervals: Iterable[Interval],
    windows: Iterable[BreakWindow],
    tolerance_minutes: float = DEFAULT_BREAK_TOLERANCE_MINUTES,
) -> BreakComplianceResult:
    """
    Greedy break matching.

    ``actual_intervals`` are the candidate breaks (explicit BREAK periods
    and IDLE periods). On equal start times an explicit break is tried
    before an idle period.
    """
    candidates = sorted(actual_intervals, key=lambda iv: (iv.start, 0 if iv.kind == "break" else 1))
    ordered_windows = sorted(windows, key=lambda w: w.start)
    claimed: set[int] = set()
    matches: List[BreakMatch] = []
    extended = 0

    for window in ordered_windows:
        chosen: Optional[int] = None
        for idx, candidate in enumerate(candidates):
            if idx in claimed:
                continue
            if not (window.start <= candidate.start <= window.end):
                continue
            if candidate.minutes >= window.planned_minutes - tolerance_minutes:
                chosen = idx
                break

        if chosen is None:
            matches.append(BreakMatch(window=window, actual=None))
            continue

        claimed.add(chosen)
        actual = candidates[chosen]
        is_extended = actual.minutes > window.planned_minutes + tolerance_minutes
        if is_extended:
            extended += 1
        matches.append(BreakMatch(window=window, actual=actual, extended=is_extended))

    scheduled = len(matches)
    matched = sum(1 for m in matches if m.matched)
    # No scheduled breaks means nothing was required: full compliance
    percentage = round_half_up(matched / scheduled * 100.0) if scheduled else 100.0

    return BreakComplianceResult(
        percentage=percentage,
        missed_breaks_count=scheduled - matched,
        extended_breaks_count=extended,
        matches=matches,
        actual_breaks=[iv for iv in candidates if iv.kind == "break"],
    )
