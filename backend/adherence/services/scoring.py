"""
Exception Adjuster + Weighted Scorer.

    start_score        = max(0, 100 − 2·|start_variance|)
    end_score          = max(0, 100 − 2·|end_variance|)
    break_score        = break compliance %
    productivity_score = productive' / scheduled_duration · 100   (unbounded above)

    adherence = 0.2·start + 0.2·end + 0.2·break + 0.4·productivity

Approved exception minutes excuse idle and away time (the same pool
offsets each, floored at 0) and are credited to productive time, which is
why adherence can exceed 100.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from adherence.config import (
    BREAK_SCORE_WEIGHT,
    END_SCORE_WEIGHT,
    PRODUCTIVITY_SCORE_WEIGHT,
    START_SCORE_WEIGHT,
    VARIANCE_PENALTY_PER_MINUTE,
)
from adherence.models.domain import ExceptionRecord
from adherence.services.productivity import ActivityMetrics

APPROVED_STATUS = "APPROVED"


def round_half_up(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round_minutes(value: float) -> int:
    """Whole minutes, halves rounded away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


# ── Exception Adjuster ───────────────────────────────────────────────────────

@dataclass
class ExceptionAdjustment:
    total_exception_minutes: int
    applied: List[dict]


def total_exception_minutes(exceptions: Iterable[ExceptionRecord]) -> ExceptionAdjustment:
    applied: List[dict] = []
    total = 0
    for exc in exceptions:
        if (exc.status or "").upper() != APPROVED_STATUS:
            continue
        minutes = exc.adjustment_minutes
        total += minutes
        applied.append({"id": exc.id, "type": exc.exception_type, "adjustment_minutes": minutes})
    return ExceptionAdjustment(total_exception_minutes=total, applied=applied)


def apply_exceptions(metrics: ActivityMetrics, exception_minutes: float) -> ActivityMetrics:
    """
    Return a copy of ``metrics`` with idle/away offset and productive time credited.

    Work-app time is left untouched; only the productive figure that feeds
    the score receives the credit.
    """
    if exception_minutes <= 0:
        return replace(metrics)
    return replace(
        metrics,
        idle_time_minutes=max(0.0, metrics.idle_time_minutes - exception_minutes),
        away_time_minutes=max(0.0, metrics.away_time_minutes - exception_minutes),
        productive_time_minutes=metrics.productive_time_minutes + exception_minutes,
    )


# ── Variances & durations ────────────────────────────────────────────────────

def variance_minutes(actual: Optional[datetime], scheduled: Optional[datetime]) -> int:
    """Signed deviation in whole minutes (positive = later than scheduled); 0 if unknown."""
    if actual is None or scheduled is None:
        return 0
    return round_minutes((actual - scheduled).total_seconds() / 60.0)


def scheduled_duration_minutes(shift_start: Optional[time], shift_end: Optional[time]) -> int:
    if shift_start is None or shift_end is None:
        return 0
    start = shift_start.hour * 60 + shift_start.minute + shift_start.second / 60.0
    end = shift_end.hour * 60 + shift_end.minute + shift_end.second / 60.0
    return max(0, round_minutes(end - start))


# ── Weighted Scorer ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoreBreakdown:
    start_score: float
    end_score: float
    break_score: float
    productivity_score: float
    adherence_percentage: float


def timeliness_score(variance: float) -> float:
    return max(0.0, 100.0 - VARIANCE_PENALTY_PER_MINUTE * abs(variance))


def weighted_adherence(
    start_variance: float,
    end_variance: float,
    break_compliance_percentage: float,
    productive_time_minutes: float,
    scheduled_duration: float,
) -> ScoreBreakdown:
    start_score = timeliness_score(start_variance)
    end_score = timeliness_score(end_variance)
    break_score = max(0.0, min(100.0, break_compliance_percentage))
    productivity_score = (
        productive_time_minutes / scheduled_duration * 100.0 if scheduled_duration > 0 else 0.0
    )
    total = (
        START_SCORE_WEIGHT * start_score
        + END_SCORE_WEIGHT * end_score
        + BREAK_SCORE_WEIGHT * break_score
        + PRODUCTIVITY_SCORE_WEIGHT * productivity_score
    )
    return ScoreBreakdown(
        start_score=start_score,
        end_score=end_score,
        break_score=break_score,
        productivity_score=productivity_score,
        adherence_percentage=max(0.0, round_half_up(total)),
    )
