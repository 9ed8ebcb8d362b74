"""
Adherence Calculation Engine.

Per employee-day pipeline:
  1. Timeline Reconstructor  → actual start/end, idle/break/away intervals
  2. Break Matcher           → compliance against confirmed break windows
  3. Productivity Estimator  → work / non-work / idle / away minutes
  4. Exception Adjuster      → approved exception minutes credited
  5. Weighted Scorer         → adherence percentage
  6. Summary Writer          → idempotent upsert

The Batch Orchestrator runs the pipeline for every scheduled employee of
a date, a fixed number of employees at a time. Employees inside a batch
run concurrently; a failing employee is recorded and never affects the
others.
"""
from __future__ import annotations

import asyncio
import logging
import time as _time
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from adherence.config import EngineConfig
from adherence.models.domain import (
    AdherenceSummaryRecord,
    BatchError,
    BatchResult,
    ExceptionRecord,
    RawEvent,
    ScheduleEntry,
)
from adherence.services.break_matcher import build_break_windows, match_breaks
from adherence.services.errors import ScheduleNotFoundError
from adherence.services.perf_monitor import timed, tracker
from adherence.services.productivity import ActivityMetrics, estimate_productivity
from adherence.services.scoring import (
    apply_exceptions,
    round_minutes,
    scheduled_duration_minutes,
    total_exception_minutes,
    variance_minutes,
    weighted_adherence,
)
from adherence.services.timeline import DayWindow, project_time, reconstruct_timeline

logger = logging.getLogger("adherence-engine")
batch_logger = logging.getLogger("adherence-batch")


@timed
def compute_adherence(
    employee_id: str,
    day: DayWindow,
    shift: ScheduleEntry,
    events: Iterable[RawEvent],
    break_entries: Iterable[ScheduleEntry],
    exceptions: Iterable[ExceptionRecord],
    break_tolerance_minutes: float,
    calculated_at: Optional[datetime] = None,
) -> AdherenceSummaryRecord:
    """
    Pure computation of one employee-day summary. No I/O.

    A day without events yields zero activity, zero variances and an
    adherence of 0; break compliance is still reported against the
    schedule.
    """
    tz = day.tz
    timeline = reconstruct_timeline(events, day, shift)

    windows = build_break_windows(break_entries, day.schedule_date, tz)
    compliance = match_breaks(
        timeline.break_periods + timeline.idle_periods,
        windows,
        tolerance_minutes=break_tolerance_minutes,
    )

    duration = scheduled_duration_minutes(shift.start_time, shift.end_time)
    record = AdherenceSummaryRecord(
        employee_id=employee_id,
        schedule_date=day.schedule_date,
        scheduled_start_time=shift.start_time,
        scheduled_end_time=shift.end_time,
        scheduled_duration_minutes=duration,
        break_compliance_percentage=compliance.percentage,
        missed_breaks_count=compliance.missed_breaks_count,
        extended_breaks_count=compliance.extended_breaks_count,
        scheduled_breaks=compliance.scheduled_breaks_detail(),
        actual_breaks=compliance.actual_breaks_detail(),
        calculated_at=calculated_at or datetime.now(timezone.utc),
    )

    if not timeline.has_events:
        logger.info(
            "No events for employee-day; zero adherence",
            extra={"employee_id": employee_id, "schedule_date": day.schedule_date.isoformat()},
        )
        return record

    metrics: ActivityMetrics = estimate_productivity(timeline)
    adjustment = total_exception_minutes(exceptions)
    adjusted = apply_exceptions(metrics, adjustment.total_exception_minutes)

    start_variance = variance_minutes(
        timeline.actual_start, project_time(day.schedule_date, shift.start_time, tz)
    )
    end_variance = variance_minutes(
        timeline.actual_end, project_time(day.schedule_date, shift.end_time, tz)
    )
    scores = weighted_adherence(
        start_variance=start_variance,
        end_variance=end_variance,
        break_compliance_percentage=compliance.percentage,
        productive_time_minutes=adjusted.productive_time_minutes,
        scheduled_duration=duration,
    )

    actual_duration = 0
    if timeline.actual_start is not None and timeline.actual_end is not None:
        actual_duration = max(
            0, round_minutes((timeline.actual_end - timeline.actual_start).total_seconds() / 60.0)
        )

    record.actual_start_time = timeline.actual_start
    record.actual_end_time = timeline.actual_end
    record.actual_duration_minutes = actual_duration
    record.start_variance_minutes = start_variance
    record.end_variance_minutes = end_variance
    record.productive_time_minutes = round_minutes(adjusted.productive_time_minutes)
    record.idle_time_minutes = round_minutes(adjusted.idle_time_minutes)
    record.away_time_minutes = round_minutes(adjusted.away_time_minutes)
    record.non_work_app_time_minutes = round_minutes(adjusted.non_work_app_time_minutes)
    record.adherence_percentage = scores.adherence_percentage
    record.exception_adjustments = adjustment.applied
    record.score_breakdown = {
        "start_score": scores.start_score,
        "end_score": scores.end_score,
        "break_score": scores.break_score,
        "productivity_score": round(scores.productivity_score, 2),
        "work_app_time_minutes": round_minutes(adjusted.work_app_time_minutes),
        "total_exception_minutes": adjustment.total_exception_minutes,
    }
    return record


class AdherenceCalculationService:
    """
    Wires the stores to the pure computation and orchestrates batch runs.

    Any object exposing the store methods works, which is how the tests
    inject in-memory fakes.
    """

    def __init__(
        self,
        event_store,
        schedule_store,
        exception_store,
        summary_writer,
        config: Optional[EngineConfig] = None,
    ):
        self.event_store = event_store
        self.schedule_store = schedule_store
        self.exception_store = exception_store
        self.summary_writer = summary_writer
        self.config = config or EngineConfig()
        self._stop_requested = False

    def request_stop(self) -> None:
        """Let the running batch finish; later batches are skipped."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def calculate_daily_adherence(
        self,
        employee_id: str,
        schedule_date: date,
        shift: ScheduleEntry,
    ) -> AdherenceSummaryRecord:
        """Compute and persist the summary for one employee-day."""
        day = DayWindow.for_date(schedule_date, self.config.local_timezone)

        # Sequential within one employee; a failed read ends the pipeline here
        events = await self.event_store.fetch_events(employee_id, day)
        break_entries = await self.schedule_store.fetch_breaks(employee_id, schedule_date)
        exceptions = await self.exception_store.fetch_approved(employee_id, day)

        record = compute_adherence(
            employee_id=employee_id,
            day=day,
            shift=shift,
            events=events,
            break_entries=break_entries,
            exceptions=exceptions,
            break_tolerance_minutes=self.config.break_tolerance_minutes,
        )
        await self.summary_writer.upsert(record)

        logger.info(
            f"Adherence {record.adherence_percentage:.2f}% "
            f"(breaks {record.break_compliance_percentage:.2f}%, "
            f"productive {record.productive_time_minutes} min)",
            extra={"employee_id": employee_id, "schedule_date": schedule_date.isoformat()},
        )
        return record

    async def calculate_for_employee(self, employee_id: str, schedule_date: date) -> AdherenceSummaryRecord:
        """On-demand recompute; looks up the confirmed shift first."""
        shift = await self.schedule_store.fetch_shift(employee_id, schedule_date)
        if shift is None:
            raise ScheduleNotFoundError(employee_id, schedule_date)
        return await self.calculate_daily_adherence(employee_id, schedule_date, shift)

    async def _run_one(self, shift: ScheduleEntry, schedule_date: date, batch_index: int) -> Optional[BatchError]:
        start = _time.perf_counter()
        try:
            await self.calculate_daily_adherence(shift.employee_id, schedule_date, shift)
        except Exception as e:
            tracker.record_employee_failure(shift.employee_id)
            batch_logger.exception(
                f"Adherence calculation failed: {e}",
                extra={
                    "employee_id": shift.employee_id,
                    "schedule_date": schedule_date.isoformat(),
                    "batch_index": batch_index,
                },
            )
            return BatchError(employee_id=shift.employee_id, message=str(e) or type(e).__name__)
        tracker.record_employee_complete(shift.employee_id, (_time.perf_counter() - start) * 1000)
        return None

    async def batch_calculate_adherence(
        self,
        schedule_date: date,
        batch_size: Optional[int] = None,
    ) -> BatchResult:
        """
        Compute summaries for every employee scheduled on ``schedule_date``.

        Batches run one after another; inside a batch all employees run
        concurrently. Per-employee failures are collected in the result.
        """
        size = self.config.batch_size if batch_size is None else batch_size
        if size < 1:
            raise ValueError("batch_size must be a positive integer")

        run_start = _time.perf_counter()
        shifts: List[ScheduleEntry] = await self.schedule_store.list_scheduled_shifts(schedule_date)
        batches = [shifts[i:i + size] for i in range(0, len(shifts), size)]
        batch_logger.info(
            f"Starting adherence run: {len(shifts)} employees in {len(batches)} batches of {size}",
            extra={"schedule_date": schedule_date.isoformat()},
        )

        result = BatchResult()
        for batch_index, batch in enumerate(batches):
            if self._stop_requested:
                result.skipped_count += len(batch)
                continue

            outcomes = await asyncio.gather(
                *(self._run_one(shift, schedule_date, batch_index) for shift in batch)
            )
            for outcome in outcomes:
                if outcome is None:
                    result.processed_count += 1
                else:
                    result.failed_count += 1
                    result.errors.append(outcome)

            batch_logger.info(
                f"Batch {batch_index + 1}/{len(batches)} done",
                extra={"schedule_date": schedule_date.isoformat(), "batch_index": batch_index},
            )

        duration_ms = (_time.perf_counter() - run_start) * 1000
        tracker.record_batch_run(
            schedule_date.isoformat(), result.processed_count, result.failed_count, duration_ms
        )
        if result.skipped_count:
            batch_logger.warning(
                f"Stop requested; skipped {result.skipped_count} employees",
                extra={"schedule_date": schedule_date.isoformat()},
            )
        batch_logger.info(
            f"Adherence run complete: processed={result.processed_count} failed={result.failed_count}",
            extra={"schedule_date": schedule_date.isoformat(), "duration_ms": round(duration_ms, 2)},
        )
        return result
