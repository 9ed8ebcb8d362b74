"""
Persistence adapters for the adherence engine.

The engine reads events, schedules and approved exceptions owned by other
services, and writes exactly one table: ``agent_adherence_summaries``.
Every adapter opens its own short-lived session so employees in the same
batch never share a connection.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import func

from adherence.db import AsyncSessionLocal
from adherence.models.domain import (
    AdherenceSummaryRecord,
    ExceptionRecord,
    RawEvent,
    ScheduleEntry,
)
from adherence.models.orm_models import (
    AgentAdherenceEvent,
    AgentAdherenceException,
    AgentAdherenceSummary,
    AgentSchedule,
)
from adherence.services.errors import StorageWriteError, StoreReadError
from adherence.services.perf_monitor import timed_async
from adherence.services.scoring import APPROVED_STATUS
from adherence.services.timeline import DayWindow

logger = logging.getLogger("adherence-db")


def _to_schedule_entry(row: AgentSchedule) -> ScheduleEntry:
    return ScheduleEntry(
        employee_id=str(row.employee_id),
        schedule_date=row.schedule_date,
        start_time=row.shift_start,
        end_time=row.shift_end,
        is_break=bool(row.is_break),
        break_duration_minutes=int(row.break_duration or 0),
        is_confirmed=bool(row.is_confirmed),
        id=str(row.id) if row.id is not None else None,
    )


class EventStore:
    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def fetch_events(self, employee_id: str, day: DayWindow) -> List[RawEvent]:
        """All events for the employee inside [day.start, day.end), oldest first."""
        stmt = (
            select(AgentAdherenceEvent)
            .where(
                AgentAdherenceEvent.employee_id == employee_id,
                AgentAdherenceEvent.event_timestamp >= day.start,
                AgentAdherenceEvent.event_timestamp < day.end,
            )
            .order_by(AgentAdherenceEvent.event_timestamp.asc())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StoreReadError(f"Failed to read events for employee {employee_id}: {e}") from e

        return [
            RawEvent.build(
                employee_id=str(row.employee_id),
                event_timestamp=row.event_timestamp,
                event_type=row.event_type,
                application_name=row.application_name,
                is_work_application=row.is_work_application,
                metadata=row.event_metadata,
            )
            for row in rows
        ]


class ScheduleStore:
    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def _fetch(self, stmt) -> list:
        try:
            async with self._session_factory() as session:
                return list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise StoreReadError(f"Failed to read schedules: {e}") from e

    async def fetch_shift(self, employee_id: str, schedule_date: date) -> Optional[ScheduleEntry]:
        """The employee's confirmed working shift; the earliest one if several exist."""
        stmt = (
            select(AgentSchedule)
            .where(
                AgentSchedule.employee_id == employee_id,
                AgentSchedule.schedule_date == schedule_date,
                AgentSchedule.is_confirmed.is_(True),
                AgentSchedule.is_break.is_(False),
            )
            .order_by(AgentSchedule.shift_start.asc().nulls_last())
            .limit(1)
        )
        rows = await self._fetch(stmt)
        return _to_schedule_entry(rows[0]) if rows else None

    async def fetch_breaks(self, employee_id: str, schedule_date: date) -> List[ScheduleEntry]:
        stmt = (
            select(AgentSchedule)
            .where(
                AgentSchedule.employee_id == employee_id,
                AgentSchedule.schedule_date == schedule_date,
                AgentSchedule.is_confirmed.is_(True),
                AgentSchedule.is_break.is_(True),
            )
            .order_by(AgentSchedule.shift_start.asc())
        )
        return [_to_schedule_entry(row) for row in await self._fetch(stmt)]

    async def list_scheduled_shifts(self, schedule_date: date) -> List[ScheduleEntry]:
        """One confirmed shift per scheduled employee, ordered by employee id."""
        stmt = (
            select(AgentSchedule)
            .where(
                AgentSchedule.schedule_date == schedule_date,
                AgentSchedule.is_confirmed.is_(True),
                AgentSchedule.is_break.is_(False),
            )
            .order_by(AgentSchedule.employee_id.asc(), AgentSchedule.shift_start.asc().nulls_last())
        )
        shifts: List[ScheduleEntry] = []
        seen: set[str] = set()
        for row in await self._fetch(stmt):
            entry = _to_schedule_entry(row)
            if entry.employee_id in seen:
                continue
            seen.add(entry.employee_id)
            shifts.append(entry)
        return shifts


class ExceptionStore:
    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    async def fetch_approved(self, employee_id: str, day: DayWindow) -> List[ExceptionRecord]:
        """
        Approved exceptions touching the day.

        A record with a time window matches when the window overlaps the
        day; one without a window matches on its ``exception_date``.
        """
        # Half-open overlap; a start-only window is an instant inside the day
        overlaps_window = and_(
            AgentAdherenceException.window_start.is_not(None),
            AgentAdherenceException.window_start < day.end,
            or_(
                and_(
                    AgentAdherenceException.window_end.is_not(None),
                    AgentAdherenceException.window_end > day.start,
                ),
                and_(
                    AgentAdherenceException.window_end.is_(None),
                    AgentAdherenceException.window_start >= day.start,
                ),
            ),
        )
        same_date = and_(
            AgentAdherenceException.window_start.is_(None),
            AgentAdherenceException.exception_date == day.schedule_date,
        )
        stmt = (
            select(AgentAdherenceException)
            .where(
                AgentAdherenceException.employee_id == employee_id,
                AgentAdherenceException.status == APPROVED_STATUS,
                or_(overlaps_window, same_date),
            )
            .order_by(AgentAdherenceException.created_at.asc())
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise StoreReadError(f"Failed to read exceptions for employee {employee_id}: {e}") from e

        return [
            ExceptionRecord(
                id=str(row.id),
                employee_id=str(row.employee_id),
                exception_type=row.exception_type,
                status=row.status,
                exception_date=row.exception_date,
                window_start=row.window_start,
                window_end=row.window_end,
                requested_adjustment_minutes=row.requested_adjustment_minutes,
                approved_adjustment_minutes=row.approved_adjustment_minutes,
            )
            for row in rows
        ]


class SummaryWriter:
    """Idempotent upsert keyed on (employee_id, schedule_date)."""

    def __init__(self, session_factory=AsyncSessionLocal):
        self._session_factory = session_factory

    @timed_async
    async def upsert(self, record: AdherenceSummaryRecord) -> None:
        row = record.to_row()
        stmt = insert(AgentAdherenceSummary).values(**row)
        # Every computed column is replaced; id and created_at survive re-runs
        update_cols = {
            name: stmt.excluded[name]
            for name in row
            if name not in ("employee_id", "schedule_date")
        }
        update_cols["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(
            constraint="uq_summaries_employee_date",
            set_=update_cols,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Summary upsert failed",
                extra={"employee_id": record.employee_id, "schedule_date": record.schedule_date.isoformat()},
            )
            raise StorageWriteError(
                f"Failed to write summary for employee {record.employee_id} "
                f"on {record.schedule_date.isoformat()}: {e}"
            ) from e
