"""ORM Models for the Adherence Engine — SQLAlchemy 2.0

Events, schedules and exceptions are owned by other services and only read
here. ``agent_adherence_summaries`` is owned by this engine.
"""
import uuid
from datetime import datetime, date, time
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime, Date, Time,
    UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from adherence.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# ── RAW EVENTS (read-only, partitioned by month upstream) ─────────────────────
class AgentAdherenceEvent(Base):
    __tablename__ = "agent_adherence_events"
    __table_args__ = (
        Index("idx_events_employee_timestamp", "employee_id", "event_timestamp"),
    )
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), primary_key=True)
    employee_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), index=True)
    workstation_id: Mapped[Optional[str]] = mapped_column(String(100))
    nt: Mapped[Optional[str]] = mapped_column(String(100))
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    application_name: Mapped[Optional[str]] = mapped_column(String(255))
    application_path: Mapped[Optional[str]] = mapped_column(String(500))
    window_title: Mapped[Optional[str]] = mapped_column(String(500))
    is_work_application: Mapped[Optional[bool]] = mapped_column(Boolean)
    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONB)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ── SCHEDULES (read-only) ─────────────────────────────────────────────────────
class AgentSchedule(Base):
    __tablename__ = "agent_schedules"
    __table_args__ = (
        Index("idx_agent_schedules_employee_date", "employee_id", "schedule_date"),
    )
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    employee_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False)
    schedule_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Local wall-clock times in ADHERENCE_TIMEZONE
    shift_start: Mapped[Optional[time]] = mapped_column(Time)
    shift_end: Mapped[Optional[time]] = mapped_column(Time)
    is_break: Mapped[bool] = mapped_column(Boolean, default=False)
    break_duration: Mapped[int] = mapped_column(Integer, default=0)   # minutes
    is_confirmed: Mapped[bool] = mapped_column(Boolean, default=True)


# ── EXCEPTIONS (read-only; managed by People Ops) ─────────────────────────────
class AgentAdherenceException(Base):
    __tablename__ = "agent_adherence_exceptions"
    __table_args__ = (
        Index("idx_exceptions_employee_date", "employee_id", "exception_date"),
    )
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    employee_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    exception_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # LATE_START | EARLY_END | MISSED_BREAK | EXTENDED_BREAK | TECHNICAL_ISSUE | OTHER
    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    window_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    window_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), default="PENDING", index=True)
    justification: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requested_adjustment_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    approved_adjustment_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    reviewed_by: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


# ── SUMMARIES (owned) ─────────────────────────────────────────────────────────
class AgentAdherenceSummary(Base):
    __tablename__ = "agent_adherence_summaries"
    __table_args__ = (
        UniqueConstraint("employee_id", "schedule_date", name="uq_summaries_employee_date"),
        Index("idx_summaries_date", "schedule_date"),
    )
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    employee_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    schedule_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Scheduled
    scheduled_start_time: Mapped[Optional[time]] = mapped_column(Time)
    scheduled_end_time: Mapped[Optional[time]] = mapped_column(Time)
    scheduled_duration_minutes: Mapped[int] = mapped_column(Integer, default=0)
    # Actual
    actual_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_duration_minutes: Mapped[int] = mapped_column(Integer, default=0)
    # Variances
    start_variance_minutes: Mapped[int] = mapped_column(Integer, default=0)
    end_variance_minutes: Mapped[int] = mapped_column(Integer, default=0)
    # Breaks
    break_compliance_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2))
    missed_breaks_count: Mapped[int] = mapped_column(Integer, default=0)
    extended_breaks_count: Mapped[int] = mapped_column(Integer, default=0)
    # Activity
    productive_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    idle_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    away_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    non_work_app_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    # Overall; unbounded above, so wider than the break percentage
    adherence_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 2))
    # Audit detail
    scheduled_breaks: Mapped[Optional[list]] = mapped_column(JSONB)
    actual_breaks: Mapped[Optional[list]] = mapped_column(JSONB)
    exception_adjustments: Mapped[Optional[list]] = mapped_column(JSONB)
    calculated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
