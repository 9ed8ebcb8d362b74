"""
Domain records passed between the engine components.

These are plain immutable dataclasses; ORM rows are converted into them by
the stores (services/stores.py) so the computation code never touches a
database session.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from adherence.models.event_metadata import EventMetadata, parse_metadata


class EventType(str, Enum):
    LOGIN = "LOGIN"
    LOGOFF = "LOGOFF"
    IDLE_START = "IDLE_START"
    IDLE_END = "IDLE_END"
    BREAK_START = "BREAK_START"
    BREAK_END = "BREAK_END"
    WINDOW_CHANGE = "WINDOW_CHANGE"
    APPLICATION_FOCUS = "APPLICATION_FOCUS"
    APPLICATION_START = "APPLICATION_START"
    APPLICATION_END = "APPLICATION_END"
    BROWSER_TAB_CHANGE = "BROWSER_TAB_CHANGE"
    CLIENT_WEBSITE_ACCESS = "CLIENT_WEBSITE_ACCESS"
    CALLING_APP_START = "CALLING_APP_START"
    CALLING_APP_IN_CALL = "CALLING_APP_IN_CALL"
    CALLING_APP_END = "CALLING_APP_END"
    TEAMS_MEETING_START = "TEAMS_MEETING_START"
    TEAMS_MEETING_END = "TEAMS_MEETING_END"
    TEAMS_CHAT_ACTIVE = "TEAMS_CHAT_ACTIVE"
    CALL_START = "CALL_START"
    CALL_END = "CALL_END"


# Events that open a foreground-activity span for the productivity walk
ACTIVITY_EVENT_TYPES: frozenset[EventType] = frozenset({
    EventType.WINDOW_CHANGE,
    EventType.APPLICATION_FOCUS,
    EventType.APPLICATION_START,
    EventType.BROWSER_TAB_CHANGE,
    EventType.CLIENT_WEBSITE_ACCESS,
    EventType.CALLING_APP_START,
    EventType.CALLING_APP_IN_CALL,
    EventType.TEAMS_MEETING_START,
    EventType.TEAMS_CHAT_ACTIVE,
    EventType.CALL_START,
})

# Activity whose type alone marks it as work when the classifier had no verdict
WORK_BY_NATURE_EVENT_TYPES: frozenset[EventType] = frozenset({
    EventType.CLIENT_WEBSITE_ACCESS,
    EventType.CALLING_APP_START,
    EventType.CALLING_APP_IN_CALL,
    EventType.TEAMS_MEETING_START,
    EventType.TEAMS_CHAT_ACTIVE,
    EventType.CALL_START,
})


@dataclass(frozen=True)
class RawEvent:
    employee_id: str
    event_timestamp: datetime           # timezone-aware
    event_type: EventType
    application_name: Optional[str] = None
    is_work_application: Optional[bool] = None   # None = unclassified
    metadata: Optional[EventMetadata] = None

    @classmethod
    def build(
        cls,
        employee_id: str,
        event_timestamp: datetime,
        event_type: str,
        application_name: Optional[str] = None,
        is_work_application: Optional[bool] = None,
        metadata: Optional[dict] = None,
    ) -> "RawEvent":
        """Validate a stored event once, turning the JSON bag into its typed variant."""
        if event_timestamp.tzinfo is None:
            raise ValueError("event_timestamp must be timezone-aware")
        kind = EventType(event_type)
        return cls(
            employee_id=str(employee_id),
            event_timestamp=event_timestamp,
            event_type=kind,
            application_name=application_name or None,
            is_work_application=is_work_application,
            metadata=parse_metadata(kind.value, metadata),
        )


@dataclass(frozen=True)
class ScheduleEntry:
    """
    One row of the external schedule.

    Shift rows use ``start_time``/``end_time``. Break rows use
    ``start_time`` plus ``break_duration_minutes`` and may carry an
    ``end_time`` bounding the window.
    """
    employee_id: str
    schedule_date: date
    start_time: Optional[time]
    end_time: Optional[time]
    is_break: bool = False
    break_duration_minutes: int = 0
    is_confirmed: bool = True
    id: Optional[str] = None


@dataclass(frozen=True)
class ExceptionRecord:
    id: str
    employee_id: str
    exception_type: str
    status: str
    exception_date: Optional[date] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    requested_adjustment_minutes: Optional[int] = None
    approved_adjustment_minutes: Optional[int] = None

    @property
    def adjustment_minutes(self) -> int:
        # An approved value (even 0) overrides whatever was requested
        if self.approved_adjustment_minutes is not None:
            return int(self.approved_adjustment_minutes)
        return int(self.requested_adjustment_minutes or 0)


@dataclass(frozen=True)
class Interval:
    """Half-open time span [start, end)."""
    start: datetime
    end: datetime
    kind: str = ""

    @property
    def minutes(self) -> float:
        return max(0.0, (self.end - self.start).total_seconds() / 60.0)


@dataclass(frozen=True)
class BreakWindow:
    """A scheduled break projected onto absolute time."""
    start: datetime
    end: datetime
    planned_minutes: float
    id: Optional[str] = None


@dataclass
class AdherenceSummaryRecord:
    """One computed employee-day, shaped like the ``agent_adherence_summaries`` row."""
    employee_id: str
    schedule_date: date
    scheduled_start_time: Optional[time] = None
    scheduled_end_time: Optional[time] = None
    scheduled_duration_minutes: int = 0
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    actual_duration_minutes: int = 0
    start_variance_minutes: int = 0
    end_variance_minutes: int = 0
    break_compliance_percentage: float = 100.0
    missed_breaks_count: int = 0
    extended_breaks_count: int = 0
    productive_time_minutes: int = 0
    idle_time_minutes: int = 0
    away_time_minutes: int = 0
    non_work_app_time_minutes: int = 0
    adherence_percentage: float = 0.0
    scheduled_breaks: list = field(default_factory=list)
    actual_breaks: list = field(default_factory=list)
    exception_adjustments: list = field(default_factory=list)
    calculated_at: Optional[datetime] = None
    # Sub-scores, kept for logging and the API response; not persisted
    score_breakdown: dict = field(default_factory=dict, compare=False)

    def to_row(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "schedule_date": self.schedule_date,
            "scheduled_start_time": self.scheduled_start_time,
            "scheduled_end_time": self.scheduled_end_time,
            "scheduled_duration_minutes": self.scheduled_duration_minutes,
            "actual_start_time": self.actual_start_time,
            "actual_end_time": self.actual_end_time,
            "actual_duration_minutes": self.actual_duration_minutes,
            "start_variance_minutes": self.start_variance_minutes,
            "end_variance_minutes": self.end_variance_minutes,
            "break_compliance_percentage": self.break_compliance_percentage,
            "missed_breaks_count": self.missed_breaks_count,
            "extended_breaks_count": self.extended_breaks_count,
            "productive_time_minutes": self.productive_time_minutes,
            "idle_time_minutes": self.idle_time_minutes,
            "away_time_minutes": self.away_time_minutes,
            "non_work_app_time_minutes": self.non_work_app_time_minutes,
            "adherence_percentage": self.adherence_percentage,
            "scheduled_breaks": self.scheduled_breaks,
            "actual_breaks": self.actual_breaks,
            "exception_adjustments": self.exception_adjustments,
            "calculated_at": self.calculated_at,
        }


@dataclass
class BatchError:
    employee_id: str
    message: str


@dataclass
class BatchResult:
    processed_count: int = 0
    failed_count: int = 0
    errors: list[BatchError] = field(default_factory=list)
    skipped_count: int = 0

    def to_dict(self) -> dict:
        return {
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "errors": [{"employee_id": e.employee_id, "message": e.message} for e in self.errors],
        }
