"""
Engine configuration — single source of truth for the local timezone,
scoring weights, break tolerance and batch sizing.

Import from here in all services rather than hardcoding values.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# ── Scoring weights ────────────────────────────────────────────────────────────
# adherence = 0.2·start + 0.2·end + 0.2·break + 0.4·productivity
START_SCORE_WEIGHT: float = 0.2
END_SCORE_WEIGHT: float = 0.2
BREAK_SCORE_WEIGHT: float = 0.2
PRODUCTIVITY_SCORE_WEIGHT: float = 0.4

# Points lost per minute of start/end deviation (floor reached at 50 minutes)
VARIANCE_PENALTY_PER_MINUTE: float = 2.0

# ── Defaults ───────────────────────────────────────────────────────────────────
DEFAULT_TIMEZONE: str = "+02:00"
DEFAULT_BATCH_SIZE: int = 50
DEFAULT_BREAK_TOLERANCE_MINUTES: int = 5
DEFAULT_DAILY_RUN_HOUR_UTC: int = 22

_OFFSET_RE = re.compile(r"^(?:UTC)?([+-])(\d{2}):?(\d{2})$")


def parse_timezone(value: str) -> tzinfo:
    """
    Resolve a timezone setting.

    Accepts a fixed offset ("+02:00", "-0530", "UTC+03:00"), "UTC"/"Z",
    or an IANA zone name ("Africa/Cairo"). IANA zones follow DST, fixed
    offsets do not.
    """
    raw = (value or "").strip()
    if raw.upper() in ("UTC", "Z", ""):
        return timezone.utc

    match = _OFFSET_RE.match(raw.upper())
    if match:
        sign, hours, minutes = match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        if delta >= timedelta(hours=24):
            raise ValueError(f"Timezone offset out of range: {value!r}")
        return timezone(-delta if sign == "-" else delta)

    try:
        return ZoneInfo(raw)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValueError(f"Unknown timezone: {value!r}") from exc


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class EngineConfig:
    """Runtime parameters for one engine instance."""

    local_timezone: tzinfo = timezone(timedelta(hours=2))
    batch_size: int = DEFAULT_BATCH_SIZE
    break_tolerance_minutes: int = DEFAULT_BREAK_TOLERANCE_MINUTES

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if self.break_tolerance_minutes < 0:
            raise ValueError("break_tolerance_minutes must be >= 0")

    @classmethod
    def from_env(cls) -> "EngineConfig":
        return cls(
            local_timezone=parse_timezone(os.getenv("ADHERENCE_TIMEZONE", DEFAULT_TIMEZONE)),
            batch_size=_int_env("ADHERENCE_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            break_tolerance_minutes=_int_env(
                "ADHERENCE_BREAK_TOLERANCE_MINUTES", DEFAULT_BREAK_TOLERANCE_MINUTES
            ),
        )

    def local_today(self, now: datetime | None = None) -> date:
        now = now or datetime.now(timezone.utc)
        return now.astimezone(self.local_timezone).date()

    def local_yesterday(self, now: datetime | None = None) -> date:
        """The default target date for the daily batch run."""
        return self.local_today(now) - timedelta(days=1)


def daily_run_hour_utc() -> int:
    hour = _int_env("ADHERENCE_DAILY_RUN_HOUR_UTC", DEFAULT_DAILY_RUN_HOUR_UTC)
    if not 0 <= hour <= 23:
        raise ValueError("ADHERENCE_DAILY_RUN_HOUR_UTC must be between 0 and 23")
    return hour
