"""
Typed event metadata.

Each capture-agent event family carries its own metadata variant. The
stored JSONB bag is parsed exactly once, when a row becomes a domain
RawEvent, and every variant is selected by the ``kind`` discriminator.
"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _MetadataBase(BaseModel):
    # Frozen like the events that carry it; unknown agent keys are dropped
    model_config = ConfigDict(frozen=True, extra="ignore")


class SessionMetadata(_MetadataBase):
    """LOGIN / LOGOFF (including session lock/unlock)."""
    kind: Literal["session"] = "session"
    source: Optional[str] = None        # "event_log" | "session_switch" | ...
    reason: Optional[str] = None        # "lock" | "unlock" | "logon" | ...
    machine: Optional[str] = None
    event_id: Optional[int] = None
    note: Optional[str] = None


class IdleMetadata(_MetadataBase):
    kind: Literal["idle"] = "idle"
    idle_seconds: Optional[float] = None
    idle_session_seconds: Optional[float] = None


class BreakMetadata(_MetadataBase):
    kind: Literal["break"] = "break"
    scheduled_break_id: Optional[str] = None
    scheduled_start_time: Optional[str] = None
    scheduled_end_time: Optional[str] = None
    scheduled_duration_minutes: Optional[int] = None
    break_duration_minutes: Optional[float] = None


class ApplicationMetadata(_MetadataBase):
    """WINDOW_CHANGE and APPLICATION_* events."""
    kind: Literal["application"] = "application"
    process_name: Optional[str] = None
    process_path: Optional[str] = None
    process_id: Optional[int] = None
    window_title: Optional[str] = None


class BrowserMetadata(_MetadataBase):
    kind: Literal["browser"] = "browser"
    url: Optional[str] = None
    domain: Optional[str] = None
    window_title: Optional[str] = None


class ClientWebsiteMetadata(_MetadataBase):
    kind: Literal["client_website"] = "client_website"
    client_name: Optional[str] = None
    domain: Optional[str] = None
    url: Optional[str] = None
    website_url: Optional[str] = None


class CommunicationMetadata(_MetadataBase):
    """Calling apps and Teams meetings/chats."""
    kind: Literal["communication"] = "communication"
    app_name: Optional[str] = None
    meeting_title: Optional[str] = None
    call_id: Optional[str] = None


EventMetadata = Annotated[
    Union[
        SessionMetadata,
        IdleMetadata,
        BreakMetadata,
        ApplicationMetadata,
        BrowserMetadata,
        ClientWebsiteMetadata,
        CommunicationMetadata,
    ],
    Field(discriminator="kind"),
]

_metadata_adapter: TypeAdapter = TypeAdapter(EventMetadata)

# Event type (string value) -> metadata kind
METADATA_KIND_BY_EVENT_TYPE: dict[str, str] = {
    "LOGIN": "session",
    "LOGOFF": "session",
    "IDLE_START": "idle",
    "IDLE_END": "idle",
    "BREAK_START": "break",
    "BREAK_END": "break",
    "WINDOW_CHANGE": "application",
    "APPLICATION_FOCUS": "application",
    "APPLICATION_START": "application",
    "APPLICATION_END": "application",
    "BROWSER_TAB_CHANGE": "browser",
    "CLIENT_WEBSITE_ACCESS": "client_website",
    "CALLING_APP_START": "communication",
    "CALLING_APP_IN_CALL": "communication",
    "CALLING_APP_END": "communication",
    "TEAMS_MEETING_START": "communication",
    "TEAMS_MEETING_END": "communication",
    "TEAMS_CHAT_ACTIVE": "communication",
    "CALL_START": "communication",
    "CALL_END": "communication",
}


def parse_metadata(event_type: str, raw: Optional[dict[str, Any]]) -> EventMetadata:
    """
    Build the metadata variant for ``event_type`` from a raw JSON bag.

    Raises ``ValueError`` for an event type outside the closed enum and
    pydantic's ``ValidationError`` (a ``ValueError``) for mistyped fields.
    """
    kind = METADATA_KIND_BY_EVENT_TYPE.get(str(getattr(event_type, "value", event_type)))
    if kind is None:
        raise ValueError(f"Unknown event type: {event_type!r}")
    payload = {k: v for k, v in (raw or {}).items() if v not in ("", None)}
    payload["kind"] = kind
    return _metadata_adapter.validate_python(payload)
