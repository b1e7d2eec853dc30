"""Trackable user-interaction event models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

EVENT_SCHEMA_VERSION = 1


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SuggestionApproved(_Payload):
    type: Literal["suggestion:approved"] = "suggestion:approved"
    suggestion_type: str
    edited_before_approve: bool = False


class SuggestionDismissed(_Payload):
    type: Literal["suggestion:dismissed"] = "suggestion:dismissed"
    suggestion_type: str


class SuggestionResponseTime(_Payload):
    type: Literal["suggestion:response-time"] = "suggestion:response-time"
    suggestion_id: str
    response_time_ms: int = Field(ge=0)


class FeatureUsed(_Payload):
    type: Literal["feature:used"] = "feature:used"
    feature: str


class NoteCreated(_Payload):
    type: Literal["note:created"] = "note:created"
    note_type: str = "note"
    word_count: int = Field(default=0, ge=0)


class SessionStarted(_Payload):
    type: Literal["session:started"] = "session:started"


class SessionEnded(_Payload):
    type: Literal["session:ended"] = "session:ended"
    duration_seconds: float = Field(ge=0)


class ShortcutUsed(_Payload):
    type: Literal["shortcut:used"] = "shortcut:used"
    shortcut: str


class Navigation(_Payload):
    type: Literal["navigation"] = "navigation"
    from_path: str
    to_path: str


class ActionTaken(_Payload):
    type: Literal["action:taken"] = "action:taken"
    intent: str
    context: dict[str, Any] = Field(default_factory=dict)


EventPayload = Annotated[
    SuggestionApproved
    | SuggestionDismissed
    | SuggestionResponseTime
    | FeatureUsed
    | NoteCreated
    | SessionStarted
    | SessionEnded
    | ShortcutUsed
    | Navigation
    | ActionTaken,
    Field(discriminator="type"),
]

EVENT_TYPES: tuple[str, ...] = (
    "suggestion:approved",
    "suggestion:dismissed",
    "suggestion:response-time",
    "feature:used",
    "note:created",
    "session:started",
    "session:ended",
    "shortcut:used",
    "navigation",
    "action:taken",
)

_payload_adapter: TypeAdapter[Any] = TypeAdapter(EventPayload)


def parse_payload(data: dict[str, Any]) -> EventPayload:
    """Validate a raw ``{"type": ..., ...}`` mapping into its payload model."""
    return _payload_adapter.validate_python(data)


class TrackableEvent(BaseModel):
    """Immutable interaction record appended to the event log."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    session_id: str
    payload: EventPayload
    schema_version: int = EVENT_SCHEMA_VERSION

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @property
    def type(self) -> str:
        return self.payload.type


def new_event(
    event_type: str,
    *,
    session_id: str,
    timestamp: datetime | None = None,
    event_id: str | None = None,
    **fields: Any,
) -> TrackableEvent:
    """Build a typed event from a type tag and payload fields."""
    return TrackableEvent(
        id=event_id or uuid.uuid4().hex,
        timestamp=timestamp or datetime.now(UTC),
        session_id=session_id,
        payload=parse_payload({"type": event_type, **fields}),
    )
