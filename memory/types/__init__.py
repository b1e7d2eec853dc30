"""Typed event and scratchpad payload models."""

from memory.types.events import (
    EVENT_TYPES,
    EventPayload,
    TrackableEvent,
    new_event,
    parse_payload,
)
from memory.types.scratchpad import (
    ScratchpadEntry,
    ScratchpadKind,
    ScratchpadSummary,
    summarize_entries,
)

__all__ = [
    "EVENT_TYPES",
    "EventPayload",
    "TrackableEvent",
    "new_event",
    "parse_payload",
    "ScratchpadEntry",
    "ScratchpadKind",
    "ScratchpadSummary",
    "summarize_entries",
]
