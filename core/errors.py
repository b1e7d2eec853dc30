"""Error taxonomy for the attention engine."""

from __future__ import annotations


class AXError(Exception):
    """Base class for engine errors."""


class InvalidTimestamp(AXError, ValueError):
    """Raised for malformed, negative, non-finite or future timestamps."""


class MissingEntityReference(AXError, LookupError):
    """Raised in strict graph builds when an edge target does not exist."""

    def __init__(self, kind: str, entity_id: str, target: str) -> None:
        super().__init__(f"{kind}:{entity_id} references missing {target}")
        self.kind = kind
        self.entity_id = entity_id
        self.target = target


class InsufficientSampleSize(AXError):
    """Raised when a rate is requested for a type with no samples."""

    def __init__(self, suggestion_type: str, samples: int = 0) -> None:
        super().__init__(f"No acceptance data for {suggestion_type!r} ({samples} samples)")
        self.suggestion_type = suggestion_type
        self.samples = samples


class StoreUnavailable(AXError):
    """Raised when the event log or scratchpad backing store fails."""


class UnsupportedSchemaVersion(AXError, ValueError):
    """Raised when a provider payload carries an unknown schema version."""
