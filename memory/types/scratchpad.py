"""Scratchpad entry models."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ScratchpadKind(str, Enum):
    OBSERVATION = "observation"
    PENDING_ACTION = "pending-action"
    LEARNED_PREFERENCE = "learned-preference"


class ScratchpadEntry(BaseModel):
    """Agent working-memory record, append-only apart from ``consumed_at``."""

    model_config = ConfigDict(frozen=True)

    id: str
    scope: str
    kind: ScratchpadKind
    content: str
    created_at: datetime
    consumed_at: datetime | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    source: str = "agent"
    priority: int = 0
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class ScratchpadSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    observation_count: int = 0
    pending_action_count: int = 0
    learned_preference_count: int = 0
    recent_observations: tuple[ScratchpadEntry, ...] = ()


def summarize_entries(entries: Sequence[ScratchpadEntry], recent: int = 5) -> ScratchpadSummary:
    """Counts by kind plus the newest ``recent`` observations."""
    counts = {kind: 0 for kind in ScratchpadKind}
    for entry in entries:
        counts[entry.kind] += 1
    observations = sorted(
        (entry for entry in entries if entry.kind is ScratchpadKind.OBSERVATION),
        key=lambda entry: (entry.created_at, entry.id),
        reverse=True,
    )
    return ScratchpadSummary(
        observation_count=counts[ScratchpadKind.OBSERVATION],
        pending_action_count=counts[ScratchpadKind.PENDING_ACTION],
        learned_preference_count=counts[ScratchpadKind.LEARNED_PREFERENCE],
        recent_observations=tuple(observations[:recent]),
    )
