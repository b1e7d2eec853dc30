"""Confidence scoring and ranking for suggestion candidates."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cognition.patterns import UserPatterns
from cognition.quiet_signals import QuietSignals
from cognition.staleness import StalenessLevel, StalenessResult
from core.engine_config import ConfidenceConfig
from world_model.entities import EntityKind
from world_model.relationships import RelationshipEdge

CONFIDENCE_THRESHOLDS = (
    ("very-high", 0.85),
    ("high", 0.70),
    ("medium", 0.50),
)


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_URGENCY_FOR_LEVEL = {
    StalenessLevel.FRESH: Urgency.LOW,
    StalenessLevel.AGING: Urgency.MEDIUM,
    StalenessLevel.STALE: Urgency.HIGH,
    StalenessLevel.CRITICAL: Urgency.CRITICAL,
}


class SuggestionCandidate(BaseModel):
    """Something a rule thinks might be worth surfacing."""

    model_config = ConfigDict(frozen=True)

    trigger_type: str
    title: str
    proposed_action: str
    entity_kind: EntityKind | None = None
    entity_id: str | None = None
    urgency: Urgency | None = None
    triggered_at: datetime
    base_relevance: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def entity_key(self) -> str | None:
        if self.entity_kind is None or self.entity_id is None:
            return None
        return f"{self.entity_kind.value}:{self.entity_id}"


class Suggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    trigger_type: str
    title: str
    proposed_action: str
    confidence: float
    confidence_level: str
    urgency: Urgency
    should_surface: bool
    gate_reason: str
    stale_level: StalenessLevel | None = None
    triggered_at: datetime
    related_entities: tuple[RelationshipEdge, ...] = ()

    @field_validator("confidence")
    @classmethod
    def _bounded(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("confidence must be within [0, 1]")
        return value


class ConfidenceBreakdown(BaseModel):
    """Factors behind a score, kept for explanation output."""

    model_config = ConfigDict(frozen=True)

    base_relevance: float
    acceptance_multiplier: float
    ignored: bool
    score: float
    reasoning: tuple[str, ...] = ()


def explain_candidate(
    candidate: SuggestionCandidate,
    patterns: UserPatterns,
    staleness: StalenessResult | None = None,
    *,
    config: ConfidenceConfig | None = None,
) -> ConfidenceBreakdown:
    cfg = config or ConfidenceConfig()
    reasoning: list[str] = []
    if staleness is not None:
        base = cfg.level_relevance.get(staleness.stale_level.value, cfg.default_relevance)
        reasoning.append(f"Entity is {staleness.stale_level.value} ({staleness.age_in_days}d)")
    elif candidate.base_relevance is not None:
        base = candidate.base_relevance
    else:
        base = cfg.default_relevance

    rate = patterns.acceptance_rate(candidate.trigger_type)
    if rate is None:
        multiplier = 1.0
        reasoning.append("No feedback history for this suggestion type")
    else:
        multiplier = 0.5 + rate
        reasoning.append(f"Accepted {round(rate * 100)}% of the time")

    score = base * multiplier
    ignored = patterns.is_ignored(candidate.trigger_type)
    if ignored:
        score *= cfg.ignored_penalty
        reasoning.append("User usually dismisses this suggestion type")

    return ConfidenceBreakdown(
        base_relevance=base,
        acceptance_multiplier=multiplier,
        ignored=ignored,
        score=round(max(0.0, min(1.0, score)), 4),
        reasoning=tuple(reasoning),
    )


def score_candidate(
    candidate: SuggestionCandidate,
    patterns: UserPatterns,
    quiet: QuietSignals | None = None,
    staleness: StalenessResult | None = None,
    *,
    config: ConfidenceConfig | None = None,
) -> float:
    """Return a confidence score in [0, 1].

    ``quiet`` does not change the score; timing only affects whether the
    suggestion is surfaced.
    """
    return explain_candidate(candidate, patterns, staleness, config=config).score


def confidence_level(score: float) -> str:
    for label, threshold in CONFIDENCE_THRESHOLDS:
        if score >= threshold:
            return label
    return "low"


def default_urgency(
    candidate: SuggestionCandidate, staleness: StalenessResult | None = None
) -> Urgency:
    if candidate.urgency is not None:
        return candidate.urgency
    if staleness is not None:
        return _URGENCY_FOR_LEVEL[staleness.stale_level]
    return Urgency.LOW


def suggestion_id(candidate: SuggestionCandidate) -> str:
    """Stable id; the prefix before ``:`` is the trigger type."""
    material = "|".join(
        [
            candidate.trigger_type,
            candidate.entity_key or "",
            candidate.title,
            candidate.proposed_action,
        ]
    )
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()[:12]
    return f"{candidate.trigger_type}:{digest}"


def trigger_type_from_id(suggestion_id_value: str) -> str:
    trigger_type, sep, digest = suggestion_id_value.rpartition(":")
    if not sep or not trigger_type or not digest:
        raise ValueError(f"Malformed suggestion id {suggestion_id_value!r}")
    return trigger_type


def rank_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Surfaced first, then score, staleness, recency and id."""

    def sort_key(item: Suggestion) -> tuple:
        level_rank = item.stale_level.rank if item.stale_level is not None else -1
        return (
            not item.should_surface,
            -item.confidence,
            -level_rank,
            -item.triggered_at.timestamp(),
            item.id,
        )

    return sorted(suggestions, key=sort_key)
