"""Confidence scoring and surfacing gate tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cognition.confidence import (
    Suggestion,
    SuggestionCandidate,
    Urgency,
    confidence_level,
    default_urgency,
    explain_candidate,
    rank_suggestions,
    score_candidate,
    suggestion_id,
    trigger_type_from_id,
)
from cognition.patterns import UserPatterns, analyze_patterns
from cognition.quiet_signals import QuietSignals
from cognition.staleness import StalenessLevel, StalenessResult
from governance.surface_gate import should_surface, surface_decision
from memory.types.events import new_event

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
CALM = QuietSignals()


def candidate(trigger_type: str = "tag-suggestion", **fields: object) -> SuggestionCandidate:
    return SuggestionCandidate(
        trigger_type=trigger_type,
        title="Tag note",
        proposed_action="note:add-tags",
        triggered_at=NOW,
        **fields,
    )


def staleness(level: StalenessLevel, age: int = 20) -> StalenessResult:
    return StalenessResult(age_in_days=age, stale_level=level)


def patterns_with(approved: int, dismissed: int, suggestion_type: str = "tag-suggestion") -> UserPatterns:
    events = [
        new_event(
            "suggestion:approved",
            session_id="s",
            timestamp=NOW - timedelta(minutes=i),
            event_id=f"a{i}",
            suggestion_type=suggestion_type,
        )
        for i in range(approved)
    ] + [
        new_event(
            "suggestion:dismissed",
            session_id="s",
            timestamp=NOW - timedelta(minutes=100 + i),
            event_id=f"d{i}",
            suggestion_type=suggestion_type,
        )
        for i in range(dismissed)
    ]
    return analyze_patterns(events, now=NOW)


def test_score_always_within_unit_interval() -> None:
    histories = [(0, 0), (5, 0), (0, 5), (1, 10), (3, 3)]
    for approved, dismissed in histories:
        patterns = patterns_with(approved, dismissed)
        for level in StalenessLevel:
            for relevance in (None, 0.0, 1.0):
                score = score_candidate(
                    candidate(base_relevance=relevance), patterns, CALM, staleness(level)
                )
                assert 0.0 <= score <= 1.0
                no_stale = score_candidate(candidate(base_relevance=relevance), patterns, CALM)
                assert 0.0 <= no_stale <= 1.0


def test_undefined_rate_is_neutral() -> None:
    score = score_candidate(candidate(), UserPatterns(), CALM, staleness(StalenessLevel.CRITICAL))
    assert score == 0.9


def test_acceptance_multiplier_and_clamp() -> None:
    always = patterns_with(approved=4, dismissed=0)
    never = patterns_with(approved=0, dismissed=2)

    assert score_candidate(candidate(), always, CALM, staleness(StalenessLevel.CRITICAL)) == 1.0
    assert score_candidate(candidate(), never, CALM, staleness(StalenessLevel.STALE, 6)) == 0.3
    assert score_candidate(candidate(), UserPatterns(), CALM) == 0.5
    assert score_candidate(candidate(base_relevance=0.8), UserPatterns(), CALM) == 0.8


def test_ignored_type_never_surfaces_even_when_critical() -> None:
    patterns = patterns_with(approved=1, dismissed=10)
    score = score_candidate(candidate(), patterns, CALM, staleness(StalenessLevel.CRITICAL))

    assert patterns.is_ignored("tag-suggestion")
    assert score == pytest.approx(0.9 * (0.5 + 1 / 11) * 0.1, abs=1e-4)
    assert should_surface(1.0, CALM, urgency=Urgency.CRITICAL, ignored=True) is False


def test_gate_rules() -> None:
    assert should_surface(0.9, CALM) is True
    assert should_surface(0.29, CALM) is False
    assert should_surface(0.3, CALM) is True
    assert should_surface(0.9, QuietSignals(within_quiet_hours=True), urgency=Urgency.CRITICAL) is False
    assert should_surface(0.9, QuietSignals(recent_burst_activity=True)) is False
    assert should_surface(0.9, QuietSignals(in_flow_state=True), urgency=Urgency.HIGH) is False
    assert should_surface(0.9, QuietSignals(in_flow_state=True), urgency=Urgency.CRITICAL) is True


def test_gate_reports_reason() -> None:
    decision = surface_decision(0.9, QuietSignals(within_quiet_hours=True))
    assert decision.allowed is False
    assert "quiet hours" in decision.reason


def test_confidence_levels() -> None:
    assert confidence_level(0.85) == "very-high"
    assert confidence_level(0.7) == "high"
    assert confidence_level(0.5) == "medium"
    assert confidence_level(0.49) == "low"


def test_default_urgency_follows_staleness() -> None:
    assert default_urgency(candidate()) is Urgency.LOW
    assert default_urgency(candidate(), staleness(StalenessLevel.STALE)) is Urgency.HIGH
    assert default_urgency(candidate(urgency=Urgency.MEDIUM), staleness(StalenessLevel.CRITICAL)) is Urgency.MEDIUM


def test_suggestion_ids_are_stable_and_carry_trigger_type() -> None:
    first = suggestion_id(candidate(entity_kind="note", entity_id="n1"))
    second = suggestion_id(candidate(entity_kind="note", entity_id="n1"))
    other = suggestion_id(candidate(entity_kind="note", entity_id="n2"))

    assert first == second
    assert first != other
    assert trigger_type_from_id(first) == "tag-suggestion"
    with pytest.raises(ValueError):
        trigger_type_from_id("no-separator")


def _suggestion(sid: str, score: float, surface: bool, level: StalenessLevel | None, minutes: int) -> Suggestion:
    return Suggestion(
        id=sid,
        trigger_type="x",
        title=sid,
        proposed_action="noop",
        confidence=score,
        confidence_level=confidence_level(score),
        urgency=Urgency.LOW,
        should_surface=surface,
        gate_reason="",
        stale_level=level,
        triggered_at=NOW - timedelta(minutes=minutes),
    )


def test_ranking_order() -> None:
    items = [
        _suggestion("x:hidden", 0.95, False, StalenessLevel.CRITICAL, 0),
        _suggestion("x:low", 0.4, True, StalenessLevel.CRITICAL, 0),
        _suggestion("x:stale", 0.8, True, StalenessLevel.STALE, 0),
        _suggestion("x:critical", 0.8, True, StalenessLevel.CRITICAL, 5),
        _suggestion("x:recent", 0.8, True, StalenessLevel.CRITICAL, 1),
    ]

    ranked = [item.id for item in rank_suggestions(items)]

    assert ranked == ["x:recent", "x:critical", "x:stale", "x:low", "x:hidden"]


def test_suggestion_rejects_out_of_range_confidence() -> None:
    with pytest.raises(ValueError):
        _suggestion("x:bad", 1.2, True, None, 0)


def test_breakdown_explains_the_score() -> None:
    breakdown = explain_candidate(candidate(), patterns_with(approved=1, dismissed=1), staleness(StalenessLevel.STALE, 6))

    assert breakdown.base_relevance == 0.6
    assert breakdown.acceptance_multiplier == 1.0
    assert breakdown.ignored is False
    assert breakdown.score == 0.6
    assert breakdown.reasoning == ("Entity is stale (6d)", "Accepted 50% of the time")
