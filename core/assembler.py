"""Snapshot assembly: one immutable attention state per recompute."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from cognition.confidence import (
    Suggestion,
    confidence_level,
    default_urgency,
    explain_candidate,
    rank_suggestions,
    suggestion_id,
)
from cognition.patterns import UserPatterns, analyze_patterns, is_good_time_for_suggestions
from cognition.quiet_signals import QuietHours, QuietSignals, detect_quiet_signals
from cognition.staleness import (
    StalenessContext,
    StalenessOverview,
    StalenessResult,
    score_staleness,
    summarize_staleness,
    to_utc_datetime,
)
from core.engine_config import EngineConfig
from governance.surface_gate import surface_decision
from memory.types.events import TrackableEvent
from memory.types.scratchpad import ScratchpadEntry, ScratchpadSummary, summarize_entries
from planner.candidate_rules import CandidateContext, CandidateRule, collect_candidates
from world_model.entities import EntityKind, EntityRef, WorkspaceEntities
from world_model.relationships import (
    RelationshipEdge,
    RelationshipMap,
    RelationshipType,
    build_relationship_map,
)

logger = logging.getLogger("ax.assembler")


class AXStateGraph(BaseModel):
    """Everything an agent needs to decide what deserves attention now."""

    model_config = ConfigDict(frozen=True)

    generated_at: datetime
    user_id: str
    quiet_hours: QuietHours | None = None
    staleness: dict[str, StalenessResult]
    staleness_overview: StalenessOverview
    relationships: RelationshipMap
    patterns: UserPatterns
    quiet: QuietSignals
    good_time_for_suggestions: bool = True
    suggestions: tuple[Suggestion, ...] = ()
    scratchpad: ScratchpadSummary | None = None

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    def surfaced(self) -> list[Suggestion]:
        return [item for item in self.suggestions if item.should_surface]


def _blocked_task_ids(entities: WorkspaceEntities, relationships: RelationshipMap) -> set[str]:
    active = {blocker.id for blocker in entities.blockers if blocker.is_active_blocker}
    blocked = {
        edge.to_id
        for edge in relationships.edges
        if edge.type is RelationshipType.BLOCKS and edge.from_id in active
    }
    blocked.update(task.id for task in entities.tasks if task.status == "blocked")
    return blocked


def _context_for(
    entity: EntityRef,
    projects_with_blockers: set[str],
    blocked_tasks: set[str],
) -> StalenessContext:
    if entity.kind is EntityKind.PROJECT:
        return StalenessContext(has_blockers=entity.id in projects_with_blockers)
    if entity.kind is EntityKind.NOTE:
        return StalenessContext(has_untagged_content=not entity.tags)
    if entity.kind is EntityKind.TASK:
        return StalenessContext(is_blocked=entity.id in blocked_tasks)
    if entity.kind is EntityKind.CALL:
        return StalenessContext(has_pending_brief=entity.status == "pending-brief")
    return StalenessContext()


def assemble(
    entities: WorkspaceEntities,
    events: Sequence[TrackableEvent],
    quiet_hours: QuietHours | None = None,
    *,
    now: datetime,
    user_id: str = "local",
    candidate_rules: Iterable[CandidateRule] | None = None,
    scratchpad_entries: Sequence[ScratchpadEntry] | None = None,
    config: EngineConfig | None = None,
) -> AXStateGraph:
    """Recompute the full state graph from scratch.

    Pure: no I/O, and identical inputs give an identical graph. Invalid
    timestamps propagate as ``InvalidTimestamp``.
    """
    cfg = config or EngineConfig()
    current = to_utc_datetime(now, "now")

    relationships = build_relationship_map(entities)
    blocked_tasks = _blocked_task_ids(entities, relationships)
    projects_with_blockers = {
        blocker.project_id
        for blocker in entities.blockers
        if blocker.is_active_blocker and blocker.project_id
    }

    staleness: dict[str, StalenessResult] = {}
    scored: list[EntityRef] = []
    for entity in entities.all():
        last_activity = entity.last_activity
        if last_activity is None:
            logger.debug("No activity timestamp for %s; skipping staleness", entity.key)
            continue
        staleness[entity.key] = score_staleness(
            last_activity,
            _context_for(entity, projects_with_blockers, blocked_tasks),
            now=current,
            kind=entity.kind,
            config=cfg.staleness,
        )
        scored.append(entity)
    staleness = dict(sorted(staleness.items()))

    stuck = {
        task_id
        for task_id in blocked_tasks
        if (result := staleness.get(f"task:{task_id}")) is not None
        and result.age_in_days >= cfg.staleness.generic.aging
    }
    overview = summarize_staleness(scored, staleness, stuck_task_ids=stuck)

    patterns = analyze_patterns(events, now=current, config=cfg.patterns, tz=cfg.timezone)
    quiet = detect_quiet_signals(
        events,
        current,
        quiet_hours,
        config=cfg.quiet,
        tz=cfg.timezone,
        most_active_hours=patterns.most_active_hours,
    )

    ctx = CandidateContext(
        entities=entities,
        relationships=relationships,
        staleness=staleness,
        now=current,
    )
    suggestions: dict[str, Suggestion] = {}
    for candidate in collect_candidates(ctx, candidate_rules):
        result = staleness.get(candidate.entity_key) if candidate.entity_key else None
        breakdown = explain_candidate(candidate, patterns, result, config=cfg.confidence)
        urgency = default_urgency(candidate, result)
        decision = surface_decision(
            breakdown.score,
            quiet,
            urgency=urgency,
            ignored=breakdown.ignored,
            config=cfg.confidence,
        )
        related: tuple[RelationshipEdge, ...] = ()
        if candidate.entity_kind is not None and candidate.entity_id is not None:
            related = tuple(relationships.edges_of(candidate.entity_kind, candidate.entity_id))
        suggestion = Suggestion(
            id=suggestion_id(candidate),
            trigger_type=candidate.trigger_type,
            title=candidate.title,
            proposed_action=candidate.proposed_action,
            confidence=breakdown.score,
            confidence_level=confidence_level(breakdown.score),
            urgency=urgency,
            should_surface=decision.allowed,
            gate_reason=decision.reason,
            stale_level=result.stale_level if result else None,
            triggered_at=candidate.triggered_at,
            related_entities=related,
        )
        # Identical candidates from different rules collapse to one suggestion.
        suggestions.setdefault(suggestion.id, suggestion)

    ranked = rank_suggestions(suggestions.values())
    scratchpad = (
        summarize_entries(scratchpad_entries, cfg.scratchpad.summary_recent)
        if scratchpad_entries is not None
        else None
    )
    logger.info(
        "Assembled snapshot for %s: %d entities, %d suggestions (%d surfaced)",
        user_id,
        len(staleness),
        len(ranked),
        sum(1 for item in ranked if item.should_surface),
    )
    return AXStateGraph(
        generated_at=current,
        user_id=user_id,
        quiet_hours=quiet_hours,
        staleness=staleness,
        staleness_overview=overview,
        relationships=relationships,
        patterns=patterns,
        quiet=quiet,
        good_time_for_suggestions=is_good_time_for_suggestions(patterns, current, cfg.timezone),
        suggestions=tuple(ranked),
        scratchpad=scratchpad,
    )
