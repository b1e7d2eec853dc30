"""Pluggable rules that propose suggestion candidates from workspace state."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from cognition.confidence import SuggestionCandidate, Urgency
from cognition.staleness import StalenessLevel, StalenessResult, format_age
from world_model.entities import EntityKind, EntityRef, WorkspaceEntities
from world_model.relationships import RelationshipMap

UNTAGGED_NOTE_MIN_DAYS = 7


@dataclass
class CandidateContext:
    """Read-only view handed to every rule."""

    entities: WorkspaceEntities
    relationships: RelationshipMap
    staleness: dict[str, StalenessResult]
    now: datetime
    extras: dict[str, object] = field(default_factory=dict)

    def result_for(self, entity: EntityRef) -> StalenessResult | None:
        return self.staleness.get(entity.key)


CandidateRule = Callable[[CandidateContext], Iterable[SuggestionCandidate]]


def _candidate(
    ctx: CandidateContext,
    entity: EntityRef,
    trigger_type: str,
    title: str,
    proposed_action: str,
    urgency: Urgency | None = None,
) -> SuggestionCandidate:
    return SuggestionCandidate(
        trigger_type=trigger_type,
        title=title,
        proposed_action=proposed_action,
        entity_kind=entity.kind,
        entity_id=entity.id,
        urgency=urgency,
        triggered_at=ctx.now,
    )


def untagged_note_rule(ctx: CandidateContext) -> Iterable[SuggestionCandidate]:
    for note in ctx.entities.notes:
        result = ctx.result_for(note)
        if note.tags or result is None or result.age_in_days < UNTAGGED_NOTE_MIN_DAYS:
            continue
        yield _candidate(
            ctx,
            note,
            "tag-suggestion",
            f"Tag note '{note.title or note.id}'",
            "note:add-tags",
        )


def blocker_escalation_rule(ctx: CandidateContext) -> Iterable[SuggestionCandidate]:
    impact = ctx.relationships.blocker_impact()
    for blocker in ctx.entities.blockers:
        result = ctx.result_for(blocker)
        if not blocker.is_active_blocker or result is None:
            continue
        if result.stale_level.rank < StalenessLevel.STALE.rank:
            continue
        blocked = len(impact.get(blocker.id, ()))
        title = f"Blocker '{blocker.title or blocker.id}' open since {format_age(result.age_in_days).lower()}"
        if blocked:
            title += f", blocking {blocked} task{'s' if blocked != 1 else ''}"
        yield _candidate(ctx, blocker, "blocker-escalation", title, "blocker:escalate")


def project_check_in_rule(ctx: CandidateContext) -> Iterable[SuggestionCandidate]:
    for project in ctx.entities.projects:
        result = ctx.result_for(project)
        if result is None or result.stale_level is not StalenessLevel.CRITICAL:
            continue
        yield _candidate(
            ctx,
            project,
            "project-check-in",
            f"Check in on '{project.title or project.id}'",
            "project:review",
        )


def pending_brief_rule(ctx: CandidateContext) -> Iterable[SuggestionCandidate]:
    for call in ctx.entities.calls:
        if call.status != "pending-brief":
            continue
        yield _candidate(
            ctx,
            call,
            "generate-brief",
            f"Generate brief for '{call.title or call.id}'",
            "call:generate-brief",
            urgency=Urgency.MEDIUM,
        )


DEFAULT_RULES: tuple[CandidateRule, ...] = (
    untagged_note_rule,
    blocker_escalation_rule,
    project_check_in_rule,
    pending_brief_rule,
)


def collect_candidates(
    ctx: CandidateContext, rules: Iterable[CandidateRule] | None = None
) -> list[SuggestionCandidate]:
    candidates: list[SuggestionCandidate] = []
    for rule in DEFAULT_RULES if rules is None else rules:
        candidates.extend(rule(ctx))
    return candidates
