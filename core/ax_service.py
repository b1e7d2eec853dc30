"""Service facade used by the presentation layer."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from cognition.confidence import trigger_type_from_id
from cognition.quiet_signals import QuietHours
from core.assembler import AXStateGraph, assemble
from core.engine_config import EngineConfig
from core.errors import StoreUnavailable
from memory.event_log import EventLog
from memory.scratchpad import ScratchpadStore
from memory.types.events import TrackableEvent, new_event
from memory.types.scratchpad import ScratchpadEntry, ScratchpadKind
from planner.candidate_rules import CandidateRule
from world_model.entities import WorkspaceEntities
from world_model.providers import EntityProvider

logger = logging.getLogger("ax.service")

FEEDBACK_EVENT_TYPES = {
    "approve": "suggestion:approved",
    "dismiss": "suggestion:dismissed",
}


@dataclass
class SnapshotResult:
    """Snapshot or, when a store failed, the raw entities alone."""

    entities: WorkspaceEntities
    graph: AXStateGraph | None
    degraded: bool = False
    error: str = ""


class AXService:
    """Wires providers and stores into snapshot, feedback and scratchpad calls."""

    def __init__(
        self,
        entity_provider: EntityProvider,
        event_log: EventLog,
        scratchpad_factory: Callable[[str], ScratchpadStore] | None = None,
        config: EngineConfig | None = None,
        *,
        default_quiet_hours: QuietHours | None = None,
        candidate_rules: Iterable[CandidateRule] | None = None,
    ) -> None:
        self.entity_provider = entity_provider
        self.event_log = event_log
        self.scratchpad_factory = scratchpad_factory
        self.config = config or EngineConfig()
        self.default_quiet_hours = default_quiet_hours
        self.candidate_rules = tuple(candidate_rules) if candidate_rules is not None else None

    @staticmethod
    def _now(now: datetime | None) -> datetime:
        if now is None:
            return datetime.now(UTC)
        if now.tzinfo is None:
            return now.replace(tzinfo=UTC)
        return now.astimezone(UTC)

    def _scratchpad(self, user_id: str) -> ScratchpadStore:
        if self.scratchpad_factory is None:
            raise StoreUnavailable("No scratchpad store configured.")
        return self.scratchpad_factory(user_id)

    def recent_events(self, user_id: str, *, now: datetime | None = None) -> list[TrackableEvent]:
        """The bounded event window a snapshot reads."""
        current = self._now(now)
        retention = self.config.retention
        return self.event_log.query(
            user_id,
            since=current - timedelta(days=retention.query_window_days),
            until=current,
            limit=retention.max_events,
        )

    def snapshot(
        self,
        user_id: str,
        *,
        now: datetime | None = None,
        quiet_hours: QuietHours | None = None,
    ) -> AXStateGraph:
        current = self._now(now)
        entities = self.entity_provider.fetch(user_id)
        return self._assemble(user_id, entities, current, quiet_hours)

    def _assemble(
        self,
        user_id: str,
        entities: WorkspaceEntities,
        current: datetime,
        quiet_hours: QuietHours | None,
    ) -> AXStateGraph:
        events = self.recent_events(user_id, now=current)
        entries: list[ScratchpadEntry] | None = None
        if self.scratchpad_factory is not None:
            entries = self._scratchpad(user_id).read_all(now=current)
        return assemble(
            entities,
            events,
            quiet_hours or self.default_quiet_hours,
            now=current,
            user_id=user_id,
            candidate_rules=self.candidate_rules,
            scratchpad_entries=entries,
            config=self.config,
        )

    def safe_snapshot(
        self,
        user_id: str,
        *,
        now: datetime | None = None,
        quiet_hours: QuietHours | None = None,
    ) -> SnapshotResult:
        """Snapshot that degrades to raw entities when a store is unavailable."""
        current = self._now(now)
        entities = self.entity_provider.fetch(user_id)
        try:
            graph = self._assemble(user_id, entities, current, quiet_hours)
        except StoreUnavailable as exc:
            logger.warning("Snapshot degraded for %s: %s", user_id, exc)
            return SnapshotResult(entities=entities, graph=None, degraded=True, error=str(exc))
        return SnapshotResult(entities=entities, graph=graph)

    def track(
        self,
        user_id: str,
        event_type: str,
        *,
        session_id: str,
        now: datetime | None = None,
        **fields: Any,
    ) -> TrackableEvent:
        event = new_event(event_type, session_id=session_id, timestamp=self._now(now), **fields)
        self.event_log.append(user_id, event)
        if self.config.retention.prune_on_append:
            removed = self.prune_events(user_id, now=event.timestamp)
            if removed:
                logger.debug("Pruned %d events for %s", removed, user_id)
        return event

    def suggestion_feedback(
        self,
        user_id: str,
        suggestion_id: str,
        action: str,
        *,
        session_id: str = "",
        edited: bool = False,
        now: datetime | None = None,
    ) -> TrackableEvent:
        """Record approve/dismiss feedback for a suggestion id."""
        event_type = FEEDBACK_EVENT_TYPES.get(action)
        if event_type is None:
            raise ValueError(f"Unknown feedback action {action!r}; use approve or dismiss.")
        fields: dict[str, Any] = {"suggestion_type": trigger_type_from_id(suggestion_id)}
        if action == "approve":
            fields["edited_before_approve"] = edited
        return self.track(user_id, event_type, session_id=session_id, now=now, **fields)

    def prune_events(self, user_id: str, *, now: datetime | None = None) -> int:
        retention = self.config.retention
        return self.event_log.prune(
            user_id,
            now=self._now(now),
            max_age_days=retention.max_age_days,
            max_events=retention.max_events,
        )

    def scratchpad_write(
        self,
        user_id: str,
        scope: str,
        kind: ScratchpadKind | str,
        content: str,
        **options: Any,
    ) -> ScratchpadEntry:
        return self._scratchpad(user_id).write(scope, kind, content, **options)

    def scratchpad_read(
        self,
        user_id: str,
        scope: str,
        kind: ScratchpadKind | str | None = None,
        **options: Any,
    ) -> list[ScratchpadEntry]:
        return self._scratchpad(user_id).read(scope, kind, **options)

    def scratchpad_consume(
        self, user_id: str, entry_id: str, *, now: datetime | None = None
    ) -> ScratchpadEntry:
        return self._scratchpad(user_id).consume(entry_id, now=now)
