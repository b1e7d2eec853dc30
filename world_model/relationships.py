"""Typed relationship graph between workspace entities."""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum

from pydantic import BaseModel, ConfigDict, PrivateAttr

from core.errors import MissingEntityReference
from world_model.entities import EntityKind, EntityRef, WorkspaceEntities

logger = logging.getLogger("ax.relationships")

NodeKey = tuple[str, str]


class RelationshipType(str, Enum):
    BELONGS_TO = "belongs-to"
    BLOCKS = "blocks"
    REFERENCES = "references"


class RelationshipEdge(BaseModel):
    """Directed edge ``from -> to``."""

    model_config = ConfigDict(frozen=True)

    type: RelationshipType
    from_kind: EntityKind
    from_id: str
    to_kind: EntityKind
    to_id: str
    label: str = ""

    @property
    def identity(self) -> tuple[str, str, str, str, str]:
        return (
            self.type.value,
            self.from_kind.value,
            self.from_id,
            self.to_kind.value,
            self.to_id,
        )

    @property
    def source(self) -> NodeKey:
        return (self.from_kind.value, self.from_id)

    @property
    def target(self) -> NodeKey:
        return (self.to_kind.value, self.to_id)


class ProjectMembers(BaseModel):
    model_config = ConfigDict(frozen=True)

    tasks: tuple[str, ...] = ()
    blockers: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()
    calls: tuple[str, ...] = ()


class RelationshipMap(BaseModel):
    """Edges plus adjacency indices keyed by ``(kind, id)`` in both directions."""

    edges: tuple[RelationshipEdge, ...] = ()

    _outgoing: dict[NodeKey, list[RelationshipEdge]] = PrivateAttr(default_factory=dict)
    _incoming: dict[NodeKey, list[RelationshipEdge]] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object) -> None:
        outgoing: dict[NodeKey, list[RelationshipEdge]] = defaultdict(list)
        incoming: dict[NodeKey, list[RelationshipEdge]] = defaultdict(list)
        for edge in self.edges:
            outgoing[edge.source].append(edge)
            incoming[edge.target].append(edge)
        self._outgoing = dict(outgoing)
        self._incoming = dict(incoming)

    @staticmethod
    def _key(kind: EntityKind | str, entity_id: str) -> NodeKey:
        return (EntityKind(kind).value, entity_id)

    def outgoing(self, kind: EntityKind | str, entity_id: str) -> list[RelationshipEdge]:
        return list(self._outgoing.get(self._key(kind, entity_id), []))

    def incoming(self, kind: EntityKind | str, entity_id: str) -> list[RelationshipEdge]:
        return list(self._incoming.get(self._key(kind, entity_id), []))

    def edges_of(self, kind: EntityKind | str, entity_id: str) -> list[RelationshipEdge]:
        """All edges touching an entity, outgoing first."""
        return self.outgoing(kind, entity_id) + self.incoming(kind, entity_id)

    def by_project(self) -> dict[str, ProjectMembers]:
        """Member ids per project, from incoming ``belongs-to`` edges."""
        grouped: dict[str, dict[str, list[str]]] = {}
        for edge in self.edges:
            if edge.type is not RelationshipType.BELONGS_TO:
                continue
            bucket = grouped.setdefault(
                edge.to_id, {"tasks": [], "blockers": [], "notes": [], "calls": []}
            )
            bucket[f"{edge.from_kind.value}s"].append(edge.from_id)
        return {
            project_id: ProjectMembers(**{name: tuple(ids) for name, ids in members.items()})
            for project_id, members in sorted(grouped.items())
        }

    def blocker_impact(self) -> dict[str, tuple[str, ...]]:
        """Blocked task ids per blocker."""
        impact: dict[str, list[str]] = {}
        for edge in self.edges:
            if edge.type is RelationshipType.BLOCKS:
                impact.setdefault(edge.from_id, []).append(edge.to_id)
        return {blocker_id: tuple(tasks) for blocker_id, tasks in sorted(impact.items())}

    def blocked_task_ids(self) -> set[str]:
        return {edge.to_id for edge in self.edges if edge.type is RelationshipType.BLOCKS}


class _EdgeCollector:
    def __init__(self, strict: bool) -> None:
        self.strict = strict
        self._edges: dict[tuple[str, str, str, str, str], RelationshipEdge] = {}
        self.dangling = 0

    def add(self, edge: RelationshipEdge) -> None:
        # First label wins for duplicate (type, from, to) identities.
        self._edges.setdefault(edge.identity, edge)

    def missing(self, entity: EntityRef, target: str) -> None:
        if self.strict:
            raise MissingEntityReference(entity.kind.value, entity.id, target)
        self.dangling += 1
        logger.debug("Skipping edge from %s to missing %s", entity.key, target)

    def edges(self) -> tuple[RelationshipEdge, ...]:
        return tuple(self._edges[key] for key in sorted(self._edges))


def build_relationship_map(
    entities: WorkspaceEntities,
    *,
    strict: bool = False,
) -> RelationshipMap:
    """Derive typed edges from foreign-key style references.

    Missing targets are skipped unless ``strict`` is set, in which case the
    first one raises ``MissingEntityReference``.
    """
    projects = {project.id: project for project in entities.projects}
    tasks = {task.id: task for task in entities.tasks}
    blockers = {blocker.id: blocker for blocker in entities.blockers}
    notes = {note.id: note for note in entities.notes}
    notes_by_title = {note.title: note for note in entities.notes if note.title}
    collector = _EdgeCollector(strict=strict)

    for entity in entities.all():
        if entity.kind is EntityKind.PROJECT or not entity.project_id:
            continue
        project = projects.get(entity.project_id)
        if project is None:
            collector.missing(entity, f"project:{entity.project_id}")
            continue
        collector.add(
            RelationshipEdge(
                type=RelationshipType.BELONGS_TO,
                from_kind=entity.kind,
                from_id=entity.id,
                to_kind=EntityKind.PROJECT,
                to_id=project.id,
                label=project.title,
            )
        )

    for blocker in entities.blockers:
        for task_id in blocker.blocked_task_ids:
            task = tasks.get(task_id)
            if task is None:
                collector.missing(blocker, f"task:{task_id}")
                continue
            collector.add(_blocks_edge(blocker, task))

    for task in entities.tasks:
        for blocker_id in task.blocked_by_ids:
            blocker = blockers.get(blocker_id)
            if blocker is None:
                collector.missing(task, f"blocker:{blocker_id}")
                continue
            collector.add(_blocks_edge(blocker, task))

    for note in entities.notes:
        for ref in note.references:
            target = notes.get(ref) or notes_by_title.get(ref)
            if target is None or target.id == note.id:
                if target is None:
                    collector.missing(note, f"note:{ref}")
                continue
            collector.add(
                RelationshipEdge(
                    type=RelationshipType.REFERENCES,
                    from_kind=EntityKind.NOTE,
                    from_id=note.id,
                    to_kind=EntityKind.NOTE,
                    to_id=target.id,
                    label=target.title,
                )
            )

    edges = collector.edges()
    logger.debug("Built %d edges (%d dangling references)", len(edges), collector.dangling)
    return RelationshipMap(edges=edges)


def _blocks_edge(blocker: EntityRef, task: EntityRef) -> RelationshipEdge:
    return RelationshipEdge(
        type=RelationshipType.BLOCKS,
        from_kind=EntityKind.BLOCKER,
        from_id=blocker.id,
        to_kind=EntityKind.TASK,
        to_id=task.id,
        label=task.title,
    )
