"""Read-only entity references consumed from the persistence layer."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from core.errors import UnsupportedSchemaVersion

logger = logging.getLogger("ax.entities")

ENTITY_SCHEMA_VERSION = 1


class EntityKind(str, Enum):
    """Workspace entity kinds the engine understands."""

    PROJECT = "project"
    NOTE = "note"
    TASK = "task"
    BLOCKER = "blocker"
    CALL = "call"


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class EntityRef(BaseModel):
    """A single workspace record as seen by the engine."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: EntityKind
    id: str
    title: str = ""
    updated_at: datetime | None = None
    created_at: datetime | None = None
    project_id: str | None = None
    tags: tuple[str, ...] = ()
    status: str | None = None
    blocked_task_ids: tuple[str, ...] = ()
    blocked_by_ids: tuple[str, ...] = ()
    references: tuple[str, ...] = ()
    schema_version: int = ENTITY_SCHEMA_VERSION

    @field_validator("updated_at", "created_at")
    @classmethod
    def _normalize_tz(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @field_validator("schema_version")
    @classmethod
    def _check_version(cls, value: int) -> int:
        if value != ENTITY_SCHEMA_VERSION:
            raise ValueError(f"unsupported entity schema_version {value}")
        return value

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @property
    def last_activity(self) -> datetime | None:
        """Timestamp staleness is measured from.

        Blockers age from creation; everything else from the last update.
        """
        if self.kind is EntityKind.BLOCKER:
            return self.created_at or self.updated_at
        return self.updated_at or self.created_at

    @property
    def is_active_blocker(self) -> bool:
        return self.kind is EntityKind.BLOCKER and (self.status or "active") != "resolved"


class WorkspaceEntities(BaseModel):
    """Pre-fetched entity collections for one user."""

    model_config = ConfigDict(frozen=True)

    projects: tuple[EntityRef, ...] = ()
    notes: tuple[EntityRef, ...] = ()
    tasks: tuple[EntityRef, ...] = ()
    blockers: tuple[EntityRef, ...] = ()
    calls: tuple[EntityRef, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _fill_kinds(cls, data: Any) -> Any:
        # Provider payloads may omit ``kind`` inside each typed list; lists are
        # ordered by id so results do not depend on provider ordering.
        if not isinstance(data, dict):
            return data
        filled = dict(data)
        for field_name, kind in _FIELD_KINDS.items():
            items = filled.get(field_name)
            if not items:
                continue
            filled[field_name] = sorted(
                ({"kind": kind.value, **item} if isinstance(item, dict) else item for item in items),
                key=_item_id,
            )
        return filled

    @model_validator(mode="after")
    def _check_kinds(self) -> WorkspaceEntities:
        for field_name, kind in _FIELD_KINDS.items():
            for entity in getattr(self, field_name):
                if entity.kind is not kind:
                    raise ValueError(f"{field_name} contains {entity.kind.value}:{entity.id}")
        return self

    def all(self) -> Iterator[EntityRef]:
        """Iterate over every entity, projects first."""
        for field_name in _FIELD_KINDS:
            yield from getattr(self, field_name)

    def by_kind(self, kind: EntityKind) -> tuple[EntityRef, ...]:
        return getattr(self, _KIND_FIELDS[kind])

    def count(self) -> int:
        return sum(len(getattr(self, name)) for name in _FIELD_KINDS)


_FIELD_KINDS: dict[str, EntityKind] = {
    "projects": EntityKind.PROJECT,
    "notes": EntityKind.NOTE,
    "tasks": EntityKind.TASK,
    "blockers": EntityKind.BLOCKER,
    "calls": EntityKind.CALL,
}
_KIND_FIELDS: dict[EntityKind, str] = {kind: name for name, kind in _FIELD_KINDS.items()}


def _item_id(item: Any) -> str:
    if isinstance(item, dict):
        return str(item.get("id", ""))
    return str(getattr(item, "id", ""))


def parse_workspace(payload: dict[str, Any]) -> WorkspaceEntities:
    """Validate a raw provider payload at the boundary.

    A top-level ``schema_version`` other than the supported one is rejected
    with ``UnsupportedSchemaVersion``; shape errors surface as pydantic
    ``ValidationError``.
    """
    if not isinstance(payload, dict):
        raise ValueError("Entity payload must be a mapping.")
    version = payload.get("schema_version", ENTITY_SCHEMA_VERSION)
    if version != ENTITY_SCHEMA_VERSION:
        raise UnsupportedSchemaVersion(f"Unsupported entity payload schema_version {version}")
    body = {key: value for key, value in payload.items() if key in _FIELD_KINDS}
    try:
        workspace = WorkspaceEntities.model_validate(body)
    except ValidationError:
        logger.warning("Rejected entity payload with %d keys", len(body))
        raise
    logger.debug("Parsed %d entities", workspace.count())
    return workspace


def new_entity(kind: EntityKind | str, entity_id: str, **fields: Any) -> EntityRef:
    """Convenience constructor used by providers and tests."""
    return EntityRef(kind=EntityKind(kind), id=entity_id, **fields)


def workspace_from(entities: list[EntityRef]) -> WorkspaceEntities:
    """Group a flat entity list into a ``WorkspaceEntities``."""
    grouped: dict[str, list[EntityRef]] = {name: [] for name in _FIELD_KINDS}
    for entity in entities:
        grouped[_KIND_FIELDS[entity.kind]].append(entity)
    return WorkspaceEntities(**{name: tuple(items) for name, items in grouped.items()})
