"""Entity providers: where workspace entities come from."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from world_model.entities import WorkspaceEntities, parse_workspace

logger = logging.getLogger("ax.providers")


class EntityProvider(ABC):
    """Read-only source of pre-fetched workspace entities."""

    @abstractmethod
    def fetch(self, user_id: str) -> WorkspaceEntities:
        raise NotImplementedError


class StaticEntityProvider(EntityProvider):
    """Serves a fixed workspace, optionally per user."""

    def __init__(
        self,
        entities: WorkspaceEntities | None = None,
        by_user: dict[str, WorkspaceEntities] | None = None,
    ) -> None:
        self.entities = entities or WorkspaceEntities()
        self.by_user = dict(by_user or {})

    def fetch(self, user_id: str) -> WorkspaceEntities:
        return self.by_user.get(user_id, self.entities)


class JsonFileEntityProvider(EntityProvider):
    """Loads a JSON export and validates it at the boundary.

    The file is either a single workspace payload or ``{"users": {id: payload}}``.
    A missing file yields an empty workspace.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def fetch(self, user_id: str) -> WorkspaceEntities:
        if not self.path.exists():
            logger.info("Entity file %s not found; using empty workspace", self.path)
            return WorkspaceEntities()
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if isinstance(data, dict) and isinstance(data.get("users"), dict):
            payload = data["users"].get(user_id)
            if payload is None:
                return WorkspaceEntities()
            if "schema_version" in data and "schema_version" not in payload:
                payload = {**payload, "schema_version": data["schema_version"]}
            return parse_workspace(payload)
        return parse_workspace(data)
