"""Top-level application orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cognition.quiet_signals import QuietHours
from core.ax_service import AXService
from core.engine_config import EngineConfig
from core.policy_runtime import ensure_runtime_dirs, load_effective_config
from memory.event_log import SQLEventLog
from memory.scratchpad import ScratchpadStore
from memory.stores.sql_store import SQLStore
from world_model.providers import JsonFileEntityProvider


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    engine_config: EngineConfig
    user_id: str
    quiet_hours: QuietHours | None
    sql_store: SQLStore
    event_log: SQLEventLog
    service: AXService


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root)
        paths = ensure_runtime_dirs(self.root, config)
        engine_config = EngineConfig.from_mapping(config)

        sql_store = SQLStore(paths["db_path"])
        sql_store.create_all()
        event_log = SQLEventLog(sql_store)
        quiet_hours = self._quiet_hours(config)

        def scratchpad_factory(user_id: str) -> ScratchpadStore:
            return ScratchpadStore(sql_store, user_id, config=engine_config.scratchpad)

        service = AXService(
            entity_provider=JsonFileEntityProvider(paths["entities_path"]),
            event_log=event_log,
            scratchpad_factory=scratchpad_factory,
            config=engine_config,
            default_quiet_hours=quiet_hours,
        )
        return RuntimeBundle(
            config=config,
            engine_config=engine_config,
            user_id=str(config.get("user", {}).get("id", "local")),
            quiet_hours=quiet_hours,
            sql_store=sql_store,
            event_log=event_log,
            service=service,
        )

    @staticmethod
    def _quiet_hours(config: dict[str, Any]) -> QuietHours | None:
        quiet_cfg = config.get("user", {}).get("quiet_hours")
        if not quiet_cfg:
            return None
        return QuietHours(start=str(quiet_cfg["start"]), end=str(quiet_cfg["end"]))
