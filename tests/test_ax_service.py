"""Service, provider and runtime wiring tests."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from core.ax_service import AXService
from core.engine_config import EngineConfig
from core.errors import StoreUnavailable, UnsupportedSchemaVersion
from core.orchestrator import Orchestrator
from core.policy_runtime import load_effective_config, merge_dicts
from memory.event_log import InMemoryEventLog
from memory.scratchpad import ScratchpadStore
from memory.stores.sql_store import SQLStore
from memory.types.events import TrackableEvent
from world_model.entities import new_entity, workspace_from
from world_model.providers import JsonFileEntityProvider, StaticEntityProvider

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def build_service(event_log: InMemoryEventLog | None = None, with_scratchpad: bool = False) -> AXService:
    entities = workspace_from(
        [
            new_entity("project", "p1", title="Launch", updated_at=NOW - timedelta(days=1)),
            new_entity("note", "n1", title="Loose", updated_at=NOW - timedelta(days=10)),
        ]
    )
    factory = None
    if with_scratchpad:
        store = SQLStore(":memory:")

        def factory(user_id: str) -> ScratchpadStore:
            return ScratchpadStore(store, user_id)

    return AXService(
        StaticEntityProvider(entities),
        event_log or InMemoryEventLog(),
        scratchpad_factory=factory,
    )


def test_snapshot_reads_provider_and_events() -> None:
    service = build_service()
    graph = service.snapshot("u1", now=NOW)

    assert graph.user_id == "u1"
    assert "note:n1" in graph.staleness
    assert [item.trigger_type for item in graph.suggestions] == ["tag-suggestion"]
    assert graph.scratchpad is None


def test_feedback_teaches_ignored_types() -> None:
    service = build_service()
    sid = service.snapshot("u1", now=NOW).suggestions[0].id

    for minute in range(5):
        service.suggestion_feedback("u1", sid, "dismiss", now=NOW - timedelta(minutes=minute + 1))
    graph = service.snapshot("u1", now=NOW)

    assert graph.patterns.is_ignored("tag-suggestion")
    assert graph.surfaced() == []
    assert graph.suggestions[0].id == sid


def test_feedback_validation() -> None:
    service = build_service()
    with pytest.raises(ValueError):
        service.suggestion_feedback("u1", "tag-suggestion:abc", "snooze")
    with pytest.raises(ValueError):
        service.suggestion_feedback("u1", "no-separator", "approve")

    event = service.suggestion_feedback("u1", "tag-suggestion:abc", "approve", edited=True, now=NOW)
    assert event.payload.edited_before_approve is True


def test_recent_events_window() -> None:
    log = InMemoryEventLog()
    service = build_service(log)
    service.track("u1", "feature:used", session_id="s", now=NOW - timedelta(days=40), feature="old")
    service.track("u1", "feature:used", session_id="s", now=NOW - timedelta(days=1), feature="new")
    service.track("u1", "feature:used", session_id="s", now=NOW + timedelta(days=1), feature="later")

    events = service.recent_events("u1", now=NOW)

    assert [event.payload.feature for event in events] == ["new"]


class BrokenEventLog(InMemoryEventLog):
    def query(self, user_id: str, **kwargs: object) -> list[TrackableEvent]:
        raise StoreUnavailable("disk gone")


def test_safe_snapshot_degrades_to_entities() -> None:
    service = build_service(BrokenEventLog())

    result = service.safe_snapshot("u1", now=NOW)

    assert result.degraded is True
    assert result.graph is None
    assert result.entities.count() == 2
    assert "disk gone" in result.error
    with pytest.raises(StoreUnavailable):
        service.snapshot("u1", now=NOW)


def test_scratchpad_calls_require_a_store() -> None:
    with pytest.raises(StoreUnavailable):
        build_service().scratchpad_write("u1", "global", "observation", "x")


def test_scratchpad_round_trip_through_service() -> None:
    service = build_service(with_scratchpad=True)
    entry = service.scratchpad_write("u1", "project:p1", "pending-action", "Send recap", now=NOW)

    assert [e.id for e in service.scratchpad_read("u1", "project:p1", now=NOW)] == [entry.id]
    assert service.snapshot("u1", now=NOW).scratchpad.pending_action_count == 1

    service.scratchpad_consume("u1", entry.id, now=NOW)
    assert service.snapshot("u1", now=NOW).scratchpad.pending_action_count == 0


def build_retention_service(log: InMemoryEventLog, **retention: object) -> AXService:
    return AXService(
        StaticEntityProvider(),
        log,
        config=EngineConfig.model_validate({"retention": retention}),
    )


def test_prune_uses_retention_config() -> None:
    log = InMemoryEventLog()
    service = build_retention_service(log, max_events=2, prune_on_append=False)
    for minute in range(4):
        service.track("u1", "feature:used", session_id="s", now=NOW - timedelta(minutes=minute), feature="f")

    assert len(log.query("u1")) == 4
    assert service.prune_events("u1", now=NOW) == 2
    assert len(log.query("u1")) == 2


def test_track_caps_the_log_at_max_events() -> None:
    log = InMemoryEventLog()
    service = build_retention_service(log)
    start = NOW - timedelta(days=200)
    for index in range(1500):
        service.track("u1", "feature:used", session_id="s", now=start + timedelta(minutes=index), feature="f")

    kept = log.query("u1")
    assert len(kept) == 1000
    assert kept[0].timestamp == start + timedelta(minutes=500)

    service.suggestion_feedback("u1", "tag-suggestion:abc", "dismiss", now=NOW)

    assert [event.type for event in log.query("u1")] == ["suggestion:dismissed"]


def write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_json_provider(tmp_path: Path) -> None:
    single = write_json(
        tmp_path / "single.json",
        {"schema_version": 1, "projects": [{"id": "p1", "updated_at": "2026-03-01T00:00:00Z"}]},
    )
    multi = write_json(
        tmp_path / "multi.json",
        {"schema_version": 1, "users": {"alice": {"notes": [{"id": "n1", "title": "x"}]}}},
    )

    assert [p.id for p in JsonFileEntityProvider(single).fetch("anyone").projects] == ["p1"]
    assert [n.id for n in JsonFileEntityProvider(multi).fetch("alice").notes] == ["n1"]
    assert JsonFileEntityProvider(multi).fetch("bob").count() == 0
    assert JsonFileEntityProvider(tmp_path / "missing.json").fetch("u1").count() == 0


def test_json_provider_rejects_bad_payloads(tmp_path: Path) -> None:
    future = write_json(tmp_path / "v2.json", {"schema_version": 2, "projects": []})
    wrong_kind = write_json(tmp_path / "kind.json", {"projects": [{"id": "x", "kind": "task"}]})

    with pytest.raises(UnsupportedSchemaVersion):
        JsonFileEntityProvider(future).fetch("u1")
    with pytest.raises(ValidationError):
        JsonFileEntityProvider(wrong_kind).fetch("u1")


def test_engine_config_rejects_unknown_keys() -> None:
    assert EngineConfig.from_mapping(None) == EngineConfig()
    assert EngineConfig.from_mapping({"ax": {"quiet": {"burst_threshold": 5}}}).quiet.burst_threshold == 5
    with pytest.raises(ValidationError):
        EngineConfig.from_mapping({"ax": {"quiet": {"burst_treshold": 5}}})


def test_local_config_overrides_default(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.yaml").write_text(
        "user:\n  id: local\nax:\n  retention:\n    max_events: 1000\n    max_age_days: 90\n",
        encoding="utf-8",
    )
    (config_dir / "local.yaml").write_text("ax:\n  retention:\n    max_events: 50\n", encoding="utf-8")

    config = load_effective_config(tmp_path)

    assert config["ax"]["retention"] == {"max_events": 50, "max_age_days": 90}
    assert config["user"]["id"] == "local"
    assert merge_dicts({"a": {"b": 1}}, {"a": 2}) == {"a": 2}


def test_orchestrator_wires_sqlite_runtime(tmp_path: Path) -> None:
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "default.yaml").write_text(
        "paths:\n  db_path: data/ax.db\n  entities_path: data/entities.json\n"
        "user:\n  id: local\n  quiet_hours:\n    start: '22:00'\n    end: '06:00'\n",
        encoding="utf-8",
    )

    bundle = Orchestrator(root=tmp_path).build()
    for _ in range(2):
        bundle.service.suggestion_feedback("local", "project-check-in:abc", "dismiss", now=NOW)

    assert (tmp_path / "data" / "ax.db").exists()
    assert bundle.user_id == "local"
    assert bundle.quiet_hours is not None and bundle.quiet_hours.start == "22:00"
    assert len(bundle.event_log.query("local")) == 2
    assert bundle.service.snapshot("local", now=NOW).relationships.edges == ()
