"""Staleness scorer tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cognition.staleness import (
    StalenessContext,
    StalenessLevel,
    format_age,
    score_staleness,
    summarize_staleness,
)
from core.engine_config import StalenessConfig, StalenessThresholds
from core.errors import InvalidTimestamp
from world_model.entities import EntityKind, new_entity

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def test_entity_untouched_for_twenty_days_is_critical() -> None:
    result = score_staleness(days_ago(20), now=NOW)

    assert result.stale_level is StalenessLevel.CRITICAL
    assert result.age_in_days == 20
    assert result.attention_reason == "Not updated in 14+ days"
    assert result.needs_attention is True


@pytest.mark.parametrize(
    ("age", "level"),
    [
        (0, StalenessLevel.FRESH),
        (1.9, StalenessLevel.FRESH),
        (2, StalenessLevel.AGING),
        (4, StalenessLevel.AGING),
        (5, StalenessLevel.STALE),
        (13, StalenessLevel.STALE),
        (14, StalenessLevel.CRITICAL),
    ],
)
def test_generic_thresholds(age: float, level: StalenessLevel) -> None:
    result = score_staleness(days_ago(age), now=NOW)
    assert result.stale_level is level
    if level is not StalenessLevel.CRITICAL:
        assert result.attention_reason is None


def test_blocker_thresholds() -> None:
    six = score_staleness(days_ago(6), now=NOW, kind=EntityKind.BLOCKER)
    three = score_staleness(days_ago(3), now=NOW, kind=EntityKind.BLOCKER)
    fifteen = score_staleness(days_ago(15), now=NOW, kind=EntityKind.BLOCKER)

    assert six.stale_level is StalenessLevel.STALE
    assert three.stale_level is StalenessLevel.AGING
    assert score_staleness(days_ago(3), now=NOW, kind=EntityKind.NOTE).stale_level is StalenessLevel.AGING
    assert fifteen.stale_level is StalenessLevel.CRITICAL
    assert fifteen.attention_reason == "Active blocker for 15 days"


def test_blocker_table_is_configured_independently() -> None:
    config = StalenessConfig(blocker=StalenessThresholds(aging=1, stale=3, critical=7))

    blocker = score_staleness(days_ago(3), now=NOW, kind=EntityKind.BLOCKER, config=config)
    note = score_staleness(days_ago(3), now=NOW, kind=EntityKind.NOTE, config=config)

    assert blocker.stale_level is StalenessLevel.STALE
    assert note.stale_level is StalenessLevel.AGING
    assert score_staleness(
        days_ago(7), now=NOW, kind=EntityKind.BLOCKER, config=config
    ).stale_level is StalenessLevel.CRITICAL


def test_only_blockers_escalate_the_level() -> None:
    fresh_with_blockers = score_staleness(
        days_ago(0), StalenessContext(has_blockers=True), now=NOW
    )
    fresh_untagged = score_staleness(
        days_ago(0), StalenessContext(has_untagged_content=True), now=NOW
    )
    critical_untagged = score_staleness(
        days_ago(30), StalenessContext(has_untagged_content=True), now=NOW
    )

    assert fresh_with_blockers.stale_level is StalenessLevel.STALE
    assert fresh_with_blockers.needs_attention is True
    assert fresh_with_blockers.attention_reason is None
    assert fresh_untagged.stale_level is StalenessLevel.FRESH
    assert fresh_untagged.needs_attention is False
    assert critical_untagged.stale_level is StalenessLevel.CRITICAL


def test_untagged_content_needs_attention_once_stale() -> None:
    aging = score_staleness(days_ago(4), StalenessContext(has_untagged_content=True), now=NOW)
    stale = score_staleness(days_ago(5), StalenessContext(has_untagged_content=True), now=NOW)

    assert aging.stale_level is StalenessLevel.AGING
    assert aging.needs_attention is False
    assert stale.stale_level is StalenessLevel.STALE
    assert stale.needs_attention is True
    assert stale.attention_reason is None


def test_blocked_and_pending_brief_flag_attention_without_changing_level() -> None:
    blocked = score_staleness(days_ago(3), StalenessContext(is_blocked=True), now=NOW)
    blocked_recent = score_staleness(days_ago(1), StalenessContext(is_blocked=True), now=NOW)
    brief = score_staleness(days_ago(0), StalenessContext(has_pending_brief=True), now=NOW)

    assert blocked.stale_level is StalenessLevel.AGING
    assert blocked.needs_attention is True
    assert blocked_recent.needs_attention is False
    assert brief.stale_level is StalenessLevel.FRESH
    assert brief.needs_attention is True


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), -1.0, True, "2026-03-01"])
def test_invalid_timestamps_are_rejected(bad: object) -> None:
    with pytest.raises(InvalidTimestamp):
        score_staleness(bad, now=NOW)  # type: ignore[arg-type]


def test_future_activity_is_rejected() -> None:
    with pytest.raises(InvalidTimestamp):
        score_staleness(NOW + timedelta(hours=1), now=NOW)


def test_invalid_timestamp_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        score_staleness(float("nan"), now=NOW)


def test_epoch_seconds_and_naive_datetimes() -> None:
    epoch = days_ago(6).timestamp()
    naive = days_ago(6).replace(tzinfo=None)

    assert score_staleness(epoch, now=NOW).age_in_days == 6
    assert score_staleness(naive, now=NOW).age_in_days == 6


def test_format_age() -> None:
    assert format_age(0) == "Today"
    assert format_age(1) == "1 day ago"
    assert format_age(5) == "5 days ago"
    assert format_age(10) == "1 week ago"
    assert format_age(21) == "3 weeks ago"


def test_summarize_staleness_rollup() -> None:
    project = new_entity("project", "p1", title="Launch", updated_at=days_ago(20))
    note = new_entity("note", "n1", title="Ideas", updated_at=days_ago(1))
    blocker = new_entity("blocker", "b1", title="API keys", created_at=days_ago(6), project_id="p1")
    resolved = new_entity(
        "blocker", "b2", title="Old", created_at=days_ago(30), status="resolved"
    )
    task = new_entity("task", "t1", title="Ship", updated_at=days_ago(4))
    entities = [project, note, blocker, resolved, task]
    results = {
        entity.key: score_staleness(entity.last_activity, now=NOW, kind=entity.kind)
        for entity in entities
    }

    overview = summarize_staleness(entities, results, stuck_task_ids={"t1"})

    assert overview.critical_count == 2
    assert overview.fresh_count == 1
    assert [item.id for item in overview.critical_items] == ["b2", "p1"]
    assert overview.oldest_unresolved_blocker is not None
    assert overview.oldest_unresolved_blocker.id == "b1"
    assert [task.id for task in overview.stuck_tasks] == ["t1"]
    assert overview.stuck_tasks[0].stuck_days == 4
