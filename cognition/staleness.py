"""Staleness scoring: how overdue an entity is for attention."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from core.engine_config import StalenessConfig, StalenessThresholds
from core.errors import InvalidTimestamp
from world_model.entities import EntityKind, EntityRef

logger = logging.getLogger("ax.staleness")

SECONDS_PER_DAY = 86400


class StalenessLevel(str, Enum):
    """Ordered staleness levels."""

    FRESH = "fresh"
    AGING = "aging"
    STALE = "stale"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [
    StalenessLevel.FRESH,
    StalenessLevel.AGING,
    StalenessLevel.STALE,
    StalenessLevel.CRITICAL,
]


class StalenessContext(BaseModel):
    """Entity context. Only ``has_blockers`` raises the level; the rest set ``needs_attention``."""

    model_config = ConfigDict(frozen=True)

    has_blockers: bool = False
    has_untagged_content: bool = False
    is_blocked: bool = False
    has_pending_brief: bool = False


class StalenessResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    age_in_days: int
    stale_level: StalenessLevel
    attention_reason: str | None = None
    needs_attention: bool = False


class CriticalItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    id: str
    title: str
    age_in_days: int
    reason: str


class BlockerSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    project_id: str | None
    age_in_days: int


class StuckTask(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    project_id: str | None
    stuck_days: int


class StalenessOverview(BaseModel):
    """Workspace-wide staleness rollup."""

    model_config = ConfigDict(frozen=True)

    fresh_count: int = 0
    aging_count: int = 0
    stale_count: int = 0
    critical_count: int = 0
    critical_items: tuple[CriticalItem, ...] = ()
    oldest_unresolved_blocker: BlockerSummary | None = None
    stuck_tasks: tuple[StuckTask, ...] = ()


def to_utc_datetime(value: object, field: str = "timestamp") -> datetime:
    """Coerce a datetime or epoch-seconds value to an aware UTC datetime.

    Raises ``InvalidTimestamp`` for anything that is not a finite,
    non-negative timestamp.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTimestamp(f"{field} must be a datetime or epoch seconds, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise InvalidTimestamp(f"{field} must be finite and non-negative, got {value!r}")
    return datetime.fromtimestamp(value, tz=UTC)


def level_for_age(age_in_days: int, thresholds: StalenessThresholds) -> StalenessLevel:
    if age_in_days >= thresholds.critical:
        return StalenessLevel.CRITICAL
    if age_in_days >= thresholds.stale:
        return StalenessLevel.STALE
    if age_in_days >= thresholds.aging:
        return StalenessLevel.AGING
    return StalenessLevel.FRESH


def _escalate(level: StalenessLevel, floor: StalenessLevel) -> StalenessLevel:
    return floor if floor.rank > level.rank else level


def score_staleness(
    last_activity: datetime | float | int,
    context: StalenessContext | None = None,
    *,
    now: datetime | None = None,
    kind: EntityKind | None = None,
    config: StalenessConfig | None = None,
) -> StalenessResult:
    """Score one entity from its last-activity timestamp and context flags."""
    cfg = config or StalenessConfig()
    ctx = context or StalenessContext()
    current = to_utc_datetime(now, "now") if now is not None else datetime.now(UTC)
    last = to_utc_datetime(last_activity, "last_activity")

    elapsed = (current - last).total_seconds()
    if elapsed < 0:
        raise InvalidTimestamp(f"last_activity {last.isoformat()} is after now {current.isoformat()}")
    age_in_days = int(elapsed // SECONDS_PER_DAY)

    is_blocker = kind is EntityKind.BLOCKER
    thresholds = cfg.blocker if is_blocker else cfg.generic
    level = level_for_age(age_in_days, thresholds)
    if ctx.has_blockers:
        level = _escalate(level, StalenessLevel.STALE)

    reason: str | None = None
    if level is StalenessLevel.CRITICAL:
        if is_blocker:
            reason = f"Active blocker for {age_in_days} days"
        else:
            reason = f"Not updated in {thresholds.critical}+ days"

    needs_attention = (
        level is StalenessLevel.CRITICAL
        or ctx.has_blockers
        or ctx.has_pending_brief
        or (ctx.is_blocked and age_in_days >= thresholds.aging)
        or (ctx.has_untagged_content and age_in_days >= thresholds.stale)
    )
    return StalenessResult(
        age_in_days=age_in_days,
        stale_level=level,
        attention_reason=reason,
        needs_attention=needs_attention,
    )


def format_age(age_in_days: int) -> str:
    """Human-readable age label."""
    if age_in_days == 0:
        return "Today"
    if age_in_days == 1:
        return "1 day ago"
    if age_in_days < 7:
        return f"{age_in_days} days ago"
    if age_in_days < 14:
        return "1 week ago"
    return f"{age_in_days // 7} weeks ago"


def summarize_staleness(
    entities: list[EntityRef],
    results: dict[str, StalenessResult],
    stuck_task_ids: set[str] | None = None,
    max_critical_items: int = 20,
) -> StalenessOverview:
    """Aggregate per-entity results keyed by ``EntityRef.key``."""
    counts = {level: 0 for level in StalenessLevel}
    critical: list[CriticalItem] = []
    oldest_blocker: BlockerSummary | None = None
    stuck: list[StuckTask] = []
    stuck_ids = stuck_task_ids or set()

    for entity in entities:
        result = results.get(entity.key)
        if result is None:
            continue
        counts[result.stale_level] += 1
        if result.stale_level is StalenessLevel.CRITICAL:
            critical.append(
                CriticalItem(
                    kind=entity.kind,
                    id=entity.id,
                    title=entity.title,
                    age_in_days=result.age_in_days,
                    reason=result.attention_reason or "",
                )
            )
        if entity.is_active_blocker and (
            oldest_blocker is None or result.age_in_days > oldest_blocker.age_in_days
        ):
            oldest_blocker = BlockerSummary(
                id=entity.id,
                title=entity.title,
                project_id=entity.project_id,
                age_in_days=result.age_in_days,
            )
        if entity.kind is EntityKind.TASK and entity.id in stuck_ids:
            stuck.append(
                StuckTask(
                    id=entity.id,
                    title=entity.title,
                    project_id=entity.project_id,
                    stuck_days=result.age_in_days,
                )
            )

    critical.sort(key=lambda item: (-item.age_in_days, item.kind.value, item.id))
    stuck.sort(key=lambda item: (-item.stuck_days, item.id))
    logger.debug(
        "Staleness rollup: %d critical, %d stuck tasks", counts[StalenessLevel.CRITICAL], len(stuck)
    )
    return StalenessOverview(
        fresh_count=counts[StalenessLevel.FRESH],
        aging_count=counts[StalenessLevel.AGING],
        stale_count=counts[StalenessLevel.STALE],
        critical_count=counts[StalenessLevel.CRITICAL],
        critical_items=tuple(critical[:max_critical_items]),
        oldest_unresolved_blocker=oldest_blocker,
        stuck_tasks=tuple(stuck),
    )
