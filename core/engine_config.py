"""Validated engine settings built from the ``ax`` config section."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class StalenessThresholds(_Section):
    """Minimum age in days for each level above ``fresh``."""

    aging: int = 2
    stale: int = 5
    critical: int = 14


class StalenessConfig(_Section):
    generic: StalenessThresholds = Field(default_factory=StalenessThresholds)
    blocker: StalenessThresholds = Field(default_factory=StalenessThresholds)


class PatternConfig(_Section):
    ignore_multiple: float = 3.0
    min_samples: int = 5
    active_window_days: int = 30
    top_active_hours: int = 4
    top_active_days: int = 3
    keyboard_ratio: float = 0.3


class QuietConfig(_Section):
    flow_min_minutes: int = 25
    burst_window_minutes: int = 5
    burst_threshold: int = 3
    away_idle_minutes: int = 5
    available_idle_minutes: int = 2
    deep_focus_velocity: float = 4.0
    multitask_switches: int = 5
    defer_flow_minutes: int = 5


class ConfidenceConfig(_Section):
    level_relevance: dict[str, float] = Field(
        default_factory=lambda: {"fresh": 0.1, "aging": 0.3, "stale": 0.6, "critical": 0.9}
    )
    default_relevance: float = 0.5
    ignored_penalty: float = 0.1
    min_surface_score: float = 0.3


class RetentionConfig(_Section):
    max_age_days: int = 90
    max_events: int = 1000
    query_window_days: int = 30
    prune_on_append: bool = True


class ScratchpadConfig(_Section):
    observation_ttl_days: int | None = 30
    summary_recent: int = 5


class EngineConfig(_Section):
    """All tunables for scoring and retention."""

    staleness: StalenessConfig = Field(default_factory=StalenessConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)
    quiet: QuietConfig = Field(default_factory=QuietConfig)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    scratchpad: ScratchpadConfig = Field(default_factory=ScratchpadConfig)
    timezone: str = "UTC"

    @classmethod
    def from_mapping(cls, config: dict[str, Any] | None) -> EngineConfig:
        """Build from the merged runtime config (reads the ``ax`` key)."""
        cfg = config or {}
        return cls.model_validate(cfg.get("ax", {}) or {})
