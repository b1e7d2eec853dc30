"""Timing gate deciding whether a scored suggestion may be shown."""

from __future__ import annotations

from dataclasses import dataclass

from cognition.confidence import Urgency
from cognition.quiet_signals import QuietSignals
from core.engine_config import ConfidenceConfig


@dataclass
class SurfaceDecision:
    """Represents show/hold decision."""

    allowed: bool
    reason: str


def surface_decision(
    score: float,
    quiet: QuietSignals,
    *,
    urgency: Urgency = Urgency.LOW,
    ignored: bool = False,
    config: ConfidenceConfig | None = None,
) -> SurfaceDecision:
    """Evaluate timing and confidence rules in priority order."""
    cfg = config or ConfidenceConfig()
    if quiet.within_quiet_hours:
        return SurfaceDecision(False, "Within quiet hours.")
    if quiet.recent_burst_activity:
        return SurfaceDecision(False, "User is in a burst of activity.")
    if quiet.in_flow_state and urgency is not Urgency.CRITICAL:
        return SurfaceDecision(False, "User is in flow; only critical items interrupt.")
    if ignored:
        return SurfaceDecision(False, "Suggestion type is usually dismissed.")
    if score < cfg.min_surface_score:
        return SurfaceDecision(False, f"Confidence {score:.2f} below {cfg.min_surface_score:.2f}.")
    return SurfaceDecision(True, "Allowed.")


def should_surface(
    score: float,
    quiet: QuietSignals,
    *,
    urgency: Urgency = Urgency.LOW,
    ignored: bool = False,
    config: ConfidenceConfig | None = None,
) -> bool:
    return surface_decision(
        score, quiet, urgency=urgency, ignored=ignored, config=config
    ).allowed
