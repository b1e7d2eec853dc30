"""Real-time signals that decide whether now is a good moment to interrupt."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, field_validator

from cognition.staleness import to_utc_datetime
from core.engine_config import QuietConfig
from memory.types.events import TrackableEvent

logger = logging.getLogger("ax.quiet_signals")


def _parse_hhmm(value: str) -> int:
    """Minutes after midnight for an ``HH:MM`` string."""
    hours, sep, minutes = value.partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"Expected HH:MM, got {value!r}")
    h, m = int(hours), int(minutes)
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return h * 60 + m


class QuietHours(BaseModel):
    """Local wall-clock window ``[start, end)``; may wrap past midnight."""

    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _valid_hhmm(cls, value: str) -> str:
        minutes = _parse_hhmm(value)
        return f"{minutes // 60:02d}:{minutes % 60:02d}"

    def contains(self, minute_of_day: int) -> bool:
        start, end = _parse_hhmm(self.start), _parse_hhmm(self.end)
        if start == end:
            return False
        if start < end:
            return start <= minute_of_day < end
        return minute_of_day >= start or minute_of_day < end


def quiet_hours_from_working_hours(start: str, end: str) -> QuietHours:
    """Quiet hours are everything outside the working window."""
    return QuietHours(start=end, end=start)


class Interruptibility(str, Enum):
    AVAILABLE = "available"
    FOCUSED = "focused"
    DEEP_FOCUS = "deep-focus"
    AWAY = "away"


class QuietSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    in_flow_state: bool = False
    session_duration_min: int = 0
    within_quiet_hours: bool = False
    recent_burst_activity: bool = False
    minutes_since_last_activity: int | None = None
    action_velocity: float = 0.0
    flow_type: str | None = None
    interruptibility: Interruptibility = Interruptibility.AWAY
    interruptibility_reason: str = ""
    can_interrupt: bool = True
    should_defer: bool = False
    is_typical_active_time: bool = True
    is_multitasking: bool = False


_FLOW_HINTS = {
    "note:created": ("writing", 2),
    "navigation": ("navigating", 1),
    "shortcut:used": ("coding", 1),
}


def _flow_type(events: Sequence[TrackableEvent]) -> str | None:
    if not events:
        return None
    counts: Counter[str] = Counter()
    for event in events:
        payload = event.payload
        if payload.type == "action:taken":
            intent = payload.intent
            if "note" in intent or "edit" in intent:
                counts["writing"] += 1
            elif "navigate" in intent:
                counts["navigating"] += 1
            elif "task" in intent or "review" in intent:
                counts["reviewing"] += 1
        elif payload.type in _FLOW_HINTS:
            label, weight = _FLOW_HINTS[payload.type]
            counts[label] += weight
    if not counts:
        return "unknown"
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0][0]


def _interruptibility(
    minutes_idle: int | None,
    velocity: float,
    in_flow: bool,
    session_minutes: int,
    cfg: QuietConfig,
) -> tuple[Interruptibility, str]:
    """First matching rule wins: away, deep focus, flow, recent activity, available."""
    if minutes_idle is None:
        return Interruptibility.AWAY, "No activity recorded"
    if minutes_idle >= cfg.away_idle_minutes:
        return Interruptibility.AWAY, "No activity for extended period"
    if velocity >= cfg.deep_focus_velocity:
        return Interruptibility.DEEP_FOCUS, f"High activity: {velocity:g} actions/min"
    if in_flow:
        return Interruptibility.FOCUSED, f"In flow for {session_minutes} minutes"
    if minutes_idle < cfg.available_idle_minutes:
        return Interruptibility.FOCUSED, "Recent activity detected"
    return Interruptibility.AVAILABLE, f"Idle for {minutes_idle} minutes"


def detect_quiet_signals(
    events: Sequence[TrackableEvent],
    now: datetime,
    quiet_hours: QuietHours | None = None,
    *,
    config: QuietConfig | None = None,
    tz: str = "UTC",
    most_active_hours: Sequence[int] = (),
) -> QuietSignals:
    """Derive flow, burst and quiet-hour signals as of ``now``.

    Events after ``now`` are ignored. ``most_active_hours`` comes from the
    pattern profile; when empty every hour counts as typical.
    """
    cfg = config or QuietConfig()
    current = to_utc_datetime(now, "now")
    past = sorted(
        (event for event in events if event.timestamp <= current),
        key=lambda event: (event.timestamp, event.id),
    )

    session_start: datetime | None = None
    for event in past:
        if event.type == "session:started":
            session_start = event.timestamp
        elif event.type == "session:ended":
            session_start = None
    session_minutes = 0
    if session_start is not None:
        session_minutes = int((current - session_start).total_seconds() // 60)

    in_flow = False
    if session_start is not None and session_minutes > cfg.flow_min_minutes:
        in_flow = not any(
            event.type.startswith("suggestion:") and event.timestamp >= session_start
            for event in past
        )

    window_start = current - timedelta(minutes=cfg.burst_window_minutes)
    recent = [event for event in past if event.timestamp > window_start]
    velocity = round(len(recent) / cfg.burst_window_minutes, 2)
    switches = sum(1 for event in recent if event.type == "navigation")

    local = current.astimezone(ZoneInfo(tz))
    within_quiet = bool(quiet_hours and quiet_hours.contains(local.hour * 60 + local.minute))

    minutes_idle: int | None = None
    if past:
        minutes_idle = int((current - past[-1].timestamp).total_seconds() // 60)

    level, reason = _interruptibility(minutes_idle, velocity, in_flow, session_minutes, cfg)
    should_defer = level is Interruptibility.DEEP_FOCUS or (
        in_flow and session_minutes > cfg.defer_flow_minutes
    )

    signals = QuietSignals(
        in_flow_state=in_flow,
        session_duration_min=session_minutes,
        within_quiet_hours=within_quiet,
        recent_burst_activity=len(recent) > cfg.burst_threshold,
        minutes_since_last_activity=minutes_idle,
        action_velocity=velocity,
        flow_type=_flow_type(recent) if in_flow else None,
        interruptibility=level,
        interruptibility_reason=reason,
        can_interrupt=level in (Interruptibility.AVAILABLE, Interruptibility.AWAY),
        should_defer=should_defer,
        is_typical_active_time=not most_active_hours or local.hour in most_active_hours,
        is_multitasking=switches >= cfg.multitask_switches,
    )
    logger.debug(
        "Quiet signals: flow=%s burst=%s quiet_hours=%s level=%s",
        signals.in_flow_state,
        signals.recent_burst_activity,
        signals.within_quiet_hours,
        signals.interruptibility.value,
    )
    return signals
