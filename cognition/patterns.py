"""Behavioral pattern analysis over the event history."""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, field_validator

from cognition.staleness import to_utc_datetime
from core.engine_config import PatternConfig
from core.errors import InsufficientSampleSize
from memory.types.events import TrackableEvent

logger = logging.getLogger("ax.patterns")

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_DAILY_MIN_USES = 7
_WEEKLY_MIN_USES = 3
_DETAILED_NOTE_WORDS = 100
_PROJECT_PATH = re.compile(r"/projects/([^/?#]+)")


class FeatureUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    use_count: int
    last_used: datetime
    frequency: Literal["daily", "weekly", "rarely"]


class UserPatterns(BaseModel):
    """Derived behavior profile. A ``None`` rate means no samples yet."""

    model_config = ConfigDict(frozen=True)

    acceptance_rate_by_type: dict[str, float | None] = {}
    ignored_types: tuple[str, ...] = ()
    active_hour_histogram: tuple[int, ...] = (0,) * 24
    feature_usage_counts: dict[str, int] = {}
    feature_usage: dict[str, FeatureUsage] = {}
    approval_counts: dict[str, int] = {}
    dismissal_counts: dict[str, int] = {}
    overall_approval_rate: float | None = None
    dismiss_rate: float | None = None
    edit_rate: float | None = None
    average_response_seconds: float | None = None
    most_active_hours: tuple[int, ...] = ()
    most_active_days: tuple[str, ...] = ()
    current_streak: int = 0
    last_active_at: datetime | None = None
    average_session_minutes: int = 0
    prefers_keyboard: bool = False
    preferred_note_types: tuple[str, ...] = ()
    ignored_note_types: tuple[str, ...] = ()
    work_style: Literal["maker", "manager"] = "maker"
    project_focus_pattern: Literal["single", "multi"] = "multi"
    communication_style: Literal["brief", "detailed"] = "brief"
    event_count: int = 0
    data_span_days: int = 0

    @field_validator("active_hour_histogram")
    @classmethod
    def _twenty_four(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if len(value) != 24:
            raise ValueError("active_hour_histogram must have 24 buckets")
        return value

    def acceptance_rate(self, suggestion_type: str) -> float | None:
        return self.acceptance_rate_by_type.get(suggestion_type)

    def require_acceptance_rate(self, suggestion_type: str) -> float:
        """Acceptance rate, raising when there is no feedback for the type."""
        rate = self.acceptance_rate(suggestion_type)
        if rate is None:
            raise InsufficientSampleSize(suggestion_type)
        return rate

    def is_ignored(self, suggestion_type: str) -> bool:
        return suggestion_type in self.ignored_types


def _ratio(part: int, total: int) -> float | None:
    if total == 0:
        return None
    return part / total


def _top(counts: Counter[int] | Counter[str], n: int) -> tuple:
    # Ties break on the key so output is stable across runs.
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return tuple(key for key, _ in ranked[:n])


def _frequency(count: int, idle: timedelta) -> Literal["daily", "weekly", "rarely"]:
    if count >= _DAILY_MIN_USES and idle < timedelta(days=1):
        return "daily"
    if count >= _WEEKLY_MIN_USES and idle < timedelta(days=7):
        return "weekly"
    return "rarely"


def _streak(active_dates: set[date], today: date) -> int:
    """Consecutive active days ending today, or yesterday when today is empty so far."""
    day = today if today in active_dates else today - timedelta(days=1)
    streak = 0
    while day in active_dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def analyze_patterns(
    events: Sequence[TrackableEvent],
    *,
    now: datetime | None = None,
    config: PatternConfig | None = None,
    tz: str = "UTC",
) -> UserPatterns:
    """Compute ``UserPatterns`` from an event history.

    ``now`` anchors the active-hour window, the streak and feature
    frequencies. It defaults to the newest event, so the result depends
    only on the inputs.
    """
    cfg = config or PatternConfig()
    if not events:
        return UserPatterns()
    zone = ZoneInfo(tz)
    ordered = sorted(events, key=lambda event: (event.timestamp, event.id))
    anchor = to_utc_datetime(now, "now") if now is not None else ordered[-1].timestamp
    window_start = anchor - timedelta(days=cfg.active_window_days)

    approvals: Counter[str] = Counter()
    dismissals: Counter[str] = Counter()
    features: Counter[str] = Counter()
    feature_last_used: dict[str, datetime] = {}
    note_types: Counter[str] = Counter()
    note_words: list[int] = []
    hours: Counter[int] = Counter()
    weekdays: Counter[int] = Counter()
    histogram = [0] * 24
    active_dates: set[date] = set()
    edited = 0
    session_seconds: list[float] = []
    response_ms: list[int] = []
    shortcuts = 0
    navigations = 0
    project_visits: list[str] = []
    task_intents = 0
    coordination_intents = 0

    for event in ordered:
        payload = event.payload
        local = event.timestamp.astimezone(zone)
        if event.timestamp <= anchor:
            active_dates.add(local.date())
        if window_start <= event.timestamp <= anchor:
            histogram[local.hour] += 1
            hours[local.hour] += 1
            weekdays[local.weekday()] += 1
        if payload.type == "suggestion:approved":
            approvals[payload.suggestion_type] += 1
            edited += int(payload.edited_before_approve)
        elif payload.type == "suggestion:dismissed":
            dismissals[payload.suggestion_type] += 1
        elif payload.type == "feature:used":
            features[payload.feature] += 1
            feature_last_used[payload.feature] = event.timestamp
        elif payload.type == "note:created":
            note_types[payload.note_type] += 1
            note_words.append(payload.word_count)
        elif payload.type == "session:ended":
            session_seconds.append(payload.duration_seconds)
        elif payload.type == "suggestion:response-time":
            response_ms.append(payload.response_time_ms)
        elif payload.type == "shortcut:used":
            shortcuts += 1
        elif payload.type == "navigation":
            navigations += 1
            match = _PROJECT_PATH.search(payload.to_path)
            if match:
                project_visits.append(match.group(1))
        elif payload.type == "action:taken":
            if "task" in payload.intent:
                task_intents += 1
            elif "call" in payload.intent or "update" in payload.intent:
                coordination_intents += 1

    suggestion_types = sorted(set(approvals) | set(dismissals))
    rates = {
        name: _ratio(approvals[name], approvals[name] + dismissals[name])
        for name in suggestion_types
    }
    ignored = tuple(
        name
        for name in suggestion_types
        if approvals[name] + dismissals[name] >= cfg.min_samples
        and dismissals[name] > cfg.ignore_multiple * approvals[name]
    )
    total_approved = sum(approvals.values())
    total_dismissed = sum(dismissals.values())
    total_feedback = total_approved + total_dismissed
    span_seconds = (ordered[-1].timestamp - ordered[0].timestamp).total_seconds()
    preferred_notes = _top(note_types, 3)
    least_used_notes = sorted(
        (name for name in note_types if name not in preferred_notes),
        key=lambda name: (note_types[name], name),
    )
    single_focus = len(project_visits) > 5 and len(set(project_visits)) <= 2

    patterns = UserPatterns(
        acceptance_rate_by_type=rates,
        ignored_types=ignored,
        active_hour_histogram=tuple(histogram),
        feature_usage_counts=dict(sorted(features.items())),
        feature_usage={
            name: FeatureUsage(
                use_count=count,
                last_used=feature_last_used[name],
                frequency=_frequency(count, anchor - feature_last_used[name]),
            )
            for name, count in sorted(features.items())
        },
        approval_counts=dict(sorted(approvals.items())),
        dismissal_counts=dict(sorted(dismissals.items())),
        overall_approval_rate=_ratio(total_approved, total_feedback),
        dismiss_rate=_ratio(total_dismissed, total_feedback),
        edit_rate=_ratio(edited, total_approved),
        average_response_seconds=(
            round(sum(response_ms) / len(response_ms) / 1000, 3) if response_ms else None
        ),
        most_active_hours=_top(hours, cfg.top_active_hours),
        most_active_days=tuple(WEEKDAYS[day] for day in _top(weekdays, cfg.top_active_days)),
        current_streak=_streak(active_dates, anchor.astimezone(zone).date()),
        last_active_at=ordered[-1].timestamp,
        average_session_minutes=(
            round(sum(session_seconds) / len(session_seconds) / 60) if session_seconds else 0
        ),
        prefers_keyboard=shortcuts > 0 and shortcuts >= navigations * cfg.keyboard_ratio,
        preferred_note_types=preferred_notes,
        ignored_note_types=tuple(least_used_notes[:2]),
        work_style="maker" if task_intents >= coordination_intents else "manager",
        project_focus_pattern="single" if single_focus else "multi",
        communication_style=(
            "detailed"
            if note_words and sum(note_words) / len(note_words) > _DETAILED_NOTE_WORDS
            else "brief"
        ),
        event_count=len(ordered),
        data_span_days=math.ceil(span_seconds / 86400),
    )
    if ignored:
        logger.debug("Ignored suggestion types: %s", ", ".join(ignored))
    return patterns


def is_good_time_for_suggestions(
    patterns: UserPatterns, now: datetime, tz: str = "UTC"
) -> bool:
    """True when ``now`` falls in the user's usual hours and days.

    An empty hour or day profile does not restrict.
    """
    local = to_utc_datetime(now, "now").astimezone(ZoneInfo(tz))
    hour_ok = not patterns.most_active_hours or local.hour in patterns.most_active_hours
    day_ok = not patterns.most_active_days or WEEKDAYS[local.weekday()] in patterns.most_active_days
    return hour_ok and day_ok
