"""Quiet signal detector tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from cognition.quiet_signals import (
    Interruptibility,
    QuietHours,
    detect_quiet_signals,
    quiet_hours_from_working_hours,
)
from memory.types.events import TrackableEvent, new_event

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
NIGHT = QuietHours(start="22:00", end="06:00")


def event(event_type: str, minutes_ago: float, **fields: object) -> TrackableEvent:
    return new_event(
        event_type,
        session_id="s1",
        timestamp=NOW - timedelta(minutes=minutes_ago),
        event_id=f"{event_type}-{minutes_ago}",
        **fields,
    )


@pytest.mark.parametrize(
    ("hour", "minute", "quiet"),
    [(23, 30, True), (22, 0, True), (2, 0, True), (5, 59, True), (6, 0, False), (12, 0, False)],
)
def test_quiet_hours_wrap_past_midnight(hour: int, minute: int, quiet: bool) -> None:
    now = datetime(2026, 3, 10, hour, minute, tzinfo=UTC)
    assert detect_quiet_signals([], now, NIGHT).within_quiet_hours is quiet


def test_daytime_window_and_empty_window() -> None:
    lunch = QuietHours(start="12:00", end="13:00")
    assert lunch.contains(12 * 60 + 30)
    assert not lunch.contains(13 * 60)
    assert not QuietHours(start="08:00", end="08:00").contains(8 * 60)


def test_quiet_hours_use_local_time() -> None:
    now = datetime(2026, 3, 10, 14, 30, tzinfo=UTC)
    assert detect_quiet_signals([], now, NIGHT, tz="Asia/Tokyo").within_quiet_hours is True
    assert detect_quiet_signals([], now, NIGHT).within_quiet_hours is False


def test_quiet_hours_validation_and_inversion() -> None:
    with pytest.raises(ValidationError):
        QuietHours(start="25:00", end="06:00")
    with pytest.raises(ValidationError):
        QuietHours(start="9pm", end="06:00")

    derived = quiet_hours_from_working_hours("09:00", "17:30")
    assert derived == QuietHours(start="17:30", end="09:00")
    assert QuietHours(start="7:05", end="08:00").start == "07:05"


def test_long_session_without_suggestions_is_flow() -> None:
    signals = detect_quiet_signals([event("session:started", 30)], NOW)

    assert signals.in_flow_state is True
    assert signals.session_duration_min == 30


def test_suggestion_interaction_breaks_flow() -> None:
    events = [
        event("session:started", 40),
        event("suggestion:dismissed", 10, suggestion_type="tag-suggestion"),
    ]
    assert detect_quiet_signals(events, NOW).in_flow_state is False


def test_short_or_ended_session_is_not_flow() -> None:
    short = detect_quiet_signals([event("session:started", 20)], NOW)
    ended = detect_quiet_signals(
        [event("session:started", 60), event("session:ended", 5, duration_seconds=3300)], NOW
    )

    assert short.in_flow_state is False
    assert ended.session_duration_min == 0
    assert ended.in_flow_state is False


def test_burst_needs_more_than_threshold_events() -> None:
    three = [event("feature:used", minute, feature="f") for minute in (1, 2, 3)]
    four = three + [event("feature:used", 4, feature="f")]

    assert detect_quiet_signals(three, NOW).recent_burst_activity is False
    burst = detect_quiet_signals(four, NOW)
    assert burst.recent_burst_activity is True
    assert burst.action_velocity == 0.8


def test_events_after_now_are_ignored() -> None:
    future = [event("feature:used", -minute, feature="f") for minute in (1, 2, 3, 4)]
    signals = detect_quiet_signals(future, NOW)

    assert signals.recent_burst_activity is False
    assert signals.minutes_since_last_activity is None


def test_minutes_since_last_activity() -> None:
    signals = detect_quiet_signals([event("navigation", 12, from_path="/", to_path="/a")], NOW)
    assert signals.minutes_since_last_activity == 12


@pytest.mark.parametrize(
    ("events", "level", "can_interrupt"),
    [
        ([], Interruptibility.AWAY, True),
        ([event("navigation", 12, from_path="/", to_path="/a")], Interruptibility.AWAY, True),
        ([event("navigation", 3, from_path="/", to_path="/a")], Interruptibility.AVAILABLE, True),
        ([event("navigation", 1, from_path="/", to_path="/a")], Interruptibility.FOCUSED, False),
    ],
)
def test_interruptibility_follows_idle_time(
    events: list[TrackableEvent], level: Interruptibility, can_interrupt: bool
) -> None:
    signals = detect_quiet_signals(events, NOW)

    assert signals.interruptibility is level
    assert signals.can_interrupt is can_interrupt
    assert signals.should_defer is False


def test_high_velocity_is_deep_focus() -> None:
    events = [event("feature:used", index * 0.2, feature="f") for index in range(20)]
    signals = detect_quiet_signals(events, NOW)

    assert signals.action_velocity == 4.0
    assert signals.interruptibility is Interruptibility.DEEP_FOCUS
    assert signals.can_interrupt is False
    assert signals.should_defer is True


def test_flow_session_defers_and_reports_coding() -> None:
    events = [event("session:started", 30)] + [
        event("shortcut:used", minute, shortcut="cmd+k") for minute in (1, 2, 3)
    ]
    signals = detect_quiet_signals(events, NOW)

    assert signals.in_flow_state is True
    assert signals.flow_type == "coding"
    assert signals.interruptibility is Interruptibility.FOCUSED
    assert signals.interruptibility_reason == "In flow for 30 minutes"
    assert signals.should_defer is True


def test_rapid_navigation_is_multitasking() -> None:
    hops = [
        event("navigation", minute, from_path="/", to_path=f"/{minute}") for minute in (0, 1, 2, 3)
    ]

    assert detect_quiet_signals(hops, NOW).is_multitasking is False
    more = hops + [event("navigation", 4, from_path="/", to_path="/4")]
    assert detect_quiet_signals(more, NOW).is_multitasking is True


def test_typical_active_time_uses_profile_hours() -> None:
    assert detect_quiet_signals([], NOW).is_typical_active_time is True
    assert detect_quiet_signals([], NOW, most_active_hours=(12,)).is_typical_active_time is True
    assert detect_quiet_signals([], NOW, most_active_hours=(9, 10)).is_typical_active_time is False
    tokyo = detect_quiet_signals([], NOW, tz="Asia/Tokyo", most_active_hours=(21,))
    assert tokyo.is_typical_active_time is True
