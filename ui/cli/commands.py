"""Typer command handlers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from core.errors import AXError
from core.orchestrator import Orchestrator, RuntimeBundle
from core.policy_runtime import configure_logging


@dataclass(frozen=True)
class CLIOptions:
    """Global options, carried on the typer context object."""

    root: Path | None = None
    verbose: bool = False


def _runtime(options: CLIOptions) -> RuntimeBundle:
    bundle = Orchestrator(root=options.root).build()
    configure_logging(bundle.config, verbose=options.verbose)
    return bundle


def _parse_now(now: str | None) -> datetime | None:
    if not now:
        return None
    try:
        return datetime.fromisoformat(now)
    except ValueError as exc:
        raise typer.BadParameter(f"--now must be ISO 8601, got {now!r}") from exc


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def snapshot(
    options: CLIOptions, user: str | None, now: str | None, summary: bool = False
) -> None:
    """Print the attention snapshot, or raw entities when degraded."""
    bundle = _runtime(options)
    user_id = user or bundle.user_id
    try:
        result = bundle.service.safe_snapshot(user_id, now=_parse_now(now))
    except AXError as exc:
        _fail(exc)
        return
    if result.graph is None:
        _echo_json({"degraded": True, "error": result.error, "entities": result.entities})
        return
    if summary:
        graph = result.graph
        _echo_json(
            {
                "generated_at": graph.generated_at,
                "staleness_overview": graph.staleness_overview,
                "quiet": graph.quiet,
                "surfaced": graph.surfaced(),
            }
        )
        return
    typer.echo(result.graph.to_json())


def feedback(
    options: CLIOptions,
    suggestion_id: str,
    action: str,
    user: str | None,
    session: str,
    edited: bool,
) -> None:
    """Record approve/dismiss feedback."""
    bundle = _runtime(options)
    try:
        event = bundle.service.suggestion_feedback(
            user or bundle.user_id, suggestion_id, action, session_id=session, edited=edited
        )
    except (AXError, ValueError) as exc:
        _fail(exc)
        return
    typer.echo(f"Recorded {event.type} for {event.payload.suggestion_type}")


def _parse_fields(fields: list[str]) -> dict[str, Any]:
    parsed: dict[str, Any] = {}
    for item in fields:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {item!r}")
        try:
            parsed[key] = json.loads(raw)
        except json.JSONDecodeError:
            parsed[key] = raw
    return parsed


def events_track(
    options: CLIOptions, event_type: str, user: str | None, session: str, fields: list[str]
) -> None:
    """Append one typed event."""
    bundle = _runtime(options)
    try:
        event = bundle.service.track(
            user or bundle.user_id, event_type, session_id=session, **_parse_fields(fields)
        )
    except (AXError, ValueError) as exc:
        _fail(exc)
        return
    typer.echo(f"Tracked {event.type} ({event.id})")


def events_list(options: CLIOptions, user: str | None, event_type: str | None, limit: int) -> None:
    """List the most recent events."""
    bundle = _runtime(options)
    events = bundle.event_log.query(
        user or bundle.user_id,
        types=[event_type] if event_type else None,
        limit=limit,
    )
    _echo_json(events)


def events_prune(options: CLIOptions, user: str | None) -> None:
    """Apply retention to the event log."""
    bundle = _runtime(options)
    removed = bundle.service.prune_events(user or bundle.user_id)
    typer.echo(f"Pruned {removed} events")


def scratchpad_write(
    options: CLIOptions,
    scope: str,
    kind: str,
    content: str,
    user: str | None,
    confidence: float,
    priority: int,
    source: str,
) -> None:
    """Append a scratchpad entry."""
    bundle = _runtime(options)
    try:
        entry = bundle.service.scratchpad_write(
            user or bundle.user_id,
            scope,
            kind,
            content,
            confidence=confidence,
            priority=priority,
            source=source,
        )
    except (AXError, ValueError) as exc:
        _fail(exc)
        return
    typer.echo(entry.id)


def scratchpad_read(
    options: CLIOptions, scope: str, kind: str | None, user: str | None, include_all: bool
) -> None:
    """Print entries for one scope."""
    bundle = _runtime(options)
    try:
        entries = bundle.service.scratchpad_read(
            user or bundle.user_id,
            scope,
            kind,
            include_consumed=include_all,
            include_expired=include_all,
        )
    except (AXError, ValueError) as exc:
        _fail(exc)
        return
    _echo_json(entries)


def scratchpad_consume(options: CLIOptions, entry_id: str, user: str | None) -> None:
    """Mark a scratchpad entry consumed."""
    bundle = _runtime(options)
    try:
        entry = bundle.service.scratchpad_consume(user or bundle.user_id, entry_id)
    except KeyError:
        _fail(LookupError(f"No scratchpad entry {entry_id}"))
        return
    except AXError as exc:
        _fail(exc)
        return
    typer.echo(f"Consumed {entry.id} at {entry.consumed_at.isoformat() if entry.consumed_at else ''}")


def config_show(options: CLIOptions) -> None:
    """Show effective runtime config."""
    bundle = _runtime(options)
    _echo_json(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert models and datetimes to JSON-ready values."""
    if hasattr(payload, "model_dump"):
        return payload.model_dump(mode="json")
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_json_safe(v) for v in payload]
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
