"""CLI entrypoint for the AX engine."""

from __future__ import annotations

from pathlib import Path

import typer

from ui.cli import commands

app = typer.Typer(help="Agent-experience attention engine")
events_app = typer.Typer(help="Event log commands")
scratchpad_app = typer.Typer(help="Scratchpad commands")
config_app = typer.Typer(help="Configuration commands")

UserOption = typer.Option(None, "--user", help="User id (defaults to user.id from config)")


@app.callback()
def main_callback(
    ctx: typer.Context,
    root: Path = typer.Option(
        None, "--root", envvar="AX_ROOT", help="Project root holding config/ and workspace/"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Agent-experience attention engine."""
    ctx.obj = commands.CLIOptions(root=root, verbose=verbose)


@app.command("snapshot")
def snapshot_cmd(
    ctx: typer.Context,
    user: str = UserOption,
    now: str = typer.Option(None, "--now", help="ISO 8601 timestamp to compute at"),
    summary: bool = typer.Option(False, "--summary", help="Only overview and surfaced suggestions"),
) -> None:
    """Compute and print the attention snapshot."""
    commands.snapshot(ctx.obj, user=user, now=now, summary=summary)


@app.command("feedback")
def feedback_cmd(
    ctx: typer.Context,
    suggestion_id: str = typer.Argument(..., help="Suggestion id from a snapshot"),
    action: str = typer.Argument(..., help="approve or dismiss"),
    user: str = UserOption,
    session: str = typer.Option("cli", help="Session id"),
    edited: bool = typer.Option(False, "--edited", help="Edited before approving"),
) -> None:
    """Record feedback on a suggestion."""
    commands.feedback(
        ctx.obj,
        suggestion_id=suggestion_id,
        action=action,
        user=user,
        session=session,
        edited=edited,
    )


@events_app.command("track")
def events_track_cmd(
    ctx: typer.Context,
    event_type: str = typer.Argument(..., help="Event type, e.g. feature:used"),
    user: str = UserOption,
    session: str = typer.Option("cli", help="Session id"),
    field: list[str] = typer.Option([], "--field", "-f", help="Payload field as key=value"),
) -> None:
    """Append an event."""
    commands.events_track(
        ctx.obj, event_type=event_type, user=user, session=session, fields=field
    )


@events_app.command("list")
def events_list_cmd(
    ctx: typer.Context,
    user: str = UserOption,
    event_type: str = typer.Option(None, "--type", help="Only this event type"),
    limit: int = typer.Option(20, min=1, max=1000),
) -> None:
    """List recent events."""
    commands.events_list(ctx.obj, user=user, event_type=event_type, limit=limit)


@events_app.command("prune")
def events_prune_cmd(ctx: typer.Context, user: str = UserOption) -> None:
    """Apply retention limits."""
    commands.events_prune(ctx.obj, user=user)


@scratchpad_app.command("write")
def scratchpad_write_cmd(
    ctx: typer.Context,
    scope: str = typer.Argument(..., help="global or project:<id>"),
    kind: str = typer.Argument(..., help="observation, pending-action or learned-preference"),
    content: str = typer.Argument(...),
    user: str = UserOption,
    confidence: float = typer.Option(0.5, min=0.0, max=1.0),
    priority: int = typer.Option(0),
    source: str = typer.Option("cli"),
) -> None:
    """Append a scratchpad entry."""
    commands.scratchpad_write(
        ctx.obj,
        scope=scope,
        kind=kind,
        content=content,
        user=user,
        confidence=confidence,
        priority=priority,
        source=source,
    )


@scratchpad_app.command("read")
def scratchpad_read_cmd(
    ctx: typer.Context,
    scope: str = typer.Argument(..., help="global or project:<id>"),
    kind: str = typer.Option(None, "--kind"),
    user: str = UserOption,
    include_all: bool = typer.Option(False, "--all", help="Include consumed and expired"),
) -> None:
    """Read scratchpad entries."""
    commands.scratchpad_read(ctx.obj, scope=scope, kind=kind, user=user, include_all=include_all)


@scratchpad_app.command("consume")
def scratchpad_consume_cmd(ctx: typer.Context, entry_id: str, user: str = UserOption) -> None:
    """Mark an entry consumed."""
    commands.scratchpad_consume(ctx.obj, entry_id=entry_id, user=user)


@config_app.command("show")
def config_show_cmd(ctx: typer.Context) -> None:
    """Show effective configuration."""
    commands.config_show(ctx.obj)


app.add_typer(events_app, name="events")
app.add_typer(scratchpad_app, name="scratchpad")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
