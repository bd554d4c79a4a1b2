"""Pause and resume commands."""

import typer

from ..context import get_app_context
from ..core.state_files import is_paused, load_pause_lock, parse_duration, pause, resume
from ..errors import BoardwalkError


def pause_cmd(
    ctx: typer.Context,
    duration: str | None = typer.Option(
        None, "--for", help="Resume automatically after this long (e.g. 30m, 2h, 1h30m)"
    ),
    reason: str | None = typer.Option(None, "--reason", "-r", help="Why work is paused"),
) -> None:
    """Pause work: `boardwalk work` refuses to start while paused."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    board_dir = app_ctx.board_dir
    try:
        delta = parse_duration(duration) if duration else None
        if is_paused(board_dir):
            existing = load_pause_lock(board_dir)
            since = existing.paused_at.isoformat() if existing else "unknown"
            out.result(
                {"paused": True, "already_paused": True, "paused_at": since},
                f"[yellow]Already paused since {since}[/yellow]",
            )
            return
        record = pause(board_dir, reason=reason, duration=delta)
    except BoardwalkError as e:
        out.fail(e)

    message = "Paused"
    if record.resume_at is not None:
        message += f" until {record.resume_at.isoformat()}"
    out.success(message, {"paused": True, **record.to_dict()})


def resume_cmd(ctx: typer.Context) -> None:
    """Resume work after a pause."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    try:
        previous = resume(app_ctx.board_dir)
    except BoardwalkError as e:
        out.fail(e)

    if previous is None:
        out.result({"resumed": False}, "Not paused")
        return
    out.success("Resumed", {"resumed": True, "paused_at": previous.paused_at.isoformat()})
