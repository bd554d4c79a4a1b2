"""Status command for a board overview."""

from typing import Any

import typer

from ..context import get_app_context
from ..core.lock_manager import list_locks
from ..core.state_files import find_pending_approval, load_pause_lock, load_progress
from ..errors import BoardwalkError
from ..models import utc_now


def status(ctx: typer.Context) -> None:
    """Show pause state, pending approvals, current progress and locks."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    board_dir = app_ctx.board_dir

    try:
        config = app_ctx.config
        masker = config.masker
        pause_lock = load_pause_lock(board_dir, masker)
        approval = find_pending_approval(board_dir, masker)
        progress = load_progress(board_dir, masker)
        infos = list_locks(board_dir, config.locks.timeout_minutes)
    except BoardwalkError as e:
        out.fail(e)

    paused = pause_lock is not None and not pause_lock.is_expired(utc_now())
    stale = [i.issue_number for i in infos if i.stale]
    corrupt = [i.path for i in infos if i.error is not None]
    active = [i.issue_number for i in infos if not i.stale and i.error is None]

    if out.json_mode:
        data: dict[str, Any] = {
            "board_dir": str(board_dir),
            "paused": paused,
            "pause": pause_lock.to_dict() if paused and pause_lock else None,
            "pending_approval": approval.to_dict() if approval else None,
            "progress": progress.to_dict() if progress else None,
            "locks": {"active": active, "stale": stale, "corrupt": corrupt},
        }
        out.print_json(data)
        return

    out.print(f"\n[bold]Board:[/bold] {board_dir}")
    if paused and pause_lock is not None:
        out.print(f"[yellow]Status: PAUSED[/yellow] since {pause_lock.paused_at:%Y-%m-%d %H:%M}")
        if pause_lock.reason:
            out.print(f"  Reason: {pause_lock.reason}")
        if pause_lock.resume_at:
            out.print(f"  Resumes at: {pause_lock.resume_at:%Y-%m-%d %H:%M} UTC")
        out.print("  Next: boardwalk resume")

    if approval is not None:
        out.print(
            f"[yellow]Awaiting approval:[/yellow] issue #{approval.issue_number} "
            f"({approval.phase})"
        )

    if progress is not None:
        out.print(f"[bold]Progress:[/bold] {progress.status}")
        if progress.current_task is not None:
            task = progress.current_task
            out.print(f"  Current task: #{task.id} {task.title}".rstrip())
        if progress.phase:
            out.print(f"  Phase: {progress.phase}")

    out.print(
        f"[bold]Locks:[/bold] {len(active)} active, {len(stale)} stale, {len(corrupt)} corrupt"
    )
    if stale:
        out.print("  Next: boardwalk unlock --stale")
    if not paused and approval is None and not active:
        out.print("[green]Status: Idle[/green]")
