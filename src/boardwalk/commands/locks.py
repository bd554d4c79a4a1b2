"""Lock inspection and cleanup commands."""

import typer
from rich.table import Table

from ..context import get_app_context
from ..core.lock_manager import (
    cleanup_stale_locks,
    force_release,
    heartbeat_age,
    is_stale_lock,
    list_locks,
    read_lock,
)
from ..errors import BoardwalkError, ErrorKind, lock_held
from ..models import LockInfo
from ..output import OutputContext


def _format_age(seconds: float | None) -> str:
    if seconds is None:
        return "-"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes:02d}m"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def _print_table(out: OutputContext, infos: list[LockInfo]) -> None:
    table = Table(title="Issue locks")
    table.add_column("Issue", justify="right")
    table.add_column("State")
    table.add_column("Session")
    table.add_column("PID", justify="right")
    table.add_column("Held for")
    table.add_column("Heartbeat")

    for info in infos:
        issue = f"#{info.issue_number}" if info.issue_number is not None else "?"
        if info.error is not None:
            table.add_row(issue, "[red]corrupt[/red]", info.error, "-", "-", "-")
            continue
        state = "[yellow]stale[/yellow]" if info.stale else "[green]active[/green]"
        if info.process_alive is False:
            state += " (process gone)"
        table.add_row(
            issue,
            state,
            info.session_id or "-",
            str(info.pid),
            _format_age(info.age_seconds),
            f"{_format_age(info.heartbeat_age_seconds)} ago",
        )
    out.console.print(table)


def locks(ctx: typer.Context) -> None:
    """List issue locks and whether they are stale."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    try:
        infos = list_locks(app_ctx.board_dir, app_ctx.config.locks.timeout_minutes)
    except BoardwalkError as e:
        out.fail(e)

    if out.json_mode:
        out.print_json([info.model_dump(mode="json") for info in infos])
        return
    if not infos:
        out.print("No issue locks held")
        return

    _print_table(out, infos)
    stale = sum(1 for i in infos if i.stale)
    corrupt = sum(1 for i in infos if i.error is not None)
    out.print(f"{len(infos) - stale - corrupt} active, {stale} stale, {corrupt} corrupt")
    if stale:
        out.print("Remove stale locks with: boardwalk unlock --stale")


def unlock(
    ctx: typer.Context,
    issue: int | None = typer.Argument(None, min=1, help="Issue number to unlock"),
    stale: bool = typer.Option(False, "--stale", help="Remove all stale locks"),
    all_locks: bool = typer.Option(False, "--all", help="Remove all stale and corrupt locks"),
    force: bool = typer.Option(False, "--force", "-f", help="Also remove active locks"),
) -> None:
    """Release issue locks left behind by crashed or stuck sessions."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    if issue is None and not stale and not all_locks:
        out.error("Specify an issue number, --stale or --all")
        raise typer.Exit(1)

    try:
        board_dir = app_ctx.board_dir
        timeout = app_ctx.config.locks.timeout_minutes

        if issue is not None:
            try:
                record = read_lock(board_dir, issue)
            except BoardwalkError as e:
                if e.kind != ErrorKind.CORRUPT_RECORD or not force:
                    raise
                out.print(f"[yellow]Removing corrupt lock for issue #{issue}[/yellow]")
            else:
                if record is None:
                    out.error(f"No lock for issue #{issue}")
                    raise typer.Exit(1)
                if not force and not is_stale_lock(record, timeout):
                    age = int(heartbeat_age(record).total_seconds())
                    raise lock_held(issue, record.session_id, age)
            force_release(board_dir, issue)
            out.success(f"Released lock for issue #{issue}", {"released": [issue]})
            return

        if stale:
            removed = cleanup_stale_locks(board_dir, timeout)
            out.success(f"Removed {removed} stale lock(s)", {"removed": removed})
            return

        released = []
        skipped = []
        for info in list_locks(board_dir, timeout):
            if info.issue_number is None:
                continue
            if info.stale or info.error is not None or force:
                if force_release(board_dir, info.issue_number):
                    released.append(info.issue_number)
            else:
                skipped.append(info.issue_number)
        out.success(
            f"Released {len(released)} lock(s)", {"released": released, "skipped": skipped}
        )
        if skipped:
            out.print(
                f"[yellow]Kept {len(skipped)} active lock(s); use --force to remove them[/yellow]"
            )
    except BoardwalkError as e:
        out.fail(e)
