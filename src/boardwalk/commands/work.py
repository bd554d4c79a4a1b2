"""Work command: claim an issue and run the coding agent on it."""

import logging

import typer

from ..context import get_app_context
from ..core.heartbeat import hold_lock
from ..core.lock_manager import generate_session_id
from ..core.state_files import (
    append_session_stats,
    is_paused,
    record_task_metric,
    write_progress,
)
from ..errors import BoardwalkError
from ..models import CurrentTask, Progress, SessionProgress, SessionStats, TaskMetric, utc_now
from ..services import GhClient, build_prompt, run_agent

logger = logging.getLogger(__name__)


def work(
    ctx: typer.Context,
    issue: int = typer.Argument(..., min=1, help="Issue number to work on"),
    agent_args: list[str] | None = typer.Argument(
        None, help="Extra agent arguments, after --", show_default=False
    ),
    force_claim: bool = typer.Option(
        False, "--force-claim", help="Take over the issue if its current lock is stale"
    ),
) -> None:
    """Claim an issue, run the agent on it and record the outcome.

    The issue lock is heartbeated while the agent runs and released when it
    exits, whatever the outcome.
    """
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    board_dir = app_ctx.board_dir
    session_id = generate_session_id()

    try:
        config = app_ctx.config
        if is_paused(board_dir):
            out.error("Boardwalk is paused; run `boardwalk resume` first", {"paused": True})
            raise typer.Exit(1)

        gh = GhClient(config, cwd=board_dir.parent)
        with hold_lock(
            board_dir,
            issue,
            session_id,
            timeout_minutes=config.locks.timeout_minutes,
            interval_secs=config.locks.heartbeat_interval_secs,
            force=force_claim,
            repo_name=config.github.repo,
        ):
            out.print(f"[cyan]Claimed issue #{issue}[/cyan] (session {session_id})")
            title = gh.issue_title(issue)
            started = utc_now()
            write_progress(
                board_dir,
                Progress(
                    status="in_progress",
                    current_task=CurrentTask(
                        id=str(issue), title=title or "", branch="", started_at=started
                    ),
                    session=SessionProgress(started_at=started),
                ),
            )

            exit_code = run_agent(
                config.agent, build_prompt(issue, title), agent_args, cwd=board_dir.parent
            )
            logger.debug("Agent exited with code %d for issue #%d", exit_code, issue)

            ended = utc_now()
            succeeded = exit_code == 0
            duration = (ended - started).total_seconds()
            record_task_metric(
                board_dir,
                TaskMetric(
                    issue_number=issue,
                    started_at=started,
                    completed_at=ended,
                    duration_secs=duration,
                    status="completed" if succeeded else "failed",
                    failure_reason=None if succeeded else f"agent exited with code {exit_code}",
                    failure_phase=None if succeeded else "agent",
                ),
            )
            append_session_stats(
                board_dir,
                SessionStats(
                    session_id=session_id,
                    started_at=started,
                    ended_at=ended,
                    duration_secs=duration,
                    tasks_attempted=1,
                    tasks_completed=1 if succeeded else 0,
                    successful_tasks=[issue] if succeeded else [],
                    failed_tasks=[] if succeeded else [issue],
                    repo=config.github.repo or "unknown/unknown",
                ),
            )
            write_progress(board_dir, Progress(status="idle" if succeeded else "error"))
    except BoardwalkError as e:
        out.fail(e)

    data = {"issue_number": issue, "session_id": session_id, "exit_code": exit_code}
    if not succeeded:
        out.error(f"Agent exited with code {exit_code} on issue #{issue}", data)
        raise typer.Exit(1)
    out.success(f"Finished issue #{issue}", data)
