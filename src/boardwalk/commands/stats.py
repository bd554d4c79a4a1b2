"""Stats command: totals across recorded sessions and tasks."""

import typer
from rich.table import Table

from ..context import get_app_context
from ..core.state_files import load_metrics, load_session_stats
from ..errors import BoardwalkError


def stats(ctx: typer.Context) -> None:
    """Summarize session history and task metrics."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    try:
        masker = app_ctx.config.masker
        sessions = load_session_stats(app_ctx.board_dir, masker)
        metrics = load_metrics(app_ctx.board_dir, masker)
    except BoardwalkError as e:
        out.fail(e)

    tasks = metrics.tasks if metrics else []
    summary = {
        "sessions": len(sessions),
        "tasks_attempted": sum(s.tasks_attempted for s in sessions),
        "tasks_completed": sum(s.tasks_completed for s in sessions),
        "total_cost_usd": round(sum(s.total_cost_usd for s in sessions), 2),
        "total_duration_secs": round(sum(s.duration_secs for s in sessions)),
        "metrics": {
            "tasks": len(tasks),
            "completed": sum(1 for t in tasks if t.status == "completed"),
            "failed": sum(1 for t in tasks if t.status == "failed"),
            "retention_days": metrics.retention_days if metrics else None,
        },
    }

    if out.json_mode:
        out.print_json(summary)
        return
    if not sessions and not tasks:
        out.print("No sessions recorded yet")
        return

    table = Table(title="Boardwalk stats", show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Sessions", str(summary["sessions"]))
    table.add_row("Tasks attempted", str(summary["tasks_attempted"]))
    table.add_row("Tasks completed", str(summary["tasks_completed"]))
    table.add_row("Total cost", f"${summary['total_cost_usd']:.2f}")
    table.add_row("Total time", f"{summary['total_duration_secs'] // 60}m")
    if tasks:
        completed = summary["metrics"]["completed"]
        table.add_row("Task success rate", f"{completed / len(tasks):.0%}")
    out.console.print(table)
