"""Init command implementation."""

import subprocess

import typer

from ..config import write_config_template
from ..constants import TOOL_CHECK_TIMEOUT
from ..context import get_app_context
from ..core.atomic_io import ensure_dir
from ..core.board_dir import get_config_path, get_locks_dir
from ..errors import BoardwalkError


def init(ctx: typer.Context) -> None:
    """Initialize boardwalk in the current directory."""
    app_ctx = get_app_context(ctx)
    out = app_ctx.output
    board_dir = app_ctx.board_dir
    config_path = get_config_path(board_dir)

    try:
        ensure_dir(get_locks_dir(board_dir))
        if not config_path.exists():
            write_config_template(board_dir)
            out.print(f"[green]Created config template:[/green] {config_path}")
        else:
            out.print(f"[yellow]Config already exists:[/yellow] {config_path}")
        config = app_ctx.config
    except BoardwalkError as e:
        out.fail(e)

    # Validate toolchain
    tools = {
        "gh": [config.github.exec, "--version"],
        config.agent.exec: [config.agent.exec, "--version"],
    }

    results: dict[str, bool] = {}
    for name, cmd in tools.items():
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=TOOL_CHECK_TIMEOUT)
            if result.returncode == 0:
                out.print(f"[green]✓[/green] {name}")
                results[name] = True
            else:
                out.print(f"[red]✗[/red] {name}: {result.stderr.strip()[:50]}")
                results[name] = False
        except FileNotFoundError:
            out.print(f"[red]✗[/red] {name}: not found in PATH")
            results[name] = False
        except subprocess.TimeoutExpired:
            out.print(f"[yellow]?[/yellow] {name}: timed out")

    all_ok = all(results.values())
    out.print_json({"board_dir": str(board_dir), "config": str(config_path), "tools": results})
    if not all_ok:
        out.print("\n[yellow]Warning: Some tools are missing or not configured[/yellow]")
        raise typer.Exit(2)

    out.print("\n[bold green]Boardwalk initialized successfully![/bold green]")
