"""Boardwalk CLI: issue-by-issue agent orchestration with file-based locks."""

from pathlib import Path

import typer

from boardwalk import __version__

from .commands import init, locks, pause_cmd, resume_cmd, stats, status, unlock, work
from .context import AppContext
from .core.board_dir import get_board_dir
from .logging import configure_logging
from .output import OutputContext


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"boardwalk {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="boardwalk",
    help="Work a GitHub project board issue by issue with a coding agent",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v, -vv)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in JSON format for automation",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    board_dir: Path | None = typer.Option(
        None,
        "--dir",
        envvar="BOARDWALK_DIR",
        help="Coordination directory (default: ./.boardwalk)",
    ),
) -> None:
    """Boardwalk CLI - issue-by-issue agent orchestration."""
    console = configure_logging(
        verbosity=verbose,
        quiet=quiet,
        no_color=no_color,
    )
    ctx.obj = AppContext(
        output=OutputContext(console=console, json_mode=json_output),
        board_dir=board_dir if board_dir is not None else get_board_dir(),
    )


app.command()(init)
app.command()(locks)
app.command()(unlock)
app.command("pause")(pause_cmd)
app.command("resume")(resume_cmd)
app.command()(status)
app.command()(stats)
app.command()(work)


if __name__ == "__main__":
    app()
