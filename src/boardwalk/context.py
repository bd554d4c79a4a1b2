"""Per-invocation CLI state, stored on the typer context object."""

from dataclasses import dataclass, field
from pathlib import Path

import typer
from rich.console import Console

from .config import BoardwalkConfig, load_config
from .core.board_dir import get_board_dir
from .logging import set_log_masker
from .output import OutputContext


@dataclass
class AppContext:
    """Everything a command needs, built once by the CLI callback.

    The configuration is loaded on first use so that commands like
    ``init`` work before a config file exists.
    """

    output: OutputContext
    board_dir: Path
    _config: BoardwalkConfig | None = field(default=None, repr=False)

    @property
    def config(self) -> BoardwalkConfig:
        if self._config is None:
            self._config = load_config(self.board_dir)
            self.output.masker = self._config.masker
            set_log_masker(self._config.masker)
        return self._config


def get_app_context(ctx: typer.Context) -> AppContext:
    """Get the AppContext set by the CLI callback, or a default one."""
    obj = ctx.find_object(AppContext)
    if obj is None:
        obj = AppContext(output=OutputContext(Console()), board_dir=get_board_dir())
        ctx.obj = obj
    return obj
