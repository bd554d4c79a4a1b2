"""Logging setup for the boardwalk CLI.

Log lines can carry ``gh`` stderr, lock holder details and file previews, so
every record passes through a ``SecretMaskingFilter`` before the Rich
handler renders it.
"""

import logging
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

from .redact import DEFAULT_MASKER, SecretMasker


class SecretMaskingFilter(logging.Filter):
    """Masks secrets in the fully formatted message of each record."""

    def __init__(self, masker: SecretMasker = DEFAULT_MASKER) -> None:
        super().__init__()
        self.masker = masker

    def filter(self, record: logging.LogRecord) -> bool:
        if self.masker.enabled:
            record.msg = self.masker.mask(record.getMessage())
            record.args = None
        return True


def log_level(verbosity: int = 0, quiet: bool = False, debug: bool = False) -> int:
    """Pick the root level. Precedence: quiet > debug > verbosity."""
    if quiet:
        return logging.WARNING
    if debug or verbosity >= 1:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
    debug: bool = False,
    masker: SecretMasker = DEFAULT_MASKER,
) -> Console:
    """Install a masked Rich handler on the root logger.

    Args:
        verbosity: Number of -v flags (1=debug, 2+=debug with time and source)
        quiet: Only warnings and errors
        no_color: Disable colored output
        stream: Where logs and console output go, stderr if not provided
        debug: Same as -vv
        masker: Secret masker applied to every log message

    Returns:
        The console the handler writes to, for command output
    """
    detailed = debug or verbosity >= 2
    console = Console(
        file=stream,
        stderr=stream is None,
        no_color=no_color,
        highlight=not no_color,
    )
    handler = RichHandler(
        console=console,
        show_time=detailed,
        show_path=detailed,
        rich_tracebacks=detailed,
    )
    handler.addFilter(SecretMaskingFilter(masker))

    # Replaces handlers from any earlier invocation in the same process
    logging.basicConfig(
        level=log_level(verbosity, quiet, debug),
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    return console


def set_log_masker(masker: SecretMasker) -> None:
    """Swap the masker used by the installed handlers, once config is known."""
    for handler in logging.getLogger().handlers:
        for log_filter in handler.filters:
            if isinstance(log_filter, SecretMaskingFilter):
                log_filter.masker = masker
