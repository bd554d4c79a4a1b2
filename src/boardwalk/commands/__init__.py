"""CLI command implementations for boardwalk.

This package contains the implementation of each CLI command,
separated from the CLI framework setup in cli.py.
"""

from .init import init
from .locks import locks, unlock
from .pause import pause_cmd, resume_cmd
from .stats import stats
from .status import status
from .work import work

__all__ = [
    "init",
    "locks",
    "pause_cmd",
    "resume_cmd",
    "stats",
    "status",
    "unlock",
    "work",
]
