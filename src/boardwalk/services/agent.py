"""Coding agent invocation for ``boardwalk work``."""

import logging
import subprocess
from pathlib import Path

from ..config import AgentConfig
from ..errors import command_error
from .retry import ErrorClassification, ErrorType

logger = logging.getLogger(__name__)


def build_prompt(issue_number: int, title: str | None = None) -> str:
    if title:
        return f"Work on GitHub issue #{issue_number}: {title}"
    return f"Work on GitHub issue #{issue_number}"


def build_agent_command(config: AgentConfig, prompt: str, extra_args: list[str]) -> list[str]:
    """Agent command line: configured args, then per-run args, then the prompt."""
    return [config.exec, *config.args, *extra_args, prompt]


def run_agent(
    config: AgentConfig,
    prompt: str,
    extra_args: list[str] | None = None,
    cwd: Path | None = None,
) -> int:
    """Run the agent attached to the terminal and return its exit code.

    No timeout applies: the agent may work for as long as it needs while
    the lock heartbeat keeps the claim fresh.

    Raises:
        BoardwalkError: ``permanent_command`` if the agent executable is missing.
    """
    cmd = build_agent_command(config, prompt, extra_args or [])
    logger.debug("Running agent: %s", " ".join(cmd))
    try:
        return subprocess.run(cmd, cwd=cwd).returncode
    except FileNotFoundError:
        raise command_error(
            f"Agent command not found: {config.exec}",
            ErrorClassification(False, ErrorType.UNKNOWN),
        ) from None
