"""gh CLI integration for boardwalk.

Every failure is raised as a ``BoardwalkError`` carrying an
``ErrorClassification``, so ``run_with_retry`` can tell a rate limit from
a missing issue. Error text is secret-masked before it leaves this module.
"""

import json
import logging
import subprocess
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..config import BoardwalkConfig
from ..errors import BoardwalkError, ErrorKind, command_error
from .retry import ErrorClassification, ErrorType, classify, execute_with_retry, safe_execute

logger = logging.getLogger(__name__)


class GhClient:
    """Runs gh commands with the configured timeout, retry policy and masking."""

    def __init__(
        self,
        config: BoardwalkConfig,
        cwd: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.executable = config.github.exec
        self.repo = config.github.repo
        self.timeout = config.github.timeout_secs
        self.policy = config.retry
        self.masker = config.masker
        self.cwd = cwd
        self._sleep = sleep

    def _describe(self, args: list[str]) -> str:
        return " ".join([self.executable, *args[:2]])

    def _repo_args(self) -> list[str]:
        return ["--repo", self.repo] if self.repo else []

    def run(self, args: list[str]) -> str:
        """Run one gh command and return its stdout.

        Raises:
            BoardwalkError: ``transient_command`` or ``permanent_command``
                depending on how the failure classifies.
        """
        cmd = [self.executable, *args]
        logger.debug("Running %s", self.masker.mask(" ".join(cmd)))
        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise command_error(
                f"{self._describe(args)} timed out after {self.timeout} seconds",
                ErrorClassification(True, ErrorType.NETWORK_ERROR),
            ) from e
        except FileNotFoundError:
            raise command_error(
                f"Command not found: {self.executable}",
                ErrorClassification(False, ErrorType.UNKNOWN),
            ) from None

        if result.returncode != 0:
            detail = result.stderr.strip() or result.stdout.strip()
            detail = self.masker.mask(detail or f"exit code {result.returncode}")
            raise command_error(f"{self._describe(args)} failed: {detail}", classify(detail))
        return result.stdout

    def run_with_retry(self, args: list[str]) -> str:
        return execute_with_retry(
            lambda: self.run(args),
            self.policy,
            sleep=self._sleep,
            masker=self.masker,
            description=self._describe(args),
        )

    def json(self, args: list[str]) -> Any:
        """Run a gh command with retry and parse its JSON output.

        Raises:
            BoardwalkError: command errors from ``run_with_retry``, or
                ``permanent_command`` if the output is not JSON.
        """
        output = self.run_with_retry(args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise BoardwalkError(
                ErrorKind.PERMANENT_COMMAND,
                f"{self._describe(args)} returned invalid JSON: {e}",
                classification=ErrorClassification(False, ErrorType.UNKNOWN),
            ) from e

    def safe_json(self, args: list[str]) -> Any | None:
        """Like ``json`` but returns None on any command failure."""
        return safe_execute(
            lambda: json.loads(self.run(args)),
            self.policy,
            sleep=self._sleep,
            masker=self.masker,
            description=self._describe(args),
        )

    def issue_title(self, number: int) -> str | None:
        """Best-effort issue title lookup."""
        data = self.safe_json(["issue", "view", str(number), "--json", "title", *self._repo_args()])
        if isinstance(data, dict) and isinstance(data.get("title"), str):
            return data["title"]
        return None

    def issue_exists(self, number: int) -> bool:
        """Whether the issue exists.

        Raises:
            BoardwalkError: for failures other than "not found", so callers
                can tell a missing issue from an unreachable GitHub.
        """
        try:
            self.json(["issue", "view", str(number), "--json", "number", *self._repo_args()])
        except BoardwalkError as e:
            if e.classification is not None and e.classification.type == ErrorType.NOT_FOUND:
                return False
            raise
        return True
