"""External command integrations for boardwalk.

- retry: Error classification and backoff for flaky external commands
- github: gh CLI client built on retry
- agent: Coding agent invocation
"""

from .agent import build_agent_command, build_prompt, run_agent
from .github import GhClient
from .retry import (
    ErrorClassification,
    ErrorType,
    classify,
    compute_backoff_delay,
    execute_with_retry,
    safe_execute,
)

__all__ = [
    "ErrorClassification",
    "ErrorType",
    "GhClient",
    "build_agent_command",
    "build_prompt",
    "classify",
    "compute_backoff_delay",
    "execute_with_retry",
    "run_agent",
    "safe_execute",
]
