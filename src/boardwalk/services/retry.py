"""Classified retry with exponential backoff for external commands.

The gh CLI reports failures as plain text, so errors are classified by
matching known signatures in their message. Only recoverable failures
(rate limits, 5xx responses, network trouble) are retried; anything else
is raised on the first attempt.
"""

import logging
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from ..config import RetryPolicy
from ..errors import BoardwalkError, ErrorKind, command_error
from ..redact import DEFAULT_MASKER, SecretMasker

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryObserver = Callable[[int, int, BaseException, float], None]


class ErrorType(str, Enum):
    RATE_LIMIT = "rate_limit"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    AUTH_ERROR = "auth_error"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorClassification:
    """How a failure should be treated.

    Attributes:
        recoverable: Whether retrying may succeed.
        type: Failure category.
        retry_after_ms: Server-requested wait, for rate limits that state one.
    """

    recoverable: bool
    type: ErrorType
    retry_after_ms: int | None = None


RATE_LIMIT_RE = re.compile(r"rate limit|too many requests", re.IGNORECASE)
RETRY_AFTER_RE = re.compile(r"retry.?after[:\s]+(\d+)", re.IGNORECASE)

# Checked in order; the first match wins
NON_RECOVERABLE_PATTERNS: tuple[tuple[re.Pattern[str], ErrorType], ...] = (
    (re.compile(r"\b401\b"), ErrorType.AUTH_ERROR),
    (re.compile(r"\b403\b"), ErrorType.AUTH_ERROR),
    (re.compile(r"unauthorized|authentication failed|bad credentials", re.I), ErrorType.AUTH_ERROR),
    (re.compile(r"\b404\b"), ErrorType.NOT_FOUND),
    (re.compile(r"not found", re.I), ErrorType.NOT_FOUND),
    (re.compile(r"\b422\b"), ErrorType.VALIDATION),
    (re.compile(r"validation failed|unprocessable", re.I), ErrorType.VALIDATION),
)

SERVER_ERROR_RE = re.compile(
    r"\b5\d\d\b|bad gateway|service unavailable|gateway timeout", re.IGNORECASE
)
NETWORK_ERROR_RE = re.compile(
    r"ETIMEDOUT|ECONNRESET|ECONNREFUSED|ENOTFOUND|ENETUNREACH|socket hang up|"
    r"network|connection reset|timeout|timed out",
    re.IGNORECASE,
)


def classify(error: BaseException | str) -> ErrorClassification:
    """Classify a failure by its message.

    Priority: rate limits, then known permanent failures (auth, not found,
    validation), then known transient failures (5xx, network). Anything
    unrecognised is treated as permanent.

    A rate-limit message stating a wait (``retry after: 5``) carries it as
    ``retry_after_ms`` (5000).
    """
    message = str(error)

    if RATE_LIMIT_RE.search(message):
        match = RETRY_AFTER_RE.search(message)
        retry_after_ms = int(match.group(1)) * 1000 if match else None
        return ErrorClassification(True, ErrorType.RATE_LIMIT, retry_after_ms)

    for pattern, error_type in NON_RECOVERABLE_PATTERNS:
        if pattern.search(message):
            return ErrorClassification(False, error_type)

    if SERVER_ERROR_RE.search(message):
        return ErrorClassification(True, ErrorType.SERVER_ERROR)
    if NETWORK_ERROR_RE.search(message):
        return ErrorClassification(True, ErrorType.NETWORK_ERROR)

    return ErrorClassification(False, ErrorType.UNKNOWN)


def compute_backoff_delay(
    attempt: int,
    policy: RetryPolicy,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay in milliseconds before retry number ``attempt`` (1-indexed)."""
    exponential = policy.base_delay_ms * 2 ** (attempt - 1)
    jitter = rng() * policy.jitter_ms
    return min(exponential + jitter, policy.max_delay_ms)


def _retry_delay(
    attempt: int,
    classification: ErrorClassification,
    policy: RetryPolicy,
    rng: Callable[[], float],
) -> float:
    if classification.type == ErrorType.RATE_LIMIT and classification.retry_after_ms is not None:
        return min(classification.retry_after_ms, policy.max_delay_ms)
    return compute_backoff_delay(attempt, policy, rng)


def execute_with_retry(
    command: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    on_retry: RetryObserver | None = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Callable[[], float] = random.random,
    masker: SecretMasker = DEFAULT_MASKER,
    description: str = "command",
) -> T:
    """Run ``command``, retrying recoverable failures with backoff.

    Args:
        command: Zero-argument callable performing one attempt.
        policy: Attempts and delays; defaults to ``RetryPolicy()``.
        on_retry: Called before each wait with
            ``(attempt, max_attempts, error, delay_ms)``.
        sleep: Sleep function taking seconds (injected by tests).
        rng: Source of jitter in ``[0, 1)``.
        masker: Masks secrets in logged and raised error text.
        description: Name of the operation for log messages.

    Returns:
        The command's result.

    Raises:
        BoardwalkError: ``permanent_command`` for a non-recoverable failure
            (raised on the first attempt) or ``transient_command`` once
            attempts are exhausted. ``attempts`` records how many were made.
    """
    policy = policy or RetryPolicy()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return command()
        except Exception as e:
            if isinstance(e, BoardwalkError) and e.classification is not None:
                classification = e.classification
            else:
                classification = classify(e)
            message = masker.mask(str(e))
            if not classification.recoverable or attempt >= policy.max_attempts:
                if attempt > 1:
                    message = f"{message} (gave up after {attempt} attempts)"
                raise command_error(message, classification, attempts=attempt) from e

            delay_ms = _retry_delay(attempt, classification, policy, rng)
            logger.warning(
                "%s %s error, retrying in %dms (attempt %d/%d): %s",
                description,
                classification.type.value,
                round(delay_ms),
                attempt,
                policy.max_attempts,
                message[:100],
            )
            if on_retry is not None:
                on_retry(attempt, policy.max_attempts, e, delay_ms)
            sleep(delay_ms / 1000)
    raise AssertionError("unreachable")  # pragma: no cover


def safe_execute(
    command: Callable[[], T],
    policy: RetryPolicy | None = None,
    **kwargs,
) -> T | None:
    """``execute_with_retry`` for optional operations: returns None on failure."""
    try:
        return execute_with_retry(command, policy, **kwargs)
    except BoardwalkError as e:
        if e.kind not in (ErrorKind.TRANSIENT_COMMAND, ErrorKind.PERMANENT_COMMAND):
            raise
        logger.debug("Optional %s failed: %s", kwargs.get("description", "command"), e.message)
        return None
