"""Error type for boardwalk.

All failures raised by boardwalk share one exception type. The ``kind``
field discriminates them, and only the fields relevant to that kind are set.
"""

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .services.retry import ErrorClassification


class ErrorKind(str, Enum):
    """Kinds of boardwalk failures."""

    FILE = "file_error"
    VALIDATION = "validation_error"
    LOCK_HELD = "lock_held"
    TRANSIENT_COMMAND = "transient_command"
    PERMANENT_COMMAND = "permanent_command"
    CORRUPT_RECORD = "corrupt_record"
    CONFIG = "config_error"


# CLI exit code per error kind
EXIT_CODES: dict[ErrorKind, int] = {
    ErrorKind.CONFIG: 2,
    ErrorKind.LOCK_HELD: 4,
    ErrorKind.VALIDATION: 5,
    ErrorKind.CORRUPT_RECORD: 5,
    ErrorKind.FILE: 6,
    ErrorKind.TRANSIENT_COMMAND: 12,
    ErrorKind.PERMANENT_COMMAND: 12,
}


class BoardwalkError(Exception):
    """A classified boardwalk failure.

    Attributes:
        kind: Which failure this is.
        message: Human-readable description.
        path: File involved (file, corrupt record and config errors).
        operation: Filesystem operation that failed (read, write, delete, create).
        issue_number: Task identifier involved (lock errors).
        classification: Classified command failure (command errors).
        attempts: Number of attempts made before giving up (command errors).
        details: Extra structured context.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        path: Path | None = None,
        operation: str | None = None,
        issue_number: int | None = None,
        classification: "ErrorClassification | None" = None,
        attempts: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.path = path
        self.operation = operation
        self.issue_number = issue_number
        self.classification = classification
        self.attempts = attempts
        self.details = details or {}

    @property
    def exit_code(self) -> int:
        return EXIT_CODES.get(self.kind, 1)

    @property
    def recoverable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT_COMMAND

    def to_dict(self) -> dict[str, Any]:
        """Serialize for --json output."""
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.path is not None:
            data["path"] = str(self.path)
        if self.operation is not None:
            data["operation"] = self.operation
        if self.issue_number is not None:
            data["issue_number"] = self.issue_number
        if self.classification is not None:
            data["error_type"] = self.classification.type.value
        if self.attempts is not None:
            data["attempts"] = self.attempts
        if self.details:
            data["details"] = self.details
        return data


def file_error(path: Path, operation: str, cause: OSError) -> BoardwalkError:
    """Build a file error for a failed filesystem operation."""
    reason = cause.strerror or str(cause)
    return BoardwalkError(
        ErrorKind.FILE,
        f"Failed to {operation} {path}: {reason}",
        path=path,
        operation=operation,
    )


def corrupt_record(path: Path, reason: str, **details: Any) -> BoardwalkError:
    """Build an error for a persisted record that cannot be parsed or validated."""
    return BoardwalkError(
        ErrorKind.CORRUPT_RECORD,
        f"Corrupt record in {path}: {reason}",
        path=path,
        details=details,
    )


def lock_held(issue_number: int, session_id: str, heartbeat_age_seconds: int) -> BoardwalkError:
    """Build the error raised when a context needs a lock another session holds."""
    return BoardwalkError(
        ErrorKind.LOCK_HELD,
        f"Issue #{issue_number} is already being worked by another session "
        f"({session_id}, last heartbeat {heartbeat_age_seconds}s ago)",
        issue_number=issue_number,
        details={"session_id": session_id, "heartbeat_age_seconds": heartbeat_age_seconds},
    )


def command_error(
    message: str,
    classification: "ErrorClassification",
    attempts: int | None = None,
) -> BoardwalkError:
    """Build a command error whose kind follows the classification."""
    if classification.recoverable:
        kind = ErrorKind.TRANSIENT_COMMAND
    else:
        kind = ErrorKind.PERMANENT_COMMAND
    return BoardwalkError(kind, message, classification=classification, attempts=attempts)
