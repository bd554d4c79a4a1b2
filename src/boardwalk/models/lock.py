"""Lock models for per-issue mutual exclusion.

One lock file per issue lives in ``.boardwalk/locks/<issue_number>.lock``.
Whether a lock is stale is never stored; it is computed from the heartbeat
age whenever the lock is read.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from .base import Record, utc_now

LockReason = Literal["acquired", "refreshed", "held", "stale", "unreadable"]


class LockRecord(Record):
    """Ownership claim for one issue.

    Attributes:
        issue_number: Issue being worked; primary key of the lock.
        session_id: Identifier of the process-lifetime session holding it.
        pid: Process ID of the holder at acquisition time.
        acquired_at: When the lock was created; never changes.
        last_heartbeat: Refreshed periodically by the holder.
        hostname: Host the holder runs on; PID checks only apply there.
        worker_id: Parallel worker slot, when running several workers.
        repo_name: Repository the issue belongs to.
    """

    issue_number: int = Field(ge=1, description="Issue number")
    session_id: str = Field(min_length=1, max_length=256, description="Holder session ID")
    pid: int = Field(ge=1, description="Holder process ID")
    acquired_at: datetime = Field(default_factory=utc_now)
    last_heartbeat: datetime = Field(default_factory=utc_now)
    hostname: str | None = Field(default=None, description="Holder hostname")
    worker_id: int | None = Field(default=None, ge=0, description="Parallel worker slot")
    repo_name: str | None = Field(default=None, description="Repository name")

    @model_validator(mode="after")
    def check_heartbeat_order(self) -> "LockRecord":
        if self.last_heartbeat < self.acquired_at:
            raise ValueError("last_heartbeat must not be earlier than acquired_at")
        return self


class LockInfo(BaseModel):
    """A lock as seen by ``list_locks``, annotated with computed state.

    Corrupt lock files are listed too, with ``error`` set and the record
    fields left empty.
    """

    path: str
    issue_number: int | None = None
    session_id: str | None = None
    pid: int | None = None
    hostname: str | None = None
    worker_id: int | None = None
    repo_name: str | None = None
    acquired_at: datetime | None = None
    last_heartbeat: datetime | None = None
    stale: bool = False
    age_seconds: float | None = None
    heartbeat_age_seconds: float | None = None
    process_alive: bool | None = Field(
        default=None, description="None when the holder runs on another host"
    )
    error: str | None = None


class LockResult(BaseModel):
    """Outcome of an acquisition attempt.

    Losing the race is a normal result, not an error: ``acquired`` is False
    and ``holder`` describes who has the lock (unless it could not be read).
    """

    acquired: bool
    reason: LockReason
    holder: LockRecord | None = None
    message: str = ""
