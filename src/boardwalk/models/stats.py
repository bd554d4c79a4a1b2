"""Session statistics and per-task metrics."""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from .base import Record, utc_now


class SessionStats(Record):
    """Summary of one boardwalk session, appended to ``stats.json``."""

    session_id: str = Field(min_length=1, max_length=256)
    started_at: datetime
    ended_at: datetime
    duration_secs: float = Field(default=0, ge=0)
    tasks_attempted: int = Field(default=0, ge=0)
    tasks_completed: int = Field(default=0, ge=0)
    successful_tasks: list[Any] = Field(default_factory=list)
    failed_tasks: list[Any] = Field(default_factory=list)
    total_cost_usd: float = Field(default=0, ge=0)
    gigachad_mode: bool = False
    gigachad_merges: int = Field(default=0, ge=0)
    repo: str = "unknown/unknown"


class TaskMetric(Record):
    """Outcome of working one issue.

    Attributes:
        issue_number: Issue worked.
        started_at: When work started.
        completed_at: When work finished, if it did.
        duration_secs: Wall-clock duration.
        status: ``completed`` or ``failed``.
        iterations: Agent iterations used.
        cost_usd: Reported agent cost.
        failure_reason: Short description when failed.
        failure_phase: Phase the failure happened in.
        retry_count: Retries performed.
    """

    issue_number: int = Field(ge=1)
    started_at: datetime
    completed_at: datetime | None = None
    duration_secs: float = Field(default=0, ge=0)
    status: Literal["completed", "failed"]
    iterations: int = Field(default=1, ge=0)
    cost_usd: float = Field(default=0, ge=0)
    failure_reason: str | None = None
    failure_phase: str | None = None
    category: str | None = None
    retry_count: int = Field(default=0, ge=0)
    phases: dict[str, Any] | None = None
    tokens: dict[str, Any] | None = None
    error_recovery_time_secs: float | None = None
    files_modified: int | None = None
    lines_changed: int | None = None


class MetricsData(Record):
    """Contents of ``metrics.json``."""

    version: str = "1.0"
    last_updated: datetime = Field(default_factory=utc_now)
    retention_days: int = Field(default=30, ge=1, le=3650)
    tasks: list[TaskMetric] = Field(default_factory=list)
