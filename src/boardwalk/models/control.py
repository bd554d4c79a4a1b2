"""Run-control records: progress, pause and approval files."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from .base import Record, utc_now

ProgressStatus = Literal["idle", "in_progress", "paused", "stopped", "error", "awaiting_approval"]


class CurrentTask(BaseModel):
    id: str = Field(min_length=1)
    title: str
    branch: str
    started_at: datetime


class SessionProgress(BaseModel):
    started_at: datetime
    tasks_completed: int = Field(default=0, ge=0)
    total_cost_usd: float = Field(default=0, ge=0)


class Iteration(BaseModel):
    current: int = Field(ge=0)
    max: int = Field(ge=1)


class Progress(Record):
    """Contents of ``progress.json``: what the current session is doing."""

    status: ProgressStatus = "idle"
    current_task: CurrentTask | None = None
    session: SessionProgress | None = None
    last_updated: datetime = Field(default_factory=utc_now)
    phase: str | None = None
    iteration: Iteration | None = None
    recent_tools: list[Any] | None = None


class PauseLock(Record):
    """Contents of ``pause.lock``.

    Attributes:
        paused_at: When the pause was requested.
        reason: Free-form note shown in ``status``.
        resume_at: Automatic resume time; a pause past it no longer applies.
    """

    paused_at: datetime = Field(default_factory=utc_now)
    reason: str | None = None
    resume_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.resume_at is not None and now >= self.resume_at


class ApprovalLock(Record):
    """Contents of an ``approval-*.lock`` file awaiting a human decision."""

    status: Literal["pending", "approved", "rejected"]
    created_at: datetime
    issue_number: int = Field(ge=1)
    phase: Literal["pre_task", "phase1", "phase2"]
    issue_title: str | None = None
    branch: str | None = None
    files_changed: int | None = None
    insertions: int | None = None
    deletions: int | None = None
    approver: str | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    comment: str | None = None
    feedback: str | None = None
