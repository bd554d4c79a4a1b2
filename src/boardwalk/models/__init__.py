"""Pydantic models for the files boardwalk keeps under ``.boardwalk/``.

- Lock records and lock listings (LockRecord, LockInfo, LockResult)
- Session statistics and task metrics (SessionStats, TaskMetric, MetricsData)
- Run control (Progress, PauseLock, ApprovalLock)

Raw JSON is checked against the schemas in ``boardwalk.core.schemas``
first, with optional recovery; these models then give typed access to the
validated data. Timestamps are always timezone-aware UTC.
"""

from .base import Record, as_utc, utc_now
from .control import ApprovalLock, CurrentTask, Iteration, PauseLock, Progress, SessionProgress
from .lock import LockInfo, LockReason, LockRecord, LockResult
from .stats import MetricsData, SessionStats, TaskMetric

__all__ = [
    "ApprovalLock",
    "CurrentTask",
    "Iteration",
    "LockInfo",
    "LockReason",
    "LockRecord",
    "LockResult",
    "MetricsData",
    "PauseLock",
    "Progress",
    "Record",
    "SessionProgress",
    "SessionStats",
    "TaskMetric",
    "as_utc",
    "utc_now",
]
