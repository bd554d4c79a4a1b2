"""Schemas for every JSON file boardwalk persists.

Bounds are deliberately loose: they reject clearly corrupted values (a
negative duration, a session that cost a million dollars) rather than
enforce business rules.
"""

from .schema import DataSchema, FieldSpec, FieldType

ISO_TIMESTAMP = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"

MAX_COST_USD = 1000
MAX_DURATION_SECS = 7 * 24 * 60 * 60
MAX_TASKS = 10000
MAX_ITERATIONS = 100
MIN_RETENTION_DAYS = 1
MAX_RETENTION_DAYS = 3650


def _timestamp(required: bool = True) -> FieldSpec:
    return FieldSpec(FieldType.STRING, required=required, pattern=ISO_TIMESTAMP)


def _count(maximum: float | None = None, **kwargs) -> FieldSpec:
    return FieldSpec(FieldType.NUMBER, min=0, max=maximum, integer=True, **kwargs)


def _text(required: bool = False) -> FieldSpec:
    return FieldSpec(FieldType.STRING, required=required)


SESSION_STATS = DataSchema(
    name="SessionStats",
    fields={
        "session_id": FieldSpec(FieldType.STRING, required=True, min_length=1, max_length=256),
        "started_at": _timestamp(),
        "ended_at": _timestamp(),
        "duration_secs": FieldSpec(
            FieldType.NUMBER, required=True, min=0, max=MAX_DURATION_SECS, default=0
        ),
        "tasks_attempted": _count(MAX_TASKS, required=True, default=0),
        "tasks_completed": _count(MAX_TASKS, required=True, default=0),
        "successful_tasks": FieldSpec(FieldType.ARRAY, required=True, default=[]),
        "failed_tasks": FieldSpec(FieldType.ARRAY, required=True, default=[]),
        "total_cost_usd": FieldSpec(
            FieldType.NUMBER, required=True, min=0, max=MAX_COST_USD, default=0
        ),
        "gigachad_mode": FieldSpec(FieldType.BOOLEAN, required=True, default=False),
        "gigachad_merges": _count(MAX_TASKS, required=True, default=0),
        "repo": FieldSpec(
            FieldType.STRING, required=True, min_length=1, default="unknown/unknown"
        ),
    },
)

TASK_METRIC = DataSchema(
    name="TaskMetric",
    fields={
        "issue_number": FieldSpec(FieldType.NUMBER, required=True, min=1, integer=True),
        "started_at": _timestamp(),
        "completed_at": _timestamp(required=False),
        "duration_secs": FieldSpec(
            FieldType.NUMBER, required=True, min=0, max=MAX_DURATION_SECS, default=0
        ),
        "status": FieldSpec(FieldType.STRING, required=True, enum=("completed", "failed")),
        "iterations": _count(MAX_ITERATIONS, required=True, default=1),
        "cost_usd": FieldSpec(FieldType.NUMBER, required=True, min=0, max=MAX_COST_USD, default=0),
        "failure_reason": _text(),
        "failure_phase": _text(),
        "category": _text(),
        "retry_count": _count(default=0),
        "phases": FieldSpec(FieldType.OBJECT),
        "tokens": FieldSpec(FieldType.OBJECT),
        "error_recovery_time_secs": FieldSpec(FieldType.NUMBER, min=0, max=MAX_DURATION_SECS),
        "files_modified": _count(),
        "lines_changed": _count(),
    },
)

METRICS_FILE = DataSchema(
    name="MetricsData",
    fields={
        "version": FieldSpec(FieldType.STRING, required=True, min_length=1, default="1.0"),
        "last_updated": _timestamp(),
        "retention_days": FieldSpec(
            FieldType.NUMBER,
            required=True,
            min=MIN_RETENTION_DAYS,
            max=MAX_RETENTION_DAYS,
            integer=True,
            default=30,
        ),
        "tasks": FieldSpec(FieldType.ARRAY, required=True, default=[], items=TASK_METRIC),
    },
)

LOCK_RECORD = DataSchema(
    name="LockRecord",
    fields={
        "issue_number": FieldSpec(FieldType.NUMBER, required=True, min=1, integer=True),
        "session_id": FieldSpec(FieldType.STRING, required=True, min_length=1, max_length=256),
        "pid": FieldSpec(FieldType.NUMBER, required=True, min=1, integer=True),
        "acquired_at": _timestamp(),
        "last_heartbeat": _timestamp(),
        "hostname": FieldSpec(FieldType.STRING, min_length=1, max_length=256),
        "worker_id": _count(),
        "repo_name": FieldSpec(FieldType.STRING, min_length=1),
    },
)

PROGRESS = DataSchema(
    name="Progress",
    fields={
        "status": FieldSpec(
            FieldType.STRING,
            required=True,
            enum=("idle", "in_progress", "paused", "stopped", "error", "awaiting_approval"),
        ),
        "current_task": FieldSpec(
            FieldType.OBJECT,
            properties={
                "id": FieldSpec(FieldType.STRING, required=True, min_length=1),
                "title": _text(required=True),
                "branch": _text(required=True),
                "started_at": _timestamp(),
            },
        ),
        "session": FieldSpec(
            FieldType.OBJECT,
            properties={
                "started_at": _timestamp(),
                "tasks_completed": _count(MAX_TASKS, required=True),
                "total_cost_usd": FieldSpec(
                    FieldType.NUMBER, required=True, min=0, max=MAX_COST_USD
                ),
            },
        ),
        "last_updated": _timestamp(),
        "phase": _text(),
        "iteration": FieldSpec(
            FieldType.OBJECT,
            properties={
                "current": _count(MAX_ITERATIONS, required=True),
                "max": FieldSpec(
                    FieldType.NUMBER, required=True, min=1, max=MAX_ITERATIONS, integer=True
                ),
            },
        ),
        "recent_tools": FieldSpec(FieldType.ARRAY),
        "approval_history": FieldSpec(FieldType.ARRAY),
        "parallel_mode": FieldSpec(FieldType.BOOLEAN),
        "parallel_workers": FieldSpec(FieldType.ARRAY),
        "parallel_session": FieldSpec(FieldType.OBJECT),
    },
)

PAUSE_LOCK = DataSchema(
    name="PauseLock",
    fields={
        "paused_at": _timestamp(),
        "reason": _text(),
        "resume_at": _timestamp(required=False),
    },
)

APPROVAL_LOCK = DataSchema(
    name="ApprovalLock",
    fields={
        "status": FieldSpec(
            FieldType.STRING, required=True, enum=("pending", "approved", "rejected")
        ),
        "created_at": _timestamp(),
        "issue_number": FieldSpec(FieldType.NUMBER, required=True, min=1, integer=True),
        "issue_title": _text(),
        "branch": _text(),
        "phase": FieldSpec(
            FieldType.STRING, required=True, enum=("pre_task", "phase1", "phase2")
        ),
        "files_changed": _count(),
        "insertions": _count(),
        "deletions": _count(),
        "approver": _text(),
        "approved_at": _timestamp(required=False),
        "rejected_at": _timestamp(required=False),
        "comment": _text(),
        "feedback": _text(),
    },
)

SCHEMAS: dict[str, DataSchema] = {
    schema.name: schema
    for schema in (
        SESSION_STATS,
        TASK_METRIC,
        METRICS_FILE,
        LOCK_RECORD,
        PROGRESS,
        PAUSE_LOCK,
        APPROVAL_LOCK,
    )
}


def get_schema(name: str) -> DataSchema | None:
    """Look up a schema by its ``name`` (e.g. ``"SessionStats"``)."""
    return SCHEMAS.get(name)
