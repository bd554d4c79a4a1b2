"""Operational state kept under ``.boardwalk/``.

Readers are forgiving: collections are loaded with recovery, dropping
corrupt elements, and optional single records that cannot be read are
treated as absent. Writers are not: they refuse to overwrite a file they
could not parse, so a bad read never turns into lost history.
"""

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ..constants import (
    APPROVAL_LOCK_PREFIX,
    LOCK_SUFFIX,
    METRICS_FILE,
    PAUSE_LOCK_FILE,
    PROGRESS_FILE,
    STATS_FILE,
)
from ..errors import BoardwalkError, ErrorKind, corrupt_record
from ..models import (
    ApprovalLock,
    MetricsData,
    PauseLock,
    Progress,
    SessionStats,
    TaskMetric,
    utc_now,
)
from ..redact import DEFAULT_MASKER, SecretMasker
from . import schemas
from .atomic_io import ensure_dir, remove, safe_write_json
from .schema import (
    DataSchema,
    content_preview,
    load_validated,
    parse_json,
    read_record_text,
    validate,
    validate_array,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DURATION_RE = re.compile(r"^(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?$")


def _read_json(path: Path, masker: SecretMasker, strict: bool) -> Any | None:
    """Read and parse a JSON file.

    Returns None if the file is absent, or if it cannot be parsed and
    ``strict`` is False. With ``strict`` a parse failure raises
    ``corrupt_record``.
    """
    try:
        content = read_record_text(path)
    except BoardwalkError as e:
        if strict or e.kind != ErrorKind.CORRUPT_RECORD:
            raise
        logger.warning("Ignoring %s", e.message)
        return None
    if content is None:
        return None
    parsed = parse_json(content, path=path, masker=masker)
    if parsed.success:
        return parsed.data
    if strict:
        raise corrupt_record(
            path,
            parsed.error or "invalid JSON",
            position=parsed.position,
            preview=content_preview(content, masker),
        )
    return None


def _to_models(model: type[M], items: Iterable[dict[str, Any]], source: Path) -> list[M]:
    """Build models from schema-valid dicts, skipping ones the model rejects."""
    result = []
    for item in items:
        try:
            result.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid %s in %s: %s", model.__name__, source, e)
    return result


def _load_optional(
    path: Path, schema: DataSchema, model: type[M], masker: SecretMasker
) -> M | None:
    try:
        data = load_validated(path, schema, recover=True, masker=masker)
        return model.model_validate(data) if data is not None else None
    except ValidationError as e:
        logger.warning("Ignoring invalid %s: %s", path, e)
        return None
    except BoardwalkError as e:
        if e.kind != ErrorKind.CORRUPT_RECORD:
            raise
        logger.warning("Ignoring %s", e.message)
        return None


# ============================================================================
# Session stats
# ============================================================================


def load_session_stats(
    board_dir: Path, masker: SecretMasker = DEFAULT_MASKER
) -> list[SessionStats]:
    """Load session history, dropping records that cannot be recovered."""
    path = board_dir / STATS_FILE
    data = _read_json(path, masker, strict=False)
    if data is None:
        return []
    result = validate_array(data, schemas.SESSION_STATS, recover=True, source=str(path))
    return _to_models(SessionStats, result.data, path)


def append_session_stats(board_dir: Path, stats: SessionStats) -> None:
    """Append one session record to ``stats.json``.

    Raises:
        BoardwalkError: ``corrupt_record`` if the existing file is not a JSON
            array; it is left untouched.
    """
    ensure_dir(board_dir)
    path = board_dir / STATS_FILE
    existing = _read_json(path, DEFAULT_MASKER, strict=True)
    if existing is None:
        existing = []
    if not isinstance(existing, list):
        raise corrupt_record(path, "expected a JSON array of session records")
    # Existing entries are kept verbatim, including ones readers drop
    safe_write_json(path, [*existing, stats.to_dict()])


# ============================================================================
# Task metrics
# ============================================================================


def _parse_metrics(data: Any, path: Path) -> MetricsData | None:
    result = validate(data, schemas.METRICS_FILE, recover=True, source=str(path))
    if not result.valid or result.data is None:
        logger.warning("Ignoring unreadable metrics in %s: %s", path, result.summary())
        return None
    tasks = _to_models(TaskMetric, result.data.get("tasks", []), path)
    try:
        return MetricsData.model_validate({**result.data, "tasks": tasks})
    except ValidationError as e:
        logger.warning("Ignoring unreadable metrics in %s: %s", path, e)
        return None


def load_metrics(board_dir: Path, masker: SecretMasker = DEFAULT_MASKER) -> MetricsData | None:
    """Load ``metrics.json``. Corrupt task entries are dropped."""
    path = board_dir / METRICS_FILE
    data = _read_json(path, masker, strict=False)
    if data is None:
        return None
    return _parse_metrics(data, path)


def record_task_metric(
    board_dir: Path,
    metric: TaskMetric,
    retention_days: int | None = None,
    now: datetime | None = None,
) -> MetricsData:
    """Append a task metric, pruning entries older than the retention window.

    Concurrent writers are last-writer-wins; metrics are best-effort history.

    Raises:
        BoardwalkError: ``corrupt_record`` if the existing file cannot be
            parsed or validated; it is left untouched.
    """
    ensure_dir(board_dir)
    path = board_dir / METRICS_FILE
    now = now or utc_now()
    data = _read_json(path, DEFAULT_MASKER, strict=True)
    metrics = MetricsData()
    if data is not None:
        parsed = _parse_metrics(data, path)
        if parsed is None:
            raise corrupt_record(path, "existing metrics could not be validated; not overwriting")
        metrics = parsed
    if retention_days is not None:
        metrics.retention_days = retention_days

    cutoff = now - timedelta(days=metrics.retention_days)
    kept = [t for t in metrics.tasks if t.started_at >= cutoff]
    pruned = len(metrics.tasks) - len(kept)
    if pruned:
        logger.debug("Pruned %d task metric(s) older than %d days", pruned, metrics.retention_days)
    metrics.tasks = [*kept, metric]
    metrics.last_updated = now
    safe_write_json(path, metrics.to_dict())
    return metrics


# ============================================================================
# Progress
# ============================================================================


def load_progress(board_dir: Path, masker: SecretMasker = DEFAULT_MASKER) -> Progress | None:
    return _load_optional(board_dir / PROGRESS_FILE, schemas.PROGRESS, Progress, masker)


def write_progress(board_dir: Path, progress: Progress) -> None:
    ensure_dir(board_dir)
    progress.last_updated = utc_now()
    safe_write_json(board_dir / PROGRESS_FILE, progress.to_dict())


# ============================================================================
# Pause / resume
# ============================================================================


def parse_duration(text: str) -> timedelta:
    """Parse durations like ``30m``, ``2h``, ``1h30m`` or ``1d``.

    Raises:
        BoardwalkError: ``validation_error`` for anything else.
    """
    match = DURATION_RE.match(text.strip().lower())
    if not text.strip() or match is None or not any(match.groups()):
        raise BoardwalkError(
            ErrorKind.VALIDATION,
            f"Invalid duration '{text}' (expected e.g. 30m, 2h, 1h30m, 1d)",
        )
    days, hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return timedelta(days=days, hours=hours, minutes=minutes, seconds=seconds)


def load_pause_lock(
    board_dir: Path, masker: SecretMasker = DEFAULT_MASKER
) -> PauseLock | None:
    return _load_optional(board_dir / PAUSE_LOCK_FILE, schemas.PAUSE_LOCK, PauseLock, masker)


def is_paused(board_dir: Path, now: datetime | None = None) -> bool:
    """Whether a pause is in effect. A pause past its ``resume_at`` is not."""
    record = load_pause_lock(board_dir)
    return record is not None and not record.is_expired(now or utc_now())


def pause(
    board_dir: Path, reason: str | None = None, duration: timedelta | None = None
) -> PauseLock:
    """Pause processing, returning the existing record if already paused."""
    now = utc_now()
    existing = load_pause_lock(board_dir)
    if existing is not None and not existing.is_expired(now):
        return existing
    record = PauseLock(
        paused_at=now,
        reason=reason,
        resume_at=now + duration if duration is not None else None,
    )
    ensure_dir(board_dir)
    safe_write_json(board_dir / PAUSE_LOCK_FILE, record.to_dict())
    logger.info("Paused%s", f" until {record.resume_at.isoformat()}" if record.resume_at else "")
    return record


def resume(board_dir: Path) -> PauseLock | None:
    """Remove the pause file. Returns the pause that was in effect, if any."""
    now = utc_now()
    existing = load_pause_lock(board_dir)
    remove(board_dir / PAUSE_LOCK_FILE)
    if existing is None or existing.is_expired(now):
        return None
    return existing


# ============================================================================
# Approvals
# ============================================================================


def list_approvals(
    board_dir: Path, masker: SecretMasker = DEFAULT_MASKER
) -> list[ApprovalLock]:
    """Load all ``approval-*.lock`` files, oldest first; unreadable ones are skipped."""
    if not board_dir.is_dir():
        return []
    approvals = []
    for path in board_dir.glob(f"{APPROVAL_LOCK_PREFIX}*{LOCK_SUFFIX}"):
        record = _load_optional(path, schemas.APPROVAL_LOCK, ApprovalLock, masker)
        if record is not None:
            approvals.append(record)
    return sorted(approvals, key=lambda a: a.created_at)


def find_pending_approval(
    board_dir: Path, masker: SecretMasker = DEFAULT_MASKER
) -> ApprovalLock | None:
    return next((a for a in list_approvals(board_dir, masker) if a.status == "pending"), None)
