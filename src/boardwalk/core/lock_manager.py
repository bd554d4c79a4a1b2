"""Per-issue lock manager for cross-process coordination.

Guarantees at most one session works an issue at a time, using only the
filesystem. Each issue has one lock file, created with create-if-absent
semantics so that exactly one of several racing acquirers wins.

A lock is stale when its heartbeat is older than the timeout. PID liveness
is reported for diagnostics but never overrides the heartbeat age: a live
but hung process must not block an issue forever.

A late heartbeat from a holder and a stale-lock cleanup by another process
can interleave; the cleanup may delete a lock whose holder then writes one
more heartbeat and recreates the file. That window is accepted rather than
closed with a second lock.

Forced eviction of a stale lock re-reads it first and only deletes it if the
same claim is still there and still stale. Two force-claimers can still both
pass that check before either deletes; the second delete may then remove the
first one's fresh lock. The same acceptance applies.
"""

import logging
import os
import secrets
import socket
import time
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from ..constants import DEFAULT_LOCK_TIMEOUT_MINUTES, LOCK_SUFFIX
from ..errors import BoardwalkError, ErrorKind, corrupt_record
from ..models import LockInfo, LockRecord, LockResult, utc_now
from .atomic_io import ensure_dir, remove, safe_create, safe_write, to_json
from .board_dir import get_lock_path, get_locks_dir
from .schema import load_validated
from .schemas import LOCK_RECORD

logger = logging.getLogger(__name__)

MAX_LOCK_RETRIES = 3  # Max create attempts when the lock vanishes or is evicted
BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
        if value == 0:
            return "".join(reversed(digits))


def generate_session_id() -> str:
    """Generate an identifier for this process's session.

    Format: ``<hostname>-<pid>-<base36 milliseconds>-<6 random chars>``.
    Call once per process and pass the result to every lock operation.
    """
    stamp = _base36(int(time.time() * 1000))
    token = "".join(secrets.choice(BASE36) for _ in range(6))
    return f"{socket.gethostname()}-{os.getpid()}-{stamp}-{token}"


def _is_pid_running(pid: int) -> bool:
    """Check if a process with given PID is running."""
    try:
        os.kill(pid, 0)  # Signal 0 doesn't kill, just checks
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    except OSError:
        return False
    return True


def process_alive(record: LockRecord) -> bool | None:
    """Whether the holder's process still exists.

    Returns:
        None when the holder is on another host (or did not record one),
        since its PID means nothing here.
    """
    if record.hostname is None or record.hostname != socket.gethostname():
        return None
    return _is_pid_running(record.pid)


def heartbeat_age(record: LockRecord, now: datetime | None = None) -> timedelta:
    return (now or utc_now()) - record.last_heartbeat


def is_stale_lock(
    record: LockRecord,
    timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES,
    now: datetime | None = None,
) -> bool:
    """Check if a lock's heartbeat is older than the timeout.

    Args:
        record: Lock to check
        timeout_minutes: Max minutes since last heartbeat
        now: Reference time, current UTC time if not provided

    Returns:
        True if the lock may be evicted
    """
    return heartbeat_age(record, now) > timedelta(minutes=timeout_minutes)


def _serialize(record: LockRecord) -> str:
    return to_json(record.to_dict())


def _read_lock_file(path: Path) -> LockRecord | None:
    data = load_validated(path, LOCK_RECORD, recover=False)
    if data is None:
        return None
    try:
        return LockRecord.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(err["msg"] for err in e.errors())
        raise corrupt_record(path, f"LockRecord failed validation: {problems}") from e


def read_lock(board_dir: Path, issue_number: int) -> LockRecord | None:
    """Read the lock for an issue.

    Returns:
        The lock record, or None if the issue is not locked

    Raises:
        BoardwalkError: ``corrupt_record`` if the lock file cannot be parsed,
            fails validation or names a different issue.
    """
    path = get_lock_path(board_dir, issue_number)
    record = _read_lock_file(path)
    if record is not None and record.issue_number != issue_number:
        raise corrupt_record(
            path, f"lock file is for issue #{record.issue_number}, expected #{issue_number}"
        )
    return record


def _read_own_lock(board_dir: Path, issue_number: int, session_id: str) -> LockRecord | None:
    """Read a lock only if ``session_id`` owns it; unreadable locks are not ours."""
    try:
        record = read_lock(board_dir, issue_number)
    except BoardwalkError as e:
        if e.kind != ErrorKind.CORRUPT_RECORD:
            raise
        logger.warning("Cannot verify ownership of issue #%d: %s", issue_number, e.message)
        return None
    if record is None or record.session_id != session_id:
        return None
    return record


def _held_message(record: LockRecord) -> str:
    age = int(heartbeat_age(record).total_seconds())
    return (
        f"Issue #{record.issue_number} is already being worked by another session "
        f"({record.session_id}, last heartbeat {age}s ago)"
    )


def _still_stale(board_dir: Path, record: LockRecord, timeout_minutes: float) -> bool:
    """Re-read a lock about to be evicted: same holder, same claim, still stale."""
    try:
        current = read_lock(board_dir, record.issue_number)
    except BoardwalkError as e:
        if e.kind != ErrorKind.CORRUPT_RECORD:
            raise
        return False
    return (
        current is not None
        and current.session_id == record.session_id
        and current.acquired_at == record.acquired_at
        and is_stale_lock(current, timeout_minutes)
    )


def acquire_lock(
    board_dir: Path,
    issue_number: int,
    session_id: str,
    *,
    timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES,
    force: bool = False,
    worker_id: int | None = None,
    repo_name: str | None = None,
) -> LockResult:
    """Try once to claim an issue.

    Never waits: losing to an active holder returns immediately with
    ``acquired=False``. Polling, skipping or giving up is the caller's call.

    Args:
        board_dir: Path to .boardwalk directory
        issue_number: Issue to claim
        session_id: Caller's session ID
        timeout_minutes: Heartbeat age after which the holder is stale
        force: Evict a stale holder and claim the issue
        worker_id: Parallel worker slot to record
        repo_name: Repository name to record

    Returns:
        LockResult describing the outcome. An unreadable lock file is
        reported with ``reason="unreadable"`` and no holder.

    Raises:
        BoardwalkError: ``file_error`` if the lock directory or file cannot
            be accessed.
    """
    ensure_dir(get_locks_dir(board_dir))
    path = get_lock_path(board_dir, issue_number)

    for _ in range(MAX_LOCK_RETRIES):
        now = utc_now()
        record = LockRecord(
            issue_number=issue_number,
            session_id=session_id,
            pid=os.getpid(),
            acquired_at=now,
            last_heartbeat=now,
            hostname=socket.gethostname(),
            worker_id=worker_id,
            repo_name=repo_name,
        )
        if safe_create(path, _serialize(record)):
            logger.debug("Acquired lock for issue #%d (%s)", issue_number, session_id)
            return LockResult(
                acquired=True,
                reason="acquired",
                holder=record,
                message=f"Acquired lock for issue #{issue_number}",
            )

        try:
            existing = read_lock(board_dir, issue_number)
        except BoardwalkError as e:
            if e.kind != ErrorKind.CORRUPT_RECORD:
                raise
            logger.warning("Lock for issue #%d is unreadable: %s", issue_number, e.message)
            return LockResult(acquired=False, reason="unreadable", message=e.message)

        if existing is None:
            # Released between our create attempt and the read - retry
            continue

        if existing.session_id == session_id:
            refreshed = existing.model_copy(
                update={"last_heartbeat": max(now, existing.acquired_at)}
            )
            safe_write(path, _serialize(refreshed))
            return LockResult(
                acquired=True,
                reason="refreshed",
                holder=refreshed,
                message=f"Already holding issue #{issue_number}; heartbeat refreshed",
            )

        if is_stale_lock(existing, timeout_minutes, now):
            if not force:
                return LockResult(
                    acquired=False,
                    reason="stale",
                    holder=existing,
                    message=f"{_held_message(existing)}; the lock is stale and can be "
                    "claimed with force",
                )
            if _still_stale(board_dir, existing, timeout_minutes):
                logger.info(
                    "Evicting stale lock for issue #%d held by %s (last heartbeat %s)",
                    issue_number,
                    existing.session_id,
                    existing.last_heartbeat.isoformat(),
                )
                remove(path)
            continue

        return LockResult(
            acquired=False, reason="held", holder=existing, message=_held_message(existing)
        )

    return LockResult(
        acquired=False,
        reason="held",
        message=f"Lock for issue #{issue_number} kept changing; gave up after "
        f"{MAX_LOCK_RETRIES} attempts",
    )


def update_heartbeat(board_dir: Path, issue_number: int, session_id: str) -> bool:
    """Refresh the heartbeat of a lock the caller owns.

    Returns:
        False if no lock exists or another session owns it
    """
    existing = _read_own_lock(board_dir, issue_number, session_id)
    if existing is None:
        return False
    updated = existing.model_copy(
        update={"last_heartbeat": max(utc_now(), existing.acquired_at)}
    )
    safe_write(get_lock_path(board_dir, issue_number), _serialize(updated))
    return True


def release_lock(board_dir: Path, issue_number: int, session_id: str) -> bool:
    """Release a lock if owned by ``session_id``.

    Returns:
        True if the lock file was deleted, False if it was absent or not ours
    """
    if _read_own_lock(board_dir, issue_number, session_id) is None:
        return False
    released = remove(get_lock_path(board_dir, issue_number))
    if released:
        logger.debug("Released lock for issue #%d (%s)", issue_number, session_id)
    return released


def force_release(board_dir: Path, issue_number: int) -> bool:
    """Delete a lock regardless of owner. Returns False if there was none."""
    released = remove(get_lock_path(board_dir, issue_number))
    if released:
        logger.info("Force-released lock for issue #%d", issue_number)
    return released


def _lock_info(path: Path, timeout_minutes: float, now: datetime) -> LockInfo:
    issue_number = int(path.stem) if path.stem.isdigit() else None
    try:
        record = _read_lock_file(path)
    except BoardwalkError as e:
        if e.kind != ErrorKind.CORRUPT_RECORD:
            raise
        return LockInfo(path=str(path), issue_number=issue_number, error=e.message)
    if record is None:
        return LockInfo(path=str(path), issue_number=issue_number, error="lock file vanished")
    if issue_number is not None and record.issue_number != issue_number:
        return LockInfo(
            path=str(path),
            issue_number=issue_number,
            error=f"lock file is for issue #{record.issue_number}",
        )
    return LockInfo(
        path=str(path),
        **record.model_dump(include=set(LockRecord.model_fields)),
        stale=is_stale_lock(record, timeout_minutes, now),
        age_seconds=(now - record.acquired_at).total_seconds(),
        heartbeat_age_seconds=heartbeat_age(record, now).total_seconds(),
        process_alive=process_alive(record),
    )


def list_locks(
    board_dir: Path, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
) -> list[LockInfo]:
    """List all lock files, annotated with staleness.

    Corrupt lock files are included with ``error`` set rather than hidden.
    """
    locks_dir = get_locks_dir(board_dir)
    if not locks_dir.is_dir():
        return []
    now = utc_now()
    infos = [
        _lock_info(path, timeout_minutes, now)
        for path in locks_dir.glob(f"*{LOCK_SUFFIX}")
        if path.is_file()
    ]
    return sorted(infos, key=lambda i: (i.issue_number is None, i.issue_number or 0, i.path))


def find_stale_locks(
    board_dir: Path, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
) -> list[LockInfo]:
    return [i for i in list_locks(board_dir, timeout_minutes) if i.stale and i.error is None]


def cleanup_stale_locks(
    board_dir: Path, timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
) -> int:
    """Delete every stale lock. Returns the number removed.

    Each lock is re-read right before deletion so that a holder whose
    heartbeat landed after the listing keeps its lock.
    """
    removed = 0
    for info in find_stale_locks(board_dir, timeout_minutes):
        if info.issue_number is None:
            continue
        try:
            current = read_lock(board_dir, info.issue_number)
        except BoardwalkError as e:
            if e.kind != ErrorKind.CORRUPT_RECORD:
                raise
            continue
        if current is None or not is_stale_lock(current, timeout_minutes):
            continue
        if remove(get_lock_path(board_dir, info.issue_number)):
            logger.info(
                "Removed stale lock for issue #%d held by %s",
                info.issue_number,
                current.session_id,
            )
            removed += 1
    return removed


def release_session_locks(board_dir: Path, session_id: str) -> int:
    """Release every lock held by ``session_id``. Returns the number released."""
    released = 0
    for info in list_locks(board_dir):
        if info.session_id != session_id or info.issue_number is None:
            continue
        if release_lock(board_dir, info.issue_number, session_id):
            released += 1
    return released


def is_locked_by_other(
    board_dir: Path,
    issue_number: int,
    session_id: str,
    timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES,
) -> bool:
    """Whether another session holds an active lock on the issue.

    An unreadable lock counts as held: nobody can prove the issue is free.
    """
    try:
        record = read_lock(board_dir, issue_number)
    except BoardwalkError as e:
        if e.kind != ErrorKind.CORRUPT_RECORD:
            raise
        return True
    if record is None or record.session_id == session_id:
        return False
    return not is_stale_lock(record, timeout_minutes)
