"""Tests for lock manager."""

import json
import os
import re
import socket
from datetime import timedelta
from pathlib import Path
from unittest import mock

import pytest

from boardwalk.core.lock_manager import (
    acquire_lock,
    cleanup_stale_locks,
    find_stale_locks,
    force_release,
    generate_session_id,
    is_locked_by_other,
    is_stale_lock,
    list_locks,
    process_alive,
    read_lock,
    release_lock,
    release_session_locks,
    update_heartbeat,
)
from boardwalk.errors import BoardwalkError, ErrorKind
from boardwalk.models import LockInfo, LockRecord, utc_now

SESSION = "host-100-abc-aaaaaa"
OTHER = "host-200-abc-bbbbbb"
THIRD = "host-300-abc-cccccc"
NOT_UTF8 = b"\xff\xfe{garbage"


def lock_path(board_dir: Path, issue: int) -> Path:
    return board_dir / "locks" / f"{issue}.lock"


def write_lock(
    board_dir: Path,
    issue: int,
    session_id: str = OTHER,
    heartbeat_minutes_ago: float = 0,
    **fields,
) -> LockRecord:
    """Write a lock file as another process would."""
    when = utc_now() - timedelta(minutes=heartbeat_minutes_ago)
    pid = fields.pop("pid", 99999)
    record = LockRecord(
        issue_number=issue,
        session_id=session_id,
        pid=pid,
        acquired_at=when,
        last_heartbeat=when,
        **fields,
    )
    path = lock_path(board_dir, issue)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(record.to_dict(), indent=2))
    return record


class TestSessionId:
    """Tests for generate_session_id function."""

    def test_format(self) -> None:
        """Session ID is hostname, pid, base36 timestamp and 6 random chars."""
        session_id = generate_session_id()
        prefix = f"{socket.gethostname()}-{os.getpid()}-"
        assert session_id.startswith(prefix)
        assert re.fullmatch(r"[0-9a-z]+-[0-9a-z]{6}", session_id[len(prefix) :])

    def test_unique(self) -> None:
        assert len({generate_session_id() for _ in range(50)}) == 50


class TestAcquireLock:
    """Tests for acquire_lock function."""

    def test_acquire_creates_lock_file(self, board_dir: Path) -> None:
        """Acquiring an unlocked issue creates its lock file."""
        result = acquire_lock(board_dir, 42, SESSION, repo_name="acme/widgets")

        assert result.acquired
        assert result.reason == "acquired"
        assert result.holder is not None
        assert result.holder.pid == os.getpid()
        assert result.holder.hostname == socket.gethostname()
        data = json.loads(lock_path(board_dir, 42).read_text())
        assert data["issue_number"] == 42
        assert data["session_id"] == SESSION
        assert data["repo_name"] == "acme/widgets"

    def test_creates_locks_directory(self, tmp_path: Path) -> None:
        board_dir = tmp_path / ".boardwalk"
        assert acquire_lock(board_dir, 1, SESSION).acquired
        assert lock_path(board_dir, 1).exists()

    def test_second_session_is_refused(self, board_dir: Path) -> None:
        """A second session gets the holder back, without waiting."""
        acquire_lock(board_dir, 42, SESSION)
        before = lock_path(board_dir, 42).read_bytes()

        result = acquire_lock(board_dir, 42, OTHER)

        assert not result.acquired
        assert result.reason == "held"
        assert result.holder is not None
        assert result.holder.session_id == SESSION
        assert "already being worked" in result.message
        assert lock_path(board_dir, 42).read_bytes() == before

    def test_same_session_refreshes_heartbeat(self, board_dir: Path) -> None:
        """Re-acquiring one's own lock refreshes the heartbeat."""
        old = write_lock(board_dir, 7, SESSION, heartbeat_minutes_ago=10)

        result = acquire_lock(board_dir, 7, SESSION)

        assert result.acquired
        assert result.reason == "refreshed"
        assert result.holder is not None
        assert result.holder.last_heartbeat > old.last_heartbeat
        assert result.holder.acquired_at == old.acquired_at

    def test_stale_lock_not_evicted_without_force(self, board_dir: Path) -> None:
        """A stale lock is reported, not taken."""
        write_lock(board_dir, 5, heartbeat_minutes_ago=181)

        result = acquire_lock(board_dir, 5, SESSION)

        assert not result.acquired
        assert result.reason == "stale"
        assert read_lock(board_dir, 5).session_id == OTHER

    def test_stale_lock_evicted_with_force(self, board_dir: Path) -> None:
        write_lock(board_dir, 5, heartbeat_minutes_ago=181)

        result = acquire_lock(board_dir, 5, SESSION, force=True)

        assert result.acquired
        assert result.reason == "acquired"
        assert read_lock(board_dir, 5).session_id == SESSION

    def test_active_lock_not_evicted_with_force(self, board_dir: Path) -> None:
        """Force only applies to stale locks."""
        write_lock(board_dir, 5, heartbeat_minutes_ago=60)

        result = acquire_lock(board_dir, 5, SESSION, force=True)

        assert not result.acquired
        assert result.reason == "held"

    def test_live_pid_does_not_keep_stale_lock(self, board_dir: Path) -> None:
        """Heartbeat age decides staleness even when the holder process exists."""
        write_lock(
            board_dir, 5, heartbeat_minutes_ago=181, pid=os.getpid(), hostname=socket.gethostname()
        )
        result = acquire_lock(board_dir, 5, SESSION, force=True)
        assert result.acquired

    def test_unreadable_lock(self, board_dir: Path) -> None:
        """A garbage lock file is reported, never overwritten."""
        path = lock_path(board_dir, 9)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        result = acquire_lock(board_dir, 9, SESSION, force=True)

        assert not result.acquired
        assert result.reason == "unreadable"
        assert result.holder is None
        assert path.read_text() == "{not json"

    def test_non_utf8_lock_is_unreadable(self, board_dir: Path) -> None:
        path = lock_path(board_dir, 5)
        path.parent.mkdir(parents=True)
        path.write_bytes(NOT_UTF8)

        result = acquire_lock(board_dir, 5, SESSION, force=True)

        assert not result.acquired
        assert result.reason == "unreadable"
        assert path.read_bytes() == NOT_UTF8

    def test_force_rechecks_before_evicting(self, board_dir: Path) -> None:
        """A stale lock replaced by another claimer before eviction is kept."""
        stale = write_lock(board_dir, 5, heartbeat_minutes_ago=181)
        reads = []

        def replaced_after_first_read(directory: Path, issue: int) -> LockRecord | None:
            reads.append(issue)
            if len(reads) == 1:
                write_lock(board_dir, 5, session_id=THIRD)
                return stale
            return read_lock(directory, issue)

        with mock.patch(
            "boardwalk.core.lock_manager.read_lock", side_effect=replaced_after_first_read
        ):
            result = acquire_lock(board_dir, 5, SESSION, force=True)

        assert not result.acquired
        assert result.reason == "held"
        assert read_lock(board_dir, 5).session_id == THIRD

    def test_custom_timeout(self, board_dir: Path) -> None:
        write_lock(board_dir, 5, heartbeat_minutes_ago=11)
        assert acquire_lock(board_dir, 5, SESSION, timeout_minutes=10).reason == "stale"


class TestReleaseLock:
    """Tests for release_lock and force_release functions."""

    def test_release_removes_lock_file(self, board_dir: Path) -> None:
        acquire_lock(board_dir, 42, SESSION)
        assert release_lock(board_dir, 42, SESSION) is True
        assert not lock_path(board_dir, 42).exists()

    def test_release_by_non_owner_leaves_file_unchanged(self, board_dir: Path) -> None:
        acquire_lock(board_dir, 42, SESSION)
        before = lock_path(board_dir, 42).read_bytes()

        assert release_lock(board_dir, 42, OTHER) is False
        assert lock_path(board_dir, 42).read_bytes() == before

    def test_release_missing_lock(self, board_dir: Path) -> None:
        assert release_lock(board_dir, 42, SESSION) is False

    def test_reacquire_after_release(self, board_dir: Path) -> None:
        acquire_lock(board_dir, 42, SESSION)
        release_lock(board_dir, 42, SESSION)
        result = acquire_lock(board_dir, 42, OTHER)
        assert result.acquired
        assert result.reason == "acquired"

    def test_release_corrupt_lock_is_refused(self, board_dir: Path) -> None:
        """Ownership of an unreadable lock cannot be proven."""
        path = lock_path(board_dir, 3)
        path.parent.mkdir(parents=True)
        path.write_text("garbage")
        assert release_lock(board_dir, 3, SESSION) is False
        assert path.exists()

    def test_force_release(self, board_dir: Path) -> None:
        write_lock(board_dir, 3)
        assert force_release(board_dir, 3) is True
        assert force_release(board_dir, 3) is False

    def test_release_session_locks(self, board_dir: Path) -> None:
        write_lock(board_dir, 1, SESSION)
        write_lock(board_dir, 2, SESSION)
        write_lock(board_dir, 3, OTHER)

        assert release_session_locks(board_dir, SESSION) == 2
        assert [i.issue_number for i in list_locks(board_dir)] == [3]


class TestHeartbeat:
    """Tests for update_heartbeat function."""

    def test_update_heartbeat(self, board_dir: Path) -> None:
        old = write_lock(board_dir, 42, SESSION, heartbeat_minutes_ago=5)

        assert update_heartbeat(board_dir, 42, SESSION) is True

        record = read_lock(board_dir, 42)
        assert record is not None
        assert record.last_heartbeat > old.last_heartbeat
        assert record.acquired_at == old.acquired_at

    def test_update_heartbeat_not_owner(self, board_dir: Path) -> None:
        write_lock(board_dir, 42, OTHER)
        before = lock_path(board_dir, 42).read_bytes()
        assert update_heartbeat(board_dir, 42, SESSION) is False
        assert lock_path(board_dir, 42).read_bytes() == before

    def test_heartbeat_after_cleanup_does_not_recreate(self, board_dir: Path) -> None:
        """A holder whose lock was removed stops claiming it."""
        write_lock(board_dir, 42, SESSION, heartbeat_minutes_ago=200)
        assert cleanup_stale_locks(board_dir) == 1

        assert update_heartbeat(board_dir, 42, SESSION) is False
        assert not lock_path(board_dir, 42).exists()


class TestStaleness:
    """Tests for is_stale_lock and process_alive functions."""

    def test_stale_after_timeout(self) -> None:
        now = utc_now()
        record = LockRecord(
            issue_number=1,
            session_id=OTHER,
            pid=1,
            acquired_at=now - timedelta(minutes=181),
            last_heartbeat=now - timedelta(minutes=181),
        )
        assert is_stale_lock(record, 120, now)

    def test_not_stale_within_timeout(self) -> None:
        now = utc_now()
        record = LockRecord(
            issue_number=1,
            session_id=OTHER,
            pid=1,
            acquired_at=now - timedelta(minutes=300),
            last_heartbeat=now - timedelta(minutes=60),
        )
        assert not is_stale_lock(record, 120, now)

    def test_process_alive_unknown_for_other_host(self) -> None:
        record = LockRecord(issue_number=1, session_id=OTHER, pid=1, hostname="elsewhere")
        assert process_alive(record) is None

    def test_process_alive_unknown_without_hostname(self) -> None:
        record = LockRecord(issue_number=1, session_id=OTHER, pid=1)
        assert process_alive(record) is None

    def test_process_alive_same_host(self) -> None:
        record = LockRecord(
            issue_number=1, session_id=OTHER, pid=os.getpid(), hostname=socket.gethostname()
        )
        assert process_alive(record) is True
        with mock.patch("boardwalk.core.lock_manager._is_pid_running", return_value=False):
            assert process_alive(record) is False


class TestReadLock:
    """Tests for read_lock function."""

    def test_missing(self, board_dir: Path) -> None:
        assert read_lock(board_dir, 1) is None

    def test_corrupt(self, board_dir: Path) -> None:
        path = lock_path(board_dir, 1)
        path.parent.mkdir(parents=True)
        path.write_text('{"issue_number": 1}')
        with pytest.raises(BoardwalkError) as exc_info:
            read_lock(board_dir, 1)
        assert exc_info.value.kind == ErrorKind.CORRUPT_RECORD

    def test_non_utf8_is_corrupt(self, board_dir: Path) -> None:
        path = lock_path(board_dir, 1)
        path.parent.mkdir(parents=True)
        path.write_bytes(NOT_UTF8)
        with pytest.raises(BoardwalkError) as exc_info:
            read_lock(board_dir, 1)
        assert exc_info.value.kind == ErrorKind.CORRUPT_RECORD
        assert exc_info.value.details["preview"] == "<binary content>"

    def test_heartbeat_before_acquire_is_corrupt(self, board_dir: Path) -> None:
        record = write_lock(board_dir, 1)
        data = record.to_dict()
        data["last_heartbeat"] = "2000-01-01T00:00:00Z"
        lock_path(board_dir, 1).write_text(json.dumps(data))
        with pytest.raises(BoardwalkError) as exc_info:
            read_lock(board_dir, 1)
        assert exc_info.value.kind == ErrorKind.CORRUPT_RECORD

    def test_issue_mismatch_is_corrupt(self, board_dir: Path) -> None:
        record = write_lock(board_dir, 2)
        lock_path(board_dir, 1).write_text(json.dumps(record.to_dict()))
        with pytest.raises(BoardwalkError, match="for issue #2, expected #1"):
            read_lock(board_dir, 1)

    def test_unknown_fields_preserved(self, board_dir: Path) -> None:
        record = write_lock(board_dir, 1)
        data = {**record.to_dict(), "note": "from a newer version"}
        lock_path(board_dir, 1).write_text(json.dumps(data))
        assert read_lock(board_dir, 1).to_dict()["note"] == "from a newer version"


class TestListLocks:
    """Tests for list_locks, find_stale_locks and cleanup_stale_locks."""

    def test_empty_without_locks_dir(self, tmp_path: Path) -> None:
        assert list_locks(tmp_path / ".boardwalk") == []

    def test_lists_sorted_with_staleness(self, board_dir: Path) -> None:
        write_lock(board_dir, 10, heartbeat_minutes_ago=1)
        write_lock(board_dir, 2, heartbeat_minutes_ago=181)

        infos = list_locks(board_dir)

        assert [i.issue_number for i in infos] == [2, 10]
        assert infos[0].stale
        assert not infos[1].stale
        assert infos[0].heartbeat_age_seconds == pytest.approx(181 * 60, abs=5)
        assert infos[0].process_alive is None

    def test_corrupt_entry_included(self, board_dir: Path) -> None:
        write_lock(board_dir, 1)
        lock_path(board_dir, 4).write_text("garbage")

        infos = list_locks(board_dir)

        assert len(infos) == 2
        corrupt = infos[1]
        assert isinstance(corrupt, LockInfo)
        assert corrupt.issue_number == 4
        assert corrupt.error is not None
        assert corrupt.session_id is None

    def test_non_utf8_entry_included(self, board_dir: Path) -> None:
        write_lock(board_dir, 1)
        lock_path(board_dir, 4).write_bytes(NOT_UTF8)

        infos = list_locks(board_dir)

        assert [i.issue_number for i in infos] == [1, 4]
        assert infos[0].error is None
        assert "not valid UTF-8" in infos[1].error

    def test_find_stale_skips_corrupt(self, board_dir: Path) -> None:
        write_lock(board_dir, 1, heartbeat_minutes_ago=181)
        lock_path(board_dir, 4).write_text("garbage")
        assert [i.issue_number for i in find_stale_locks(board_dir)] == [1]

    def test_cleanup_removes_only_stale(self, board_dir: Path) -> None:
        write_lock(board_dir, 1, heartbeat_minutes_ago=181)
        write_lock(board_dir, 2, heartbeat_minutes_ago=1)
        lock_path(board_dir, 3).write_text("garbage")

        assert cleanup_stale_locks(board_dir) == 1

        assert not lock_path(board_dir, 1).exists()
        assert lock_path(board_dir, 2).exists()
        assert lock_path(board_dir, 3).exists()

    def test_cleanup_rechecks_before_delete(self, board_dir: Path) -> None:
        """A heartbeat that lands after the listing keeps the lock."""
        write_lock(board_dir, 1, heartbeat_minutes_ago=181)
        listed = find_stale_locks(board_dir)
        write_lock(board_dir, 1, heartbeat_minutes_ago=0)

        with mock.patch("boardwalk.core.lock_manager.find_stale_locks", return_value=listed):
            assert cleanup_stale_locks(board_dir) == 0
        assert lock_path(board_dir, 1).exists()


class TestIsLockedByOther:
    """Tests for is_locked_by_other function."""

    def test_unlocked(self, board_dir: Path) -> None:
        assert not is_locked_by_other(board_dir, 1, SESSION)

    def test_own_lock(self, board_dir: Path) -> None:
        write_lock(board_dir, 1, SESSION)
        assert not is_locked_by_other(board_dir, 1, SESSION)

    def test_active_other(self, board_dir: Path) -> None:
        write_lock(board_dir, 1, OTHER)
        assert is_locked_by_other(board_dir, 1, SESSION)

    def test_stale_other(self, board_dir: Path) -> None:
        write_lock(board_dir, 1, OTHER, heartbeat_minutes_ago=181)
        assert not is_locked_by_other(board_dir, 1, SESSION)

    def test_corrupt_counts_as_held(self, board_dir: Path) -> None:
        path = lock_path(board_dir, 1)
        path.parent.mkdir(parents=True)
        path.write_text("garbage")
        assert is_locked_by_other(board_dir, 1, SESSION)
