"""Background heartbeat for held locks.

A holder that stops heartbeating becomes evictable once the lock timeout
elapses. The timer therefore never stops on its own: a failed heartbeat is
logged and retried on the next tick, and only ``stop()`` ends it.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from ..constants import DEFAULT_LOCK_TIMEOUT_MINUTES, HEARTBEAT_INTERVAL_SECS
from ..errors import BoardwalkError, ErrorKind, lock_held
from ..models import LockResult
from .lock_manager import acquire_lock, heartbeat_age, release_lock, update_heartbeat

logger = logging.getLogger(__name__)


class HeartbeatTimer:
    """Handle for a running heartbeat thread.

    Attributes:
        beats: Successful heartbeat writes so far.
        failures: Heartbeats that were refused or raised.
    """

    def __init__(
        self,
        board_dir: Path,
        issue_number: int,
        session_id: str,
        interval_secs: float = HEARTBEAT_INTERVAL_SECS,
        beat: Callable[[Path, int, str], bool] = update_heartbeat,
    ) -> None:
        self.board_dir = board_dir
        self.issue_number = issue_number
        self.session_id = session_id
        self.interval_secs = interval_secs
        self.beats = 0
        self.failures = 0
        self._beat = beat
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"heartbeat-{issue_number}", daemon=True
        )

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> "HeartbeatTimer":
        self._thread.start()
        return self

    def beat_once(self) -> bool:
        """Write one heartbeat. Failures are logged, never raised."""
        try:
            ok = self._beat(self.board_dir, self.issue_number, self.session_id)
        except Exception as e:
            self.failures += 1
            logger.warning(
                "Heartbeat for issue #%d failed: %s; lock may become stale",
                self.issue_number,
                e,
            )
            logger.debug("Heartbeat failure details", exc_info=True)
            return False
        if not ok:
            self.failures += 1
            logger.warning(
                "Heartbeat for issue #%d refused: lock is missing or owned by another session",
                self.issue_number,
            )
            return False
        self.beats += 1
        return True

    def _run(self) -> None:
        while not self._stopped.wait(self.interval_secs):
            self.beat_once()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the timer and wait for the thread to exit."""
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)


def start_heartbeat_timer(
    board_dir: Path,
    issue_number: int,
    session_id: str,
    interval_secs: float = HEARTBEAT_INTERVAL_SECS,
) -> HeartbeatTimer:
    """Start heartbeating a held lock every ``interval_secs``.

    The caller must call ``stop()`` on the returned handle, then release
    the lock.
    """
    return HeartbeatTimer(board_dir, issue_number, session_id, interval_secs).start()


@contextmanager
def hold_lock(
    board_dir: Path,
    issue_number: int,
    session_id: str,
    *,
    timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES,
    interval_secs: float = HEARTBEAT_INTERVAL_SECS,
    force: bool = False,
    repo_name: str | None = None,
) -> Iterator[LockResult]:
    """Hold an issue lock with a running heartbeat for the ``with`` block.

    On exit the heartbeat is stopped first and the lock released second.

    Raises:
        BoardwalkError: ``lock_held`` if the issue could not be claimed.
    """
    result = acquire_lock(
        board_dir,
        issue_number,
        session_id,
        timeout_minutes=timeout_minutes,
        force=force,
        repo_name=repo_name,
    )
    if not result.acquired:
        if result.holder is None:
            raise BoardwalkError(ErrorKind.LOCK_HELD, result.message, issue_number=issue_number)
        age = int(heartbeat_age(result.holder).total_seconds())
        error = lock_held(issue_number, result.holder.session_id, age)
        error.details["stale"] = result.reason == "stale"
        raise error

    timer = start_heartbeat_timer(board_dir, issue_number, session_id, interval_secs)
    try:
        yield result
    finally:
        timer.stop()
        if not release_lock(board_dir, issue_number, session_id):
            logger.warning(
                "Lock for issue #%d was no longer held by this session at release",
                issue_number,
            )
