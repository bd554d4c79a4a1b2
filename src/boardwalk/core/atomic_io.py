"""Crash-safe file persistence.

Every write goes to a uniquely named temp file in the target's directory and
is then moved into place with a single rename (or hard link, for
create-if-absent). Readers therefore see either the old content or the new
content, never a partial file. The temp file lives beside the target because
rename is only atomic within one filesystem.
"""

import errno
import json
import logging
import os
import secrets
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from ..constants import WRITE_MAX_RETRIES, WRITE_RETRY_DELAY_MS
from ..errors import file_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

# EBUSY: resource busy, EAGAIN: try again, EMFILE: too many open files
TRANSIENT_ERRNOS = frozenset({errno.EBUSY, errno.EAGAIN, errno.EMFILE})


def _temp_path(path: Path) -> Path:
    """Unique temp path beside ``path``: pid, milliseconds and a random token."""
    stamp = int(time.time() * 1000)
    return path.parent / f".tmp.{os.getpid()}.{stamp}.{secrets.token_hex(3)}"


def _write_temp(path: Path, content: str) -> Path:
    tmp = _temp_path(path)
    try:
        # newline="" keeps content byte-for-byte (no \n translation)
        with open(tmp, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        _discard(tmp)
        raise
    return tmp


def _discard(tmp: Path) -> None:
    """Remove a temp file; a failure here must not hide the caller's error."""
    try:
        tmp.unlink(missing_ok=True)
    except OSError:
        logger.debug("Could not remove temp file %s", tmp, exc_info=True)


def is_transient(error: BaseException) -> bool:
    """Whether a filesystem error is worth retrying."""
    return isinstance(error, OSError) and error.errno in TRANSIENT_ERRNOS


def atomic_write(path: Path, content: str) -> None:
    """Replace the contents of ``path`` atomically.

    Args:
        path: Target file. Its directory must exist.
        content: Full new contents.

    Raises:
        OSError: The original error if writing or renaming failed. The
            target is untouched and the temp file is removed.
    """
    tmp = _write_temp(path, content)
    try:
        os.replace(tmp, path)
    except BaseException:
        _discard(tmp)
        raise


def atomic_create(path: Path, content: str) -> bool:
    """Create ``path`` with ``content`` only if it does not exist yet.

    The content is written to a temp file first and then hard-linked onto
    the target. ``os.link`` refuses to overwrite, so exactly one of several
    racing creators succeeds and nobody can observe an empty file.

    Returns:
        True if the file was created, False if it already existed.

    Raises:
        OSError: Any failure other than the target already existing.
    """
    tmp = _write_temp(path, content)
    try:
        os.link(tmp, path)
        return True
    except FileExistsError:
        return False
    finally:
        _discard(tmp)


def _with_retries(
    operation: Callable[[], T],
    path: Path,
    op_name: str,
    max_retries: int,
    retry_delay_ms: int,
    sleep: Callable[[float], None],
) -> T:
    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except OSError as e:
            if not is_transient(e) or attempt >= max_retries:
                raise file_error(path, op_name, e) from e
            delay_ms = retry_delay_ms * attempt
            logger.debug(
                "Transient error on %s of %s (attempt %d/%d), retrying in %dms: %s",
                op_name,
                path,
                attempt,
                max_retries,
                delay_ms,
                e,
            )
            sleep(delay_ms / 1000)
    raise AssertionError("unreachable")  # pragma: no cover


def safe_write(
    path: Path,
    content: str,
    max_retries: int = WRITE_MAX_RETRIES,
    retry_delay_ms: int = WRITE_RETRY_DELAY_MS,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Atomic write with linear backoff on transient filesystem errors.

    Raises:
        BoardwalkError: kind ``file_error`` on a non-transient error or once
            retries are exhausted; the OSError is chained as the cause.
    """
    _with_retries(
        lambda: atomic_write(path, content), path, "write", max_retries, retry_delay_ms, sleep
    )


def safe_create(
    path: Path,
    content: str,
    max_retries: int = WRITE_MAX_RETRIES,
    retry_delay_ms: int = WRITE_RETRY_DELAY_MS,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """``atomic_create`` with the same retry policy as ``safe_write``."""
    return _with_retries(
        lambda: atomic_create(path, content), path, "create", max_retries, retry_delay_ms, sleep
    )


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)


def atomic_write_json(path: Path, data: Any) -> None:
    atomic_write(path, to_json(data))


def safe_write_json(path: Path, data: Any, **kwargs: Any) -> None:
    """Serialize ``data`` with 2-space indentation and write it safely."""
    safe_write(path, to_json(data), **kwargs)


def read_text(path: Path) -> str | None:
    """Read a UTF-8 file, returning None when it does not exist.

    Raises:
        BoardwalkError: kind ``file_error`` for any other OS error.
        UnicodeDecodeError: The file is not UTF-8; callers report it.
    """
    try:
        return path.read_bytes().decode("utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        raise file_error(path, "read", e) from e


def remove(path: Path) -> bool:
    """Delete ``path``. Returns False if it was already gone.

    Raises:
        BoardwalkError: kind ``file_error`` for any other delete failure.
    """
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise file_error(path, "delete", e) from e


def ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise file_error(path, "create", e) from e
    return path
