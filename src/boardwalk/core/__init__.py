"""Coordination and persistence core for boardwalk.

- atomic_io: Crash-safe writes and create-if-absent
- schema: JSON parsing and schema validation with recovery
- schemas: Schemas for every persisted file
- lock_manager: Per-issue locks with heartbeat-based staleness
- heartbeat: Background heartbeat timer and the hold_lock context manager
- state_files: Stats, metrics, progress, pause and approval files
- board_dir: .boardwalk directory layout
"""

from .atomic_io import atomic_create, atomic_write, remove, safe_create, safe_write
from .board_dir import get_board_dir, get_lock_path, get_locks_dir
from .heartbeat import HeartbeatTimer, hold_lock, start_heartbeat_timer
from .lock_manager import (
    acquire_lock,
    cleanup_stale_locks,
    find_stale_locks,
    force_release,
    generate_session_id,
    is_locked_by_other,
    is_stale_lock,
    list_locks,
    read_lock,
    release_lock,
    release_session_locks,
    update_heartbeat,
)
from .schema import DataSchema, FieldSpec, FieldType, parse_json, validate, validate_array

__all__ = [
    "DataSchema",
    "FieldSpec",
    "FieldType",
    "HeartbeatTimer",
    "acquire_lock",
    "atomic_create",
    "atomic_write",
    "cleanup_stale_locks",
    "find_stale_locks",
    "force_release",
    "generate_session_id",
    "get_board_dir",
    "get_lock_path",
    "get_locks_dir",
    "hold_lock",
    "is_locked_by_other",
    "is_stale_lock",
    "list_locks",
    "parse_json",
    "read_lock",
    "release_lock",
    "release_session_locks",
    "remove",
    "safe_create",
    "safe_write",
    "start_heartbeat_timer",
    "update_heartbeat",
    "validate",
    "validate_array",
]
