"""Board directory utilities."""

from pathlib import Path

from ..constants import BOARD_DIR_NAME, CONFIG_FILE_NAME, LOCK_SUFFIX, LOCKS_DIR_NAME


def get_board_dir(root: Path | None = None) -> Path:
    """Get .boardwalk directory path.

    Args:
        root: Directory containing .boardwalk, current directory if not provided

    Returns:
        Path to .boardwalk directory
    """
    if root is None:
        root = Path.cwd()
    return root / BOARD_DIR_NAME


def get_locks_dir(board_dir: Path) -> Path:
    return board_dir / LOCKS_DIR_NAME


def get_lock_path(board_dir: Path, issue_number: int) -> Path:
    return get_locks_dir(board_dir) / f"{issue_number}{LOCK_SUFFIX}"


def get_config_path(board_dir: Path) -> Path:
    return board_dir / CONFIG_FILE_NAME
