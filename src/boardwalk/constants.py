"""Constants for boardwalk."""

BOARD_DIR_NAME = ".boardwalk"
LOCKS_DIR_NAME = "locks"
CONFIG_FILE_NAME = "config.toml"

# Persisted state files (inside the board directory)
STATS_FILE = "stats.json"
METRICS_FILE = "metrics.json"
PROGRESS_FILE = "progress.json"
PAUSE_LOCK_FILE = "pause.lock"
APPROVAL_LOCK_PREFIX = "approval-"
LOCK_SUFFIX = ".lock"

# Lock timing
DEFAULT_LOCK_TIMEOUT_MINUTES = 120
HEARTBEAT_INTERVAL_SECS = 30

# External command timeouts (seconds)
GH_TIMEOUT = 10
TOOL_CHECK_TIMEOUT = 10

# Filesystem write retries
WRITE_MAX_RETRIES = 3
WRITE_RETRY_DELAY_MS = 100
