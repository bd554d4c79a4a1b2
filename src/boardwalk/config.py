"""Configuration management for boardwalk."""

import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field, ValidationError

from .constants import (
    CONFIG_FILE_NAME,
    DEFAULT_LOCK_TIMEOUT_MINUTES,
    GH_TIMEOUT,
    HEARTBEAT_INTERVAL_SECS,
)
from .errors import BoardwalkError, ErrorKind
from .redact import SecretMasker


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = "unnamed-project"


class GitHubConfig(BaseModel):
    """Configuration for the gh CLI."""

    repo: str | None = Field(default=None, description="owner/name, detected by gh if unset")
    exec: str = "gh"  # Path to gh executable
    timeout_secs: int = Field(default=GH_TIMEOUT, ge=1, description="Per-call timeout")


class RetryPolicy(BaseModel):
    """Retry/backoff policy for external commands.

    Delay before retry n is ``min(base * 2^(n-1) + random(0..jitter), max)``.
    """

    max_attempts: int = Field(default=3, ge=1, description="Total attempts including the first")
    base_delay_ms: int = Field(default=1000, ge=0)
    max_delay_ms: int = Field(default=30000, ge=0)
    jitter_ms: int = Field(default=500, ge=0)


class LocksConfig(BaseModel):
    """Configuration for issue locks."""

    timeout_minutes: float = Field(
        default=DEFAULT_LOCK_TIMEOUT_MINUTES, gt=0, description="Heartbeat age before stale"
    )
    heartbeat_interval_secs: float = Field(default=HEARTBEAT_INTERVAL_SECS, gt=0)


class AgentConfig(BaseModel):
    """Configuration for the coding agent run by ``boardwalk work``."""

    exec: str = "claude"
    args: list[str] = Field(default_factory=list, description="Arguments before the issue prompt")


class OutputConfig(BaseModel):
    mask_secrets: bool = True


class BoardwalkConfig(BaseModel):
    """Root configuration for boardwalk."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    locks: LocksConfig = Field(default_factory=LocksConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @property
    def masker(self) -> SecretMasker:
        return SecretMasker(enabled=self.output.mask_secrets)


def load_config(board_dir: Path) -> BoardwalkConfig:
    """Load config from .boardwalk/config.toml.

    Args:
        board_dir: Path to .boardwalk directory

    Returns:
        Loaded configuration, or defaults if config.toml doesn't exist

    Raises:
        BoardwalkError: kind ``config_error`` if the file is not valid TOML
            or does not match the configuration schema
    """
    config_path = board_dir / CONFIG_FILE_NAME
    if not config_path.exists():
        return BoardwalkConfig()
    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise BoardwalkError(
            ErrorKind.CONFIG, f"Invalid TOML in {config_path}: {e}", path=config_path
        ) from e
    try:
        return BoardwalkConfig.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise BoardwalkError(
            ErrorKind.CONFIG,
            f"Invalid configuration in {config_path}: {problems}",
            path=config_path,
        ) from e


def write_config_template(board_dir: Path) -> Path:
    """Write default config.toml template.

    Args:
        board_dir: Path to .boardwalk directory

    Returns:
        Path to the written config file
    """
    config_path = board_dir / CONFIG_FILE_NAME
    template = {
        "project": {"name": "your-project"},
        "github": {"exec": "gh", "timeout_secs": GH_TIMEOUT},
        # Backoff for transient gh failures (rate limits, 5xx, network)
        "retry": {
            "max_attempts": 3,
            "base_delay_ms": 1000,
            "max_delay_ms": 30000,
            "jitter_ms": 500,
        },
        "locks": {
            "timeout_minutes": DEFAULT_LOCK_TIMEOUT_MINUTES,
            "heartbeat_interval_secs": HEARTBEAT_INTERVAL_SECS,
        },
        "agent": {"exec": "claude", "args": ["-p"]},
        "output": {"mask_secrets": True},
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
