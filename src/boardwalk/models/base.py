"""Shared base for persisted records."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (written by older tools) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Record(BaseModel):
    """Base for records stored as JSON under ``.boardwalk/``.

    Unknown keys written by other tools or newer versions are kept so that
    a read-modify-write cycle never loses them.
    """

    model_config = ConfigDict(extra="allow")

    @field_validator("*", mode="after")
    @classmethod
    def normalize_timestamps(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return as_utc(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible dict without unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)
