"""Data models for the this tool."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

DEFAULT_SEARCH_DIRECTORIES = ["~/Documents", "~/Desktop", "~/Downloads"]
DEFAULT_MAX_RECENT_MINUTES = 10


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC with whole seconds."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


class ClipKind(str, Enum):
    """Kinds of clipboard payload."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"


class ClipboardEntry(BaseModel):
    """One captured clipboard change.

    The wire names (``type``, ``tempFilePath``) match the history files
    written by earlier releases, so old logs keep loading.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: datetime
    content: str
    kind: ClipKind = Field(alias="type")
    sidecar_path: Optional[str] = Field(default=None, alias="tempFilePath")

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        try:
            return to_utc(value)
        except OverflowError as e:
            raise ValueError(f"timestamp out of range: {value}") from e

    @field_validator("sidecar_path")
    @classmethod
    def _empty_sidecar_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return value.strftime(TIMESTAMP_FORMAT)

    def listed_paths(self) -> List[str]:
        """Paths referenced by a file entry."""
        if self.kind is not ClipKind.FILE:
            return []
        return [line for line in self.content.splitlines() if line.strip()]

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Config(BaseModel):
    """User configuration, loaded once per invocation."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    search_directories: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SEARCH_DIRECTORIES),
        alias="searchDirectories",
    )
    max_recent_minutes: int = Field(
        default=DEFAULT_MAX_RECENT_MINUTES, ge=0, alias="maxRecentMinutes"
    )

    @model_validator(mode="before")
    @classmethod
    def _legacy_days(cls, data: Any) -> Any:
        # Older config files only carry maxRecentDays
        if isinstance(data, dict) and "maxRecentMinutes" not in data and "max_recent_minutes" not in data:
            days = data.get("maxRecentDays")
            if isinstance(days, int) and not isinstance(days, bool):
                data = dict(data)
                data["maxRecentMinutes"] = days * 24 * 60
        return data

    @property
    def freshness_window(self) -> timedelta:
        return timedelta(minutes=self.max_recent_minutes)

    def expanded_directories(self) -> List[Path]:
        return [Path(directory).expanduser() for directory in self.search_directories]

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


class RecentFile(BaseModel):
    """A file found by the directory scanner."""

    model_config = ConfigDict(frozen=True)

    path: str
    modified_at: datetime


class ClipboardCandidate(BaseModel):
    """Ranking candidate backed by a clipboard history entry."""

    model_config = ConfigDict(frozen=True)

    source: Literal["clipboard"] = "clipboard"
    entry: ClipboardEntry

    @property
    def timestamp(self) -> datetime:
        return self.entry.timestamp

    @property
    def label(self) -> str:
        return self.entry.kind.value

    def render(self) -> str:
        """Text entries print their content, others their sidecar path."""
        if self.entry.kind is ClipKind.TEXT:
            return self.entry.content
        return self.entry.sidecar_path or self.entry.content


class FileCandidate(BaseModel):
    """Ranking candidate backed by a recently touched file."""

    model_config = ConfigDict(frozen=True)

    source: Literal["file"] = "file"
    file: RecentFile

    @property
    def timestamp(self) -> datetime:
        return self.file.modified_at

    @property
    def label(self) -> str:
        return "recent"

    def render(self) -> str:
        return self.file.path


RecentItem = Union[ClipboardCandidate, FileCandidate]


class StatusReport(BaseModel):
    """Health summary shown by ``this status``."""

    data_dir: str
    data_dir_exists: bool
    config_path: str
    config_exists: bool
    config_valid: bool
    history_path: str
    history_entries: int
    search_directories: List[dict] = Field(default_factory=list)
