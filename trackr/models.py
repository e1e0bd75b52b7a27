"""Data models for ComicTrackr.

Domain types are Pydantic models serialized with the camelCase field names
used by the persisted blobs (`releaseDate`, `coverImage`). The single
SQLModel table stores those blobs by key.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Field as SQLField, SQLModel


def new_comic_id() -> str:
    return f"comic_{uuid.uuid4().hex}"


def title_key(title: str) -> str:
    """Series grouping key: titles compare case-insensitively."""
    return title.strip().casefold()


def natural_key(title: str, issue: str) -> tuple[str, str]:
    """(title, issue) key used to match comics against wants."""
    return title_key(title), str(issue).strip()


def _coerce_label(value: Any) -> Any:
    # Older blobs and reference lists hold issue numbers as JSON numbers
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class LayoutPreference(str, Enum):
    GRID = "grid"
    LIST = "list"


class IssueState(str, Enum):
    OWNED = "owned"
    WANTED = "wanted"
    NEITHER = "neither"


class WantAction(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    BLOCKED = "blocked"


class ComicStatus(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    owned: bool = True
    read: bool = False


class ComicRecord(BaseModel):
    """One owned issue."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_comic_id, min_length=1)
    title: str = Field(min_length=1)
    issue: str = Field(min_length=1)
    release_date: Optional[str] = Field(default=None, alias="releaseDate")
    cost: Optional[Decimal] = Field(default=None, ge=0)
    artist: Optional[str] = None
    publisher: Optional[str] = None
    cover_image: Optional[str] = Field(default=None, alias="coverImage")
    status: ComicStatus = Field(default_factory=ComicStatus)

    @field_validator("title", "issue", mode="before")
    @classmethod
    def _clean_label(cls, value: Any) -> Any:
        return _coerce_label(value)

    @field_validator(
        "release_date", "cost", "artist", "publisher", "cover_image", mode="before"
    )
    @classmethod
    def _clean_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def key(self) -> tuple[str, str]:
        return natural_key(self.title, self.issue)

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class WantEntry(BaseModel):
    """A wishlist entry."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    title: str = Field(min_length=1)
    issue: str = Field(min_length=1)

    @field_validator("title", "issue", mode="before")
    @classmethod
    def _clean_label(cls, value: Any) -> Any:
        return _coerce_label(value)

    @property
    def key(self) -> tuple[str, str]:
        return natural_key(self.title, self.issue)

    def to_storage(self) -> dict:
        return self.model_dump(mode="json")


class ComicFields(BaseModel):
    """Add/edit payload as submitted by the presentation layer (unvalidated)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str = ""
    issue: str = ""
    release_date: Optional[str] = Field(default=None, alias="releaseDate")
    cost: Optional[str] = None
    artist: Optional[str] = None
    publisher: Optional[str] = None
    cover_image: Optional[str] = Field(default=None, alias="coverImage")

    @field_validator("title", "issue", mode="before")
    @classmethod
    def _label_or_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        return _coerce_label(value)

    @field_validator("cost", mode="before")
    @classmethod
    def _cost_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return str(value)
        return _blank_to_none(value)

    @field_validator("release_date", "artist", "publisher", "cover_image", mode="before")
    @classmethod
    def _clean_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PersistedState(BaseModel):
    """The entire durable footprint."""

    comics: List[ComicRecord] = Field(default_factory=list)
    wants: List[WantEntry] = Field(default_factory=list)
    layout: LayoutPreference = LayoutPreference.GRID


class IssueView(BaseModel):
    """One row of a series view."""

    issue: str
    state: IssueState
    comic_id: Optional[str] = None


class StoredValue(SQLModel, table=True):
    __tablename__ = "stored_values"

    key: str = SQLField(primary_key=True)
    value: str
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
