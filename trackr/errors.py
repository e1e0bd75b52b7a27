"""Error taxonomy for ComicTrackr.

- ValidationError: caller input rejected, store untouched
- NotFoundError: operation on an unknown comic id
- StorageError: a save failed (QuotaExceeded or Other)
- PersistenceWarning: a mutation succeeded in memory but was not saved
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class TrackrError(Exception):
    """Base class for errors surfaced to the presentation layer."""


class ValidationError(TrackrError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class NotFoundError(TrackrError):
    def __init__(self, comic_id: str):
        super().__init__(f"Comic not found: {comic_id}")
        self.comic_id = comic_id


class StorageErrorKind(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    OTHER = "other"


class StorageError(TrackrError):
    def __init__(self, kind: StorageErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def suggestion(self) -> Optional[str]:
        if self.kind is StorageErrorKind.QUOTA_EXCEEDED:
            return "Try removing large cover images or deleting comics."
        return None

    @classmethod
    def quota_exceeded(cls, message: str = "Storage limit reached") -> "StorageError":
        return cls(StorageErrorKind.QUOTA_EXCEEDED, message)

    @classmethod
    def other(cls, message: str = "Error saving data") -> "StorageError":
        return cls(StorageErrorKind.OTHER, message)


class PersistenceWarning(UserWarning):
    """Issued when a successful mutation could not be written to storage.

    The in-memory change is kept; it may not survive a reload.
    """

    def __init__(self, error: StorageError):
        text = f"Changes may not be saved: {error.message}"
        if error.suggestion:
            text = f"{text}. {error.suggestion}"
        super().__init__(text)
        self.error = error
