"""Collection store: the single owner of comics, wants and layout.

All mutations go through `CollectionStore`. Each successful mutation is
written through to the storage adapter immediately. A failed write does not
undo the mutation; it issues a `PersistenceWarning` instead.
"""

from __future__ import annotations

import threading
import warnings
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .config import MAX_COVER_BYTES
from .errors import NotFoundError, PersistenceWarning, StorageError, ValidationError
from .images import check_cover_size
from .logging_config import get_logger
from .models import (
    ComicFields,
    ComicRecord,
    ComicStatus,
    LayoutPreference,
    PersistedState,
    WantAction,
    WantEntry,
    natural_key,
)
from .storage import StorageAdapter

logger = get_logger(__name__)

FieldsInput = Union[ComicFields, Mapping[str, Any]]


def _parse_cost(raw: Optional[str]) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        cost = Decimal(raw)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("cost", "Cost must be a non-negative number.") from exc
    if not cost.is_finite() or cost < 0:
        raise ValidationError("cost", "Cost must be a non-negative number.")
    return cost


class CollectionStore:
    """In-memory collection backed by a storage adapter.

    Build one with `CollectionStore.open(storage)` at startup and call
    `close()` (or use it as a context manager) at exit for a final flush.
    """

    def __init__(
        self,
        storage: StorageAdapter,
        state: Optional[PersistedState] = None,
        max_cover_bytes: int = MAX_COVER_BYTES,
    ):
        state = state if state is not None else PersistedState()
        self.storage = storage
        self.max_cover_bytes = max_cover_bytes
        self.last_warning: Optional[PersistenceWarning] = None
        self._comics: List[ComicRecord] = list(state.comics)
        self._wants: List[WantEntry] = list(state.wants)
        self._layout = state.layout
        # Single writer: mutations never interleave
        self._lock = threading.RLock()

    @classmethod
    def open(
        cls, storage: StorageAdapter, max_cover_bytes: int = MAX_COVER_BYTES
    ) -> "CollectionStore":
        state = storage.load()
        owned = {c.key for c in state.comics}
        stale = [w for w in state.wants if w.key in owned]
        if stale:
            logger.info(f"Dropping {len(stale)} wishlist entries already owned")
            state = state.model_copy(
                update={"wants": [w for w in state.wants if w.key not in owned]}
            )
        return cls(storage, state, max_cover_bytes=max_cover_bytes)

    def close(self) -> None:
        with self._lock:
            self._flush()

    def __enter__(self) -> "CollectionStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Read access ---

    @property
    def comics(self) -> List[ComicRecord]:
        return list(self._comics)

    @property
    def wants(self) -> List[WantEntry]:
        return list(self._wants)

    @property
    def layout(self) -> LayoutPreference:
        return self._layout

    def snapshot(self) -> PersistedState:
        with self._lock:
            return PersistedState(
                comics=list(self._comics), wants=list(self._wants), layout=self._layout
            )

    def get_comic(self, comic_id: str) -> ComicRecord:
        return self._comics[self._index_of(comic_id)]

    def owns(self, title: str, issue: str) -> bool:
        key = natural_key(title, issue)
        return any(c.key == key for c in self._comics)

    def is_wanted(self, title: str, issue: str) -> bool:
        key = natural_key(title, issue)
        return any(w.key == key for w in self._wants)

    # --- Mutations ---

    def add_comic(self, fields: FieldsInput) -> ComicRecord:
        """Add an owned comic. A matching wishlist entry is removed."""
        values = self._validate(fields)
        with self._lock:
            comic = ComicRecord(status=ComicStatus(owned=True, read=False), **values)
            self._comics.append(comic)
            logger.info(f"Added {comic.title} #{comic.issue} ({comic.id})")
            if self._remove_want(comic.title, comic.issue):
                logger.info(f"Removed {comic.title} #{comic.issue} from wants list automatically")
            self._flush()
            return comic

    def update_comic(self, comic_id: str, fields: FieldsInput) -> ComicRecord:
        """Replace the descriptive fields of a comic, keeping id and status.

        An empty cover image means "no change", not "remove the cover".
        """
        with self._lock:
            index = self._index_of(comic_id)
            values = self._validate(fields)
            existing = self._comics[index]
            if values["cover_image"] is None:
                values["cover_image"] = existing.cover_image
            updated = ComicRecord(id=existing.id, status=existing.status, **values)
            self._comics[index] = updated
            logger.info(f"Updated {updated.title} #{updated.issue} ({updated.id})")
            self._remove_want(updated.title, updated.issue)
            self._flush()
            return updated

    def delete_comic(self, comic_id: str) -> None:
        with self._lock:
            comic = self._comics.pop(self._index_of(comic_id))
            logger.info(f"Deleted {comic.title} #{comic.issue} ({comic.id})")
            self._flush()

    def toggle_read(self, comic_id: str) -> bool:
        """Flip the read flag and return the new value."""
        with self._lock:
            index = self._index_of(comic_id)
            comic = self._comics[index]
            status = comic.status.model_copy(update={"read": not comic.status.read})
            self._comics[index] = comic.model_copy(update={"status": status})
            logger.info(
                f"Toggled read status for {comic.title} #{comic.issue} to {status.read}"
            )
            self._flush()
            return status.read

    def toggle_want(self, title: str, issue: str) -> WantAction:
        """Add or remove a wishlist entry. Owned issues cannot be wanted."""
        try:
            entry = WantEntry(title=title, issue=issue)
        except PydanticValidationError as exc:
            field = str(exc.errors()[0]["loc"][0]) if exc.errors() else "title"
            raise ValidationError(field, f"{field.capitalize()} is required.") from exc

        with self._lock:
            if self._remove_want(entry.title, entry.issue):
                logger.info(f"Removed {entry.title} #{entry.issue} from wants list")
                self._flush()
                return WantAction.REMOVED
            if self.owns(entry.title, entry.issue):
                logger.warning(
                    f"Attempted to add owned comic {entry.title} #{entry.issue} to wants list"
                )
                return WantAction.BLOCKED
            self._wants.append(entry)
            logger.info(f"Added {entry.title} #{entry.issue} to wants list")
            self._flush()
            return WantAction.ADDED

    def set_layout(self, layout: Union[LayoutPreference, str]) -> LayoutPreference:
        try:
            value = LayoutPreference(layout)
        except ValueError:
            raise ValidationError("layout", f"Unknown layout: {layout!r}")
        with self._lock:
            self._layout = value
            self._flush()
            return value

    # --- Internals ---

    def _index_of(self, comic_id: str) -> int:
        for index, comic in enumerate(self._comics):
            if comic.id == comic_id:
                return index
        raise NotFoundError(comic_id)

    def _remove_want(self, title: str, issue: str) -> bool:
        key = natural_key(title, issue)
        for index, want in enumerate(self._wants):
            if want.key == key:
                del self._wants[index]
                return True
        return False

    def _validate(self, fields: FieldsInput) -> Dict[str, Any]:
        if not isinstance(fields, ComicFields):
            try:
                fields = ComicFields.model_validate(dict(fields))
            except PydanticValidationError as exc:
                loc = exc.errors()[0]["loc"] if exc.errors() else ("fields",)
                raise ValidationError(str(loc[0]), f"Invalid value for {loc[0]}.") from exc

        if not fields.title:
            raise ValidationError("title", "Title is required.")
        if not fields.issue:
            raise ValidationError("issue", "Issue is required.")
        cost = _parse_cost(fields.cost)
        if fields.cover_image:
            check_cover_size(fields.cover_image, self.max_cover_bytes)

        return {
            "title": fields.title,
            "issue": fields.issue,
            "release_date": fields.release_date,
            "cost": cost,
            "artist": fields.artist,
            "publisher": fields.publisher,
            "cover_image": fields.cover_image,
        }

    def _flush(self) -> None:
        """Save a snapshot; on StorageError keep the mutation and warn.

        The warning goes through `warnings.warn`, so under the default filter
        repeated failures from the same call site are shown only once. Every
        failure is still logged and recorded in `last_warning`.
        """
        try:
            self.storage.save(self.snapshot())
        except StorageError as exc:
            warning = PersistenceWarning(exc)
            self.last_warning = warning
            logger.warning(str(warning))
            warnings.warn(warning, stacklevel=3)
        else:
            self.last_warning = None
