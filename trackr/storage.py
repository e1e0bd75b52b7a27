"""Persistence adapters for ComicTrackr.

The durable footprint is three named values: the comics blob, the wants
blob and the layout preference. Each value is decoded independently on
load, so a corrupted blob only resets its own field to the default.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session, col, select

from .config import DEFAULT_QUOTA_BYTES
from .errors import StorageError
from .logging_config import get_logger
from .models import (
    ComicRecord,
    LayoutPreference,
    PersistedState,
    StoredValue,
    WantEntry,
    new_comic_id,
)

logger = get_logger(__name__)

COMICS_KEY = "comicTrackr_comics_v2"
WANTS_KEY = "comicTrackr_wants_v2"
LAYOUT_KEY = "comicTrackr_layout"
STORAGE_KEYS = (COMICS_KEY, WANTS_KEY, LAYOUT_KEY)


class StorageAdapter(Protocol):
    def load(self) -> PersistedState:
        ...

    def save(self, state: PersistedState) -> None:
        """Persist state or raise StorageError."""
        ...


def _parse_sequence(raw: Optional[str], key: str) -> list:
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning(f"Stored value {key} is not valid JSON, using default: {exc}")
        return []
    if not isinstance(data, list):
        logger.warning(f"Stored value {key} is not a list, using default")
        return []
    return data


# Fields a comic cannot be read without. Anything else falls back to its default.
_REQUIRED_COMIC_FIELDS = {"title", "issue"}


def _field_names(loc_name: str) -> set[str]:
    """Field name and alias for an error location."""
    for name, info in ComicRecord.model_fields.items():
        if loc_name in (name, info.alias):
            return {name, info.alias} - {None}
    return {loc_name}


def _read_comic(item: object, index: int) -> Optional[ComicRecord]:
    try:
        return ComicRecord.model_validate(item)
    except PydanticValidationError as exc:
        if not isinstance(item, dict):
            logger.warning(f"Skipping unreadable comic at position {index}: not an object")
            return None
        failed = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        dropped: set[str] = set()
        for loc_name in failed:
            dropped |= _field_names(loc_name)
        if not failed or dropped & _REQUIRED_COMIC_FIELDS:
            logger.warning(
                f"Skipping unreadable comic at position {index}: {exc.error_count()} error(s)"
            )
            return None

    repaired = {k: v for k, v in item.items() if k not in dropped}
    try:
        comic = ComicRecord.model_validate(repaired)
    except PydanticValidationError as exc:
        logger.warning(f"Skipping unreadable comic at position {index}: {exc.error_count()} error(s)")
        return None
    logger.warning(
        f"Comic {comic.title} #{comic.issue} had invalid {', '.join(sorted(failed))}, using defaults"
    )
    return comic


def decode_comics(raw: Optional[str]) -> List[ComicRecord]:
    """Decode the comics blob.

    A comic without a usable title or issue is skipped. Any other invalid
    field (cost, release date, status...) is reset to its default so the
    rest of the record survives. Ids are kept unique.
    """
    comics: List[ComicRecord] = []
    seen_ids: set[str] = set()
    for index, item in enumerate(_parse_sequence(raw, COMICS_KEY)):
        comic = _read_comic(item, index)
        if comic is None:
            continue
        if comic.id in seen_ids:
            fresh_id = new_comic_id()
            logger.warning(f"Duplicate comic id {comic.id} reassigned to {fresh_id}")
            comic = comic.model_copy(update={"id": fresh_id})
        seen_ids.add(comic.id)
        comics.append(comic)
    return comics


def decode_wants(raw: Optional[str]) -> List[WantEntry]:
    """Decode the wants blob. Malformed items are skipped."""
    wants: List[WantEntry] = []
    for index, item in enumerate(_parse_sequence(raw, WANTS_KEY)):
        try:
            wants.append(WantEntry.model_validate(item))
        except PydanticValidationError as exc:
            logger.warning(f"Skipping unreadable want at position {index}: {exc.error_count()} error(s)")
    return wants


def decode_layout(raw: Optional[str]) -> LayoutPreference:
    """Decode the layout preference, stored as a bare string."""
    if raw is None:
        return LayoutPreference.GRID
    try:
        return LayoutPreference(raw.strip())
    except (ValueError, AttributeError):
        logger.warning(f"Stored layout {raw!r} is invalid, using grid")
        return LayoutPreference.GRID


def decode_state(values: Dict[str, Optional[str]]) -> PersistedState:
    return PersistedState(
        comics=decode_comics(values.get(COMICS_KEY)),
        wants=decode_wants(values.get(WANTS_KEY)),
        layout=decode_layout(values.get(LAYOUT_KEY)),
    )


def encode_state(state: PersistedState) -> Dict[str, str]:
    return {
        COMICS_KEY: json.dumps([c.to_storage() for c in state.comics]),
        WANTS_KEY: json.dumps([w.to_storage() for w in state.wants]),
        LAYOUT_KEY: state.layout.value,
    }


def encoded_size(values: Dict[str, str]) -> int:
    """Bytes used by the encoded values, keys included."""
    return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in values.items())


def check_quota(values: Dict[str, str], quota_bytes: Optional[int]) -> None:
    if quota_bytes is None:
        return
    size = encoded_size(values)
    if size > quota_bytes:
        raise StorageError.quota_exceeded(
            f"Storage limit reached ({size} of {quota_bytes} bytes)"
        )


class MemoryStorage:
    """Dict-backed adapter. Values are kept encoded, like the on-disk form."""

    def __init__(
        self,
        values: Optional[Dict[str, str]] = None,
        quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES,
    ):
        self.values: Dict[str, str] = dict(values or {})
        self.quota_bytes = quota_bytes
        self.save_count = 0

    def load(self) -> PersistedState:
        return decode_state(self.values)

    def save(self, state: PersistedState) -> None:
        encoded = encode_state(state)
        check_quota(encoded, self.quota_bytes)
        self.values.update(encoded)
        self.save_count += 1


def _is_disk_full(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return "disk is full" in text or "database or disk is full" in text


class SqlStorage:
    """SQLite-backed adapter storing each value as a row of `stored_values`."""

    def __init__(self, engine: Engine, quota_bytes: Optional[int] = DEFAULT_QUOTA_BYTES):
        self.engine = engine
        self.quota_bytes = quota_bytes

    def _read_values(self) -> Dict[str, Optional[str]]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(StoredValue).where(col(StoredValue.key).in_(STORAGE_KEYS))
            ).all()
            return {row.key: row.value for row in rows}

    def load(self) -> PersistedState:
        try:
            values = self._read_values()
        except SQLAlchemyError as exc:
            logger.error(f"Unable to read stored values, starting empty: {exc}")
            values = {}
        state = decode_state(values)
        logger.info(
            f"Loaded {len(state.comics)} comics, {len(state.wants)} wants, "
            f"layout: {state.layout.value}"
        )
        return state

    def save(self, state: PersistedState) -> None:
        encoded = encode_state(state)
        check_quota(encoded, self.quota_bytes)
        now = datetime.now(timezone.utc)
        try:
            with Session(self.engine) as session:
                for key, value in encoded.items():
                    row = session.get(StoredValue, key)
                    if row is None:
                        row = StoredValue(key=key, value=value, updated_at=now)
                    else:
                        row.value = value
                        row.updated_at = now
                    session.add(row)
                session.commit()
        except OperationalError as exc:
            if _is_disk_full(exc):
                raise StorageError.quota_exceeded("Database or disk is full") from exc
            raise StorageError.other(f"Error saving data: {exc}") from exc
        except SQLAlchemyError as exc:
            raise StorageError.other(f"Error saving data: {exc}") from exc
        logger.debug(
            f"Saved {len(state.comics)} comics, {len(state.wants)} wants, "
            f"layout: {state.layout.value}"
        )
