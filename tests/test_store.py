"""Tests for the collection store."""

import base64
import threading
from decimal import Decimal

import pytest

from trackr.errors import (
    NotFoundError,
    PersistenceWarning,
    StorageError,
    StorageErrorKind,
    ValidationError,
)
from trackr.models import ComicFields, LayoutPreference, PersistedState, WantAction, WantEntry
from trackr.storage import MemoryStorage
from trackr.store import CollectionStore


class FailingStorage(MemoryStorage):
    """MemoryStorage whose saves fail with a chosen error kind."""

    def __init__(self, kind=StorageErrorKind.OTHER):
        super().__init__()
        self.kind = kind

    def save(self, state):
        raise StorageError(self.kind, "boom")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return CollectionStore.open(storage)


def _cover(num_bytes):
    return "data:image/png;base64," + base64.b64encode(b"\0" * num_bytes).decode("ascii")


def test_add_comic_creates_owned_unread_record(store, storage):
    comic = store.add_comic(
        {
            "title": "  Saga ",
            "issue": " 1 ",
            "releaseDate": "2012-03-14",
            "cost": "2.99",
            "artist": "Fiona Staples",
            "publisher": "Image",
        }
    )

    assert comic.id.startswith("comic_")
    assert comic.title == "Saga"
    assert comic.issue == "1"
    assert comic.release_date == "2012-03-14"
    assert comic.cost == Decimal("2.99")
    assert comic.status.owned is True
    assert comic.status.read is False
    assert store.comics == [comic]
    assert storage.save_count == 1
    assert storage.load().comics == [comic]


def test_add_comic_ids_are_unique(store):
    ids = {store.add_comic({"title": "Saga", "issue": "1"}).id for _ in range(20)}
    assert len(ids) == 20


def test_add_then_delete_round_trip(store):
    store.add_comic({"title": "Batman", "issue": "404"})
    before = store.comics

    comic = store.add_comic(ComicFields(title="Saga", issue="1", cost="0"))
    store.delete_comic(comic.id)

    assert store.comics == before


@pytest.mark.parametrize(
    "fields, field",
    [
        ({"title": "", "issue": "1"}, "title"),
        ({"title": "   ", "issue": "1"}, "title"),
        ({"title": "Saga", "issue": ""}, "issue"),
        ({"title": "Saga", "issue": "1", "cost": "-1"}, "cost"),
        ({"title": "Saga", "issue": "1", "cost": "abc"}, "cost"),
        ({"title": "Saga", "issue": "1", "cost": "NaN"}, "cost"),
    ],
)
def test_add_comic_validation(store, storage, fields, field):
    with pytest.raises(ValidationError) as exc_info:
        store.add_comic(fields)
    assert exc_info.value.field == field
    assert store.comics == []
    assert storage.save_count == 0


def test_add_comic_rejects_oversized_cover(storage):
    store = CollectionStore.open(storage, max_cover_bytes=1024)
    with pytest.raises(ValidationError) as exc_info:
        store.add_comic({"title": "Saga", "issue": "1", "coverImage": _cover(1025)})
    assert exc_info.value.field == "cover_image"
    assert store.comics == []

    comic = store.add_comic({"title": "Saga", "issue": "1", "coverImage": _cover(1024)})
    assert comic.cover_image == _cover(1024)


def test_add_comic_removes_matching_want(store):
    store.toggle_want("Saga", "1")
    store.toggle_want("Saga", "2")
    assert len(store.wants) == 2

    store.add_comic({"title": "SAGA", "issue": "1"})

    assert store.wants == [WantEntry(title="Saga", issue="2")]


def test_add_comic_without_matching_want_keeps_wishlist(store):
    store.toggle_want("Saga", "2")
    store.add_comic({"title": "Saga", "issue": "1"})
    assert len(store.wants) == 1


def test_update_comic_keeps_id_and_status(store):
    comic = store.add_comic({"title": "Saga", "issue": "1", "artist": "Fiona Staples"})
    store.toggle_read(comic.id)

    updated = store.update_comic(comic.id, {"title": "Saga", "issue": "2"})

    assert updated.id == comic.id
    assert updated.status.read is True
    assert updated.issue == "2"
    assert updated.artist is None
    assert store.get_comic(comic.id) == updated


def test_update_comic_empty_cover_retains_existing(store):
    cover = _cover(16)
    comic = store.add_comic({"title": "Saga", "issue": "1", "coverImage": cover})

    kept = store.update_comic(comic.id, {"title": "Saga", "issue": "1", "coverImage": ""})
    assert kept.cover_image == cover

    kept = store.update_comic(comic.id, {"title": "Saga", "issue": "1"})
    assert kept.cover_image == cover

    new_cover = _cover(32)
    replaced = store.update_comic(comic.id, {"title": "Saga", "issue": "1", "coverImage": new_cover})
    assert replaced.cover_image == new_cover


def test_update_comic_unknown_id(store):
    with pytest.raises(NotFoundError):
        store.update_comic("comic_missing", {"title": "Saga", "issue": "1"})


def test_update_comic_validation_leaves_record_untouched(store):
    comic = store.add_comic({"title": "Saga", "issue": "1"})
    with pytest.raises(ValidationError):
        store.update_comic(comic.id, {"title": "", "issue": "1"})
    assert store.get_comic(comic.id) == comic


def test_update_comic_reconciles_wishlist(store):
    comic = store.add_comic({"title": "Saga", "issue": "1"})
    store.toggle_want("Saga", "2")

    store.update_comic(comic.id, {"title": "Saga", "issue": "2"})

    assert store.wants == []


def test_delete_comic(store):
    comic = store.add_comic({"title": "Saga", "issue": "1"})
    store.toggle_want("Saga", "2")

    store.delete_comic(comic.id)

    assert store.comics == []
    assert len(store.wants) == 1
    with pytest.raises(NotFoundError):
        store.delete_comic(comic.id)


def test_toggle_read(store):
    comic = store.add_comic({"title": "Saga", "issue": "1"})
    assert store.toggle_read(comic.id) is True
    assert store.get_comic(comic.id).status.read is True
    assert store.toggle_read(comic.id) is False
    assert store.get_comic(comic.id).status.owned is True

    with pytest.raises(NotFoundError):
        store.toggle_read("comic_missing")


def test_toggle_want_pair_is_idempotent(store):
    store.toggle_want("Batman", "1")
    before = store.wants

    assert store.toggle_want("Saga", "7") is WantAction.ADDED
    assert store.toggle_want("saga", "7") is WantAction.REMOVED
    assert store.wants == before


def test_toggle_want_blocked_when_owned(store, storage):
    store.add_comic({"title": "Saga", "issue": "1"})
    saves = storage.save_count
    before = store.wants

    assert store.toggle_want("SAGA", "1") is WantAction.BLOCKED
    assert store.toggle_want("Saga", " 1 ") is WantAction.BLOCKED
    assert store.wants == before
    assert storage.save_count == saves


def test_toggle_want_requires_title_and_issue(store):
    with pytest.raises(ValidationError) as exc_info:
        store.toggle_want("", "1")
    assert exc_info.value.field == "title"
    with pytest.raises(ValidationError) as exc_info:
        store.toggle_want("Saga", "  ")
    assert exc_info.value.field == "issue"


def test_duplicate_ownership_is_allowed(store):
    store.add_comic({"title": "Saga", "issue": "1"})
    store.add_comic({"title": "saga", "issue": "1"})
    assert len(store.comics) == 2


def test_set_layout(store, storage):
    assert store.layout is LayoutPreference.GRID
    assert store.set_layout("list") is LayoutPreference.LIST
    assert storage.load().layout is LayoutPreference.LIST

    with pytest.raises(ValidationError):
        store.set_layout("mosaic")
    assert store.layout is LayoutPreference.LIST


def test_failed_save_keeps_mutation_and_warns():
    store = CollectionStore(FailingStorage(StorageErrorKind.QUOTA_EXCEEDED))

    with pytest.warns(PersistenceWarning, match="cover images"):
        comic = store.add_comic({"title": "Saga", "issue": "1"})

    assert store.comics == [comic]
    assert store.last_warning is not None
    assert store.last_warning.error.kind is StorageErrorKind.QUOTA_EXCEEDED


def test_failed_save_other_error_warns_for_every_mutation():
    store = CollectionStore(FailingStorage(StorageErrorKind.OTHER))

    with pytest.warns(PersistenceWarning):
        comic = store.add_comic({"title": "Saga", "issue": "1"})
    with pytest.warns(PersistenceWarning):
        assert store.toggle_read(comic.id) is True
    with pytest.warns(PersistenceWarning):
        assert store.toggle_want("Saga", "2") is WantAction.ADDED
    with pytest.warns(PersistenceWarning):
        store.delete_comic(comic.id)

    assert store.comics == []
    assert store.last_warning.error.kind is StorageErrorKind.OTHER


def test_successful_save_clears_last_warning():
    storage = FailingStorage()
    store = CollectionStore(storage)
    with pytest.warns(PersistenceWarning):
        store.toggle_want("Saga", "1")
    assert store.last_warning is not None

    store.storage = MemoryStorage()
    store.toggle_want("Saga", "2")
    assert store.last_warning is None


def test_repeated_failures_are_logged_each_time(caplog):
    store = CollectionStore(FailingStorage())

    with pytest.warns(PersistenceWarning):
        for issue in ("1", "2", "3"):
            store.toggle_want("Saga", issue)

    failures = [r for r in caplog.records if "Changes may not be saved" in r.getMessage()]
    assert len(failures) == 3
    assert store.last_warning is not None


def test_open_drops_wants_already_owned():
    state = PersistedState(
        comics=[{"title": "Saga", "issue": "1"}],
        wants=[{"title": "saga", "issue": "1"}, {"title": "Saga", "issue": "2"}],
    )
    storage = MemoryStorage()
    storage.save(state)

    store = CollectionStore.open(storage)

    assert store.wants == [WantEntry(title="Saga", issue="2")]


def test_close_flushes_state(storage):
    with CollectionStore.open(storage) as store:
        store.toggle_want("Saga", "1")
        saves = storage.save_count
    assert storage.save_count == saves + 1


def test_returned_lists_are_copies(store):
    store.add_comic({"title": "Saga", "issue": "1"})
    comics = store.comics
    comics.clear()
    assert len(store.comics) == 1


def test_concurrent_adds_are_serialized(store):
    def worker(n):
        for i in range(25):
            store.add_comic({"title": f"Series {n}", "issue": str(i)})

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    comics = store.comics
    assert len(comics) == 100
    assert len({c.id for c in comics}) == 100
