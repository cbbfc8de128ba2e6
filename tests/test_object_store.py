"""Tests for the object store base behaviour and the in-memory backend."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from app.services.backend_errors import BackendUnavailable, ConfigurationError, InvalidInput
from app.services.memory_storage import InMemoryObjectStore
from app.services.object_store import ObjectPage, UnconfiguredObjectStore, bundle_prefix, object_key


class FlakyStore(InMemoryObjectStore):
    """Fails deletes for a fixed set of keys."""

    def __init__(self, failing: set[str], **kwargs):
        super().__init__(**kwargs)
        self.failing = failing
        self.attempted: list[str] = []

    def _delete(self, key: str) -> None:
        self.attempted.append(key)
        if key in self.failing:
            raise BackendUnavailable(f"boom on {key}", status_code=500)
        super()._delete(key)


def test_object_key_and_prefix():
    assert object_key("b1") == "b1/bundle.zip"
    assert object_key("b1", "main.jsbundle") == "b1/main.jsbundle"
    assert bundle_prefix("b1") == "b1/"


def test_delete_is_idempotent(object_store):
    object_store.put_object("b1/bundle.zip", 10)

    object_store.delete_object("b1/bundle.zip")
    object_store.delete_object("b1/bundle.zip")
    object_store.delete_object("never-existed/bundle.zip")

    assert not object_store.has_object("b1/bundle.zip")


def test_list_by_prefix_crosses_pages(object_store):
    for name in ("bundle.zip", "assets/a.png", "assets/b.png", "main.jsbundle", "sourcemap.map"):
        object_store.put_object(f"b1/{name}", 1)
    object_store.put_object("b10/bundle.zip", 1)
    object_store.put_object("b2/bundle.zip", 1)

    keys = [obj.key for obj in object_store.list_by_prefix("b1/")]

    assert sorted(keys) == [
        "b1/assets/a.png",
        "b1/assets/b.png",
        "b1/bundle.zip",
        "b1/main.jsbundle",
        "b1/sourcemap.map",
    ]


def test_listing_can_be_iterated_twice(object_store):
    object_store.put_object("b1/a", 1)
    object_store.put_object("b1/b", 2)
    object_store.put_object("b1/c", 3)

    listing = object_store.list_by_prefix("b1/")

    assert list(listing) == list(listing)
    assert [obj.size for obj in listing] == [1, 2, 3]


def test_empty_prefix_lists_everything(object_store):
    object_store.put_object("a/1", 1)
    object_store.put_object("b/1", 1)

    assert len(list(object_store.list_by_prefix(""))) == 2


def test_repeated_cursor_stops_listing():
    class LoopingStore(InMemoryObjectStore):
        def __init__(self):
            super().__init__()
            self.calls = 0

        def _list_page(self, prefix, cursor):
            self.calls += 1
            return ObjectPage(objects=[], cursor="same", truncated=True)

    store = LoopingStore()

    assert list(store.list_by_prefix("x/")) == []
    assert store.calls == 2


def test_bulk_delete_continues_past_failures():
    store = FlakyStore({"b1/two"})
    for key in ("b1/one", "b1/two", "b1/three"):
        store.put_object(key)

    result = store.bulk_delete(["b1/one", "b1/two", "b1/three"])

    assert store.attempted == ["b1/one", "b1/two", "b1/three"]
    assert result.total_objects == 3
    assert result.deleted_objects == 2
    assert result.success is True
    failed = [r for r in result.results if not r.success]
    assert [r.key for r in failed] == ["b1/two"]
    assert "boom" in failed[0].error
    assert result.deleted_objects == sum(1 for r in result.results if r.success)


def test_bulk_delete_all_failing_is_unsuccessful():
    store = FlakyStore({"k1", "k2"})

    result = store.bulk_delete(["k1", "k2"])

    assert result.success is False
    assert result.deleted_objects == 0
    assert result.message == "Deleted 0/2 objects"


def test_bulk_delete_counts_missing_keys_as_deleted(object_store):
    result = object_store.bulk_delete(["ghost/bundle.zip"])

    assert result.success is True
    assert result.deleted_objects == 1


def test_put_object_rejects_bad_key(object_store):
    with pytest.raises(InvalidInput):
        object_store.put_object("/absolute")


def test_unconfigured_store_raises_configuration_error():
    store = UnconfiguredObjectStore("r2", "missing R2_BUCKET_NAME")

    assert store.configured is False
    with pytest.raises(ConfigurationError, match="R2_BUCKET_NAME"):
        list(store.list_by_prefix("b1/"))
    with pytest.raises(ConfigurationError):
        store.delete_object("b1/bundle.zip")


def _deletes(status: str) -> float:
    return REGISTRY.get_sample_value("ota_object_deletes_total", {"status": status}) or 0.0


def test_delete_metrics_separate_absent_keys(object_store):
    object_store.put_object("b1/bundle.zip")
    deleted_before = _deletes("deleted")
    absent_before = _deletes("absent")

    object_store.delete_object("b1/bundle.zip")
    object_store.delete_object("b1/bundle.zip")

    assert _deletes("deleted") == deleted_before + 1
    assert _deletes("absent") == absent_before + 1
