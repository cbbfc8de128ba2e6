"""Tests for the bundle payload size cache."""

from __future__ import annotations

from app.services.memory_storage import InMemoryObjectStore
from app.services.size_cache import SizeCache


class CountingStore(InMemoryObjectStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.listings = 0

    def list_by_prefix(self, prefix):
        self.listings += 1
        return super().list_by_prefix(prefix)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_sizes_for_found_and_missing_bundles():
    store = CountingStore(page_size=2)
    store.put_object("a0/bundle.zip", 5)
    store.put_object("b1/bundle.zip", 1000)
    store.put_object("c9/bundle.zip", 7)

    cache = SizeCache(store)

    assert cache.get_file_sizes(["b1", "missing-id"]) == {"b1": 1000, "missing-id": 0}
    assert store.listings == 1


def test_resolved_sizes_are_not_fetched_again():
    store = CountingStore()
    store.put_object("b1/bundle.zip", 1000)
    cache = SizeCache(store)

    cache.get_file_sizes(["b1", "empty"])
    store.put_object("empty/bundle.zip", 50)
    second = cache.get_file_sizes(["empty", "b1"])

    assert second == {"empty": 0, "b1": 1000}
    assert store.listings == 1
    assert "empty" in cache
    assert len(cache) == 2


def test_only_uncached_ids_trigger_a_listing():
    store = CountingStore()
    store.put_object("b1/bundle.zip", 1)
    store.put_object("b2/bundle.zip", 2)
    cache = SizeCache(store)

    cache.get_file_sizes(["b1"])
    result = cache.get_file_sizes(["b1", "b2", "b2"])

    assert result == {"b1": 1, "b2": 2}
    assert store.listings == 2


def test_prefix_match_requires_separator():
    store = InMemoryObjectStore()
    store.put_object("b10/bundle.zip", 99)

    assert SizeCache(store).get_file_sizes(["b1"]) == {"b1": 0}


def test_entries_expire_after_ttl():
    store = CountingStore()
    store.put_object("b1/bundle.zip", 10)
    clock = FakeClock()
    cache = SizeCache(store, ttl_seconds=60, clock=clock)

    cache.get_file_sizes(["b1"])
    store.put_object("b1/bundle.zip", 20)
    clock.now += 30
    assert cache.get_file_sizes(["b1"]) == {"b1": 10}

    clock.now += 31
    assert "b1" not in cache
    assert cache.get_file_sizes(["b1"]) == {"b1": 20}
    assert store.listings == 2


def test_empty_request_does_not_list():
    store = CountingStore()

    assert SizeCache(store).get_file_sizes([]) == {}
    assert store.listings == 0
