"""
Size Cache: memoized bundle payload sizes.

Uncached ids are resolved with a single listing of the object store; ids
without any object resolve to 0 and are not fetched again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from threading import Lock
from time import monotonic

from app.metrics import SIZE_CACHE_LOOKUPS
from app.services.object_store import ObjectStore, bundle_prefix

logger = logging.getLogger(__name__)


class SizeCache:
    def __init__(
        self,
        object_store: ObjectStore,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = monotonic,
    ):
        self.object_store = object_store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sizes: dict[str, tuple[int, float]] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._sizes)

    def __contains__(self, bundle_id: object) -> bool:
        return self._lookup(bundle_id) is not None  # type: ignore[arg-type]

    def _lookup(self, bundle_id: str) -> int | None:
        entry = self._sizes.get(bundle_id)
        if entry is None:
            return None
        size, stored_at = entry
        if self.ttl_seconds is not None and self._clock() - stored_at > self.ttl_seconds:
            return None
        return size

    def get_file_sizes(self, bundle_ids: Iterable[str]) -> dict[str, int]:
        ids = list(dict.fromkeys(bundle_ids))
        uncached = [bundle_id for bundle_id in ids if self._lookup(bundle_id) is None]
        hits = len(ids) - len(uncached)
        if hits:
            SIZE_CACHE_LOOKUPS.labels(result="hit").inc(hits)
        if uncached:
            SIZE_CACHE_LOOKUPS.labels(result="miss").inc(len(uncached))
            fetched = self._fetch(uncached)
            now = self._clock()
            with self._lock:
                for bundle_id, size in fetched.items():
                    self._sizes[bundle_id] = (size, now)

        sizes: dict[str, int] = {}
        for bundle_id in ids:
            entry = self._sizes.get(bundle_id)
            sizes[bundle_id] = entry[0] if entry else 0
        return sizes

    def _fetch(self, bundle_ids: list[str]) -> dict[str, int]:
        """List the store once and take the first object under each id's prefix."""
        prefixes = {bundle_id: bundle_prefix(bundle_id) for bundle_id in bundle_ids}
        found: dict[str, int] = {}
        for obj in self.object_store.list_by_prefix(""):
            for bundle_id, prefix in prefixes.items():
                if bundle_id not in found and obj.key.startswith(prefix):
                    found[bundle_id] = obj.size
                    break
            if len(found) == len(prefixes):
                break
        logger.debug("Resolved sizes for %d/%d bundles", len(found), len(bundle_ids))
        return {bundle_id: found.get(bundle_id, 0) for bundle_id in bundle_ids}
