"""In-process object store for local development and tests."""

from __future__ import annotations

import threading

from app.schemas.bundles import StoredObject
from app.services.backend_errors import InvalidInput, ObjectNotFound
from app.services.object_store import ObjectPage, ObjectStore


class InMemoryObjectStore(ObjectStore):
    name = "memory"

    def __init__(self, page_size: int = 1000):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.page_size = page_size
        self._objects: dict[str, int] = {}
        self._lock = threading.Lock()

    def put_object(self, key: str, size: int = 0) -> StoredObject:
        if not key or key.startswith("/"):
            raise InvalidInput(f"Invalid object key {key!r}")
        with self._lock:
            self._objects[key] = size
        return StoredObject(key=key, size=size)

    def has_object(self, key: str) -> bool:
        return key in self._objects

    def _delete(self, key: str) -> None:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFound(f"Object {key} not found")
            del self._objects[key]

    def _list_page(self, prefix: str, cursor: str | None) -> ObjectPage:
        # The cursor is the last key returned; keys are served in sorted order.
        with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
            if cursor is not None:
                keys = [k for k in keys if k > cursor]
            chunk = keys[: self.page_size]
            objects = [StoredObject(key=k, size=self._objects[k]) for k in chunk]
        truncated = len(keys) > len(chunk)
        return ObjectPage(
            objects=objects,
            cursor=chunk[-1] if truncated else None,
            truncated=truncated,
        )
