"""
Object Store: key-addressed blob backend used for bundle payloads.

Every object belonging to a bundle lives under ``{bundle_id}/``; listing by
that prefix is the only link between a metadata row and its payload.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

from app.metrics import OBJECT_DELETES
from app.schemas.bundles import BulkObjectDeleteResult, ObjectDeleteResult, StoredObject
from app.services.backend_errors import BackendError, ConfigurationError, ObjectNotFound

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_FILENAME = "bundle.zip"


def object_key(bundle_id: str, filename: str = DEFAULT_BUNDLE_FILENAME) -> str:
    return f"{bundle_id}/{filename}"


def bundle_prefix(bundle_id: str) -> str:
    return f"{bundle_id}/"


@dataclass
class ObjectPage:
    objects: list[StoredObject] = field(default_factory=list)
    cursor: str | None = None
    truncated: bool = False


class ObjectListing:
    """Finite listing that walks every page again each time it is iterated."""

    def __init__(self, pages: Callable[[], Iterator[ObjectPage]]):
        self._pages = pages

    def __iter__(self) -> Iterator[StoredObject]:
        for page in self._pages():
            yield from page.objects


class ObjectStore(ABC):
    name = "object_store"
    configured = True
    reason: str | None = None

    @abstractmethod
    def _delete(self, key: str) -> None:
        """Delete one key; raise ObjectNotFound if it does not exist."""

    @abstractmethod
    def _list_page(self, prefix: str, cursor: str | None) -> ObjectPage:
        """Fetch one page of objects whose keys start with ``prefix``."""

    def delete_object(self, key: str) -> None:
        """Delete ``key``. Deleting a missing key succeeds."""
        try:
            self._delete(key)
        except ObjectNotFound:
            logger.debug("Object %s already absent from %s", key, self.name)
            OBJECT_DELETES.labels(status="absent").inc()
            return
        OBJECT_DELETES.labels(status="deleted").inc()

    def list_by_prefix(self, prefix: str) -> ObjectListing:
        return ObjectListing(lambda: self._iter_pages(prefix))

    def _iter_pages(self, prefix: str) -> Iterator[ObjectPage]:
        cursor: str | None = None
        seen_cursors: set[str] = set()
        while True:
            page = self._list_page(prefix, cursor)
            yield page
            if not page.truncated or not page.cursor:
                return
            if page.cursor in seen_cursors:
                logger.warning("Object listing for %r repeated cursor %s; stopping", prefix, page.cursor)
                return
            seen_cursors.add(page.cursor)
            cursor = page.cursor

    def bulk_delete(self, keys: Iterable[str]) -> BulkObjectDeleteResult:
        """Delete each key independently; one failure never stops the rest."""
        results: list[ObjectDeleteResult] = []
        deleted = 0
        for key in keys:
            try:
                self.delete_object(key)
            except BackendError as exc:
                OBJECT_DELETES.labels(status="failed").inc()
                logger.warning("Failed to delete %s from %s: %s", key, self.name, exc.message)
                results.append(ObjectDeleteResult(key=key, success=False, error=exc.message))
                continue
            results.append(ObjectDeleteResult(key=key, success=True))
            deleted += 1
        total = len(results)
        return BulkObjectDeleteResult(
            success=deleted > 0,
            total_objects=total,
            deleted_objects=deleted,
            results=results,
            message=f"Deleted {deleted}/{total} objects",
        )


class UnconfiguredObjectStore(ObjectStore):
    configured = False

    def __init__(self, backend: str, reason: str):
        self.name = backend
        self.reason = reason

    def _delete(self, key: str) -> None:
        raise ConfigurationError(self.reason or "Object store is not configured")

    def _list_page(self, prefix: str, cursor: str | None) -> ObjectPage:
        raise ConfigurationError(self.reason or "Object store is not configured")
