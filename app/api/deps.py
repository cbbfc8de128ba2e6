from threading import Lock

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.services.backends import build_bundle_store, build_object_store
from app.services.bundle_lifecycle_service import BundleLifecycleService
from app.services.bundle_store import BundleStore
from app.services.object_store import ObjectStore
from app.services.size_cache import SizeCache

# Process-scoped backends, built on first use.
_http_client: httpx.Client | None = None
_object_store: ObjectStore | None = None
_size_cache: SizeCache | None = None
_LOCK = Lock()


def get_http_client() -> httpx.Client:
    global _http_client
    with _LOCK:
        if _http_client is None:
            _http_client = httpx.Client(timeout=settings.backend_timeout_seconds)
        return _http_client


def get_object_store() -> ObjectStore:
    global _object_store
    client = get_http_client()
    with _LOCK:
        if _object_store is None:
            _object_store = build_object_store(settings, client=client)
        return _object_store


def get_size_cache(objects: ObjectStore = Depends(get_object_store)) -> SizeCache:
    global _size_cache
    with _LOCK:
        if _size_cache is None:
            _size_cache = SizeCache(objects, ttl_seconds=settings.size_cache_ttl_seconds)
        return _size_cache


def get_bundle_store(db: Session = Depends(get_db)) -> BundleStore:
    return build_bundle_store(settings, db, client=get_http_client())


def get_lifecycle_service(
    bundles: BundleStore = Depends(get_bundle_store),
    objects: ObjectStore = Depends(get_object_store),
) -> BundleLifecycleService:
    return BundleLifecycleService(bundles, objects, default_filename=settings.default_bundle_filename)


def close_backends() -> None:
    global _http_client, _object_store, _size_cache
    with _LOCK:
        if _http_client is not None:
            _http_client.close()
        _http_client = None
        _object_store = None
        _size_cache = None


__all__ = [
    "close_backends",
    "get_bundle_store",
    "get_db",
    "get_http_client",
    "get_lifecycle_service",
    "get_object_store",
    "get_size_cache",
]
