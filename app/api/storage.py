"""Storage API: raw object listing and deletion, and bundle payload sizes."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query

from app.api.deps import get_lifecycle_service, get_size_cache
from app.errors import backend_error_response, outcome_response
from app.schemas.bundles import BundleIdsRequest, ObjectKeyRequest, ObjectKeysRequest
from app.services.backend_errors import BackendError, ConfigurationError
from app.services.bundle_lifecycle_service import BundleLifecycleService
from app.services.size_cache import SizeCache

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/objects")
def list_objects(
    prefix: str = Query(""),
    svc: BundleLifecycleService = Depends(get_lifecycle_service),
):
    try:
        objects = svc.list_objects(prefix)
    except BackendError as exc:
        return backend_error_response(exc)
    return [obj.model_dump(by_alias=True) for obj in objects]


@router.delete("/object")
def delete_object(
    payload: ObjectKeyRequest = Body(...),
    svc: BundleLifecycleService = Depends(get_lifecycle_service),
):
    return outcome_response(svc.delete_object(payload.key))


@router.delete("/objects")
def bulk_delete_objects(
    payload: ObjectKeysRequest = Body(...),
    svc: BundleLifecycleService = Depends(get_lifecycle_service),
):
    return outcome_response(svc.bulk_object_delete(payload.keys))


@router.post("/sizes")
def bundle_sizes(
    payload: BundleIdsRequest,
    cache: SizeCache = Depends(get_size_cache),
):
    try:
        if not cache.object_store.configured:
            raise ConfigurationError(cache.object_store.reason or "Object store is not configured")
        return cache.get_file_sizes(payload.bundle_ids)
    except BackendError as exc:
        return backend_error_response(exc)
