"""Bundles API: list, edit, disable and delete OTA bundles."""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query

from app.api.deps import get_bundle_store, get_lifecycle_service
from app.errors import backend_error_response, outcome_response
from app.models.bundle import BundlePlatform
from app.schemas.bundles import BundleIdsRequest, BundleUpdate
from app.services.backend_errors import BackendError, ConfigurationError
from app.services.bundle_lifecycle_service import BundleLifecycleService
from app.services.bundle_store import BundleStore

router = APIRouter(prefix="/bundles", tags=["bundles"])


@router.get("")
def list_bundles(
    channel: str | None = None,
    platform: BundlePlatform | None = None,
    limit: int | None = Query(None, ge=1, le=1000),
    offset: int | None = Query(None, ge=0),
    bundles: BundleStore = Depends(get_bundle_store),
):
    try:
        if not bundles.configured:
            raise ConfigurationError(bundles.reason or "Metadata store is not configured")
        records = bundles.get_bundles(channel=channel, platform=platform, limit=limit, offset=offset)
    except BackendError as exc:
        return backend_error_response(exc)
    return [r.model_dump(mode="json", by_alias=True) for r in records]


@router.post("/bulk-delete")
def bulk_delete_bundles(
    payload: BundleIdsRequest,
    svc: BundleLifecycleService = Depends(get_lifecycle_service),
):
    return outcome_response(svc.bulk_delete(payload.bundle_ids))


@router.get("/{bundle_id}")
def get_bundle(bundle_id: str, bundles: BundleStore = Depends(get_bundle_store)):
    try:
        if not bundles.configured:
            raise ConfigurationError(bundles.reason or "Metadata store is not configured")
        record = bundles.get_bundle_by_id(bundle_id)
    except BackendError as exc:
        return backend_error_response(exc)
    return record.model_dump(mode="json", by_alias=True) if record else None


@router.patch("/{bundle_id}")
def update_bundle(
    bundle_id: str,
    payload: BundleUpdate = Body(...),
    svc: BundleLifecycleService = Depends(get_lifecycle_service),
):
    return outcome_response(svc.update_bundle(bundle_id, payload.to_fields()))


@router.delete("/{bundle_id}")
def delete_bundle(bundle_id: str, svc: BundleLifecycleService = Depends(get_lifecycle_service)):
    return outcome_response(svc.delete_bundle(bundle_id))


@router.post("/{bundle_id}/disable")
def disable_bundle(bundle_id: str, svc: BundleLifecycleService = Depends(get_lifecycle_service)):
    return outcome_response(svc.disable_bundle(bundle_id))


@router.post("/{bundle_id}/complete-delete")
def complete_delete_bundle(bundle_id: str, svc: BundleLifecycleService = Depends(get_lifecycle_service)):
    return outcome_response(svc.complete_delete(bundle_id))


@router.post("/{bundle_id}/purge")
def purge_bundle(
    bundle_id: str,
    confirm: str | None = Query(None),
    svc: BundleLifecycleService = Depends(get_lifecycle_service),
):
    return outcome_response(svc.purge_bundle(bundle_id, confirm))
