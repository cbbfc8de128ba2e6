"""Console API: backend configuration and channel list for the admin console."""

from fastapi import APIRouter, Depends

from app.api.deps import get_bundle_store, get_object_store
from app.config import settings
from app.errors import backend_error_response
from app.schemas.bundles import BackendStatus, ConsoleConfigRead
from app.services.backend_errors import BackendError, ConfigurationError
from app.services.bundle_store import BundleStore, order_channels
from app.services.object_store import ObjectStore

router = APIRouter(tags=["console"])


def backend_status(bundles: BundleStore, objects: ObjectStore) -> ConsoleConfigRead:
    return ConsoleConfigRead(
        metadata=BackendStatus(backend=bundles.name, configured=bundles.configured, reason=bundles.reason),
        storage=BackendStatus(backend=objects.name, configured=objects.configured, reason=objects.reason),
        default_bundle_filename=settings.default_bundle_filename,
    )


@router.get("/config")
def console_config(
    bundles: BundleStore = Depends(get_bundle_store),
    objects: ObjectStore = Depends(get_object_store),
):
    return backend_status(bundles, objects).model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/channels")
def list_channels(bundles: BundleStore = Depends(get_bundle_store)):
    try:
        if not bundles.configured:
            raise ConfigurationError(bundles.reason or "Metadata store is not configured")
        channels = bundles.get_channels()
    except BackendError as exc:
        return backend_error_response(exc)
    return order_channels(channels)
