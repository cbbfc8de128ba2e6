from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from app.api.deps import get_bundle_store, get_object_store
from app.services.bundle_store import BundleStore
from app.services.object_store import ObjectStore

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_check(
    bundles: BundleStore = Depends(get_bundle_store),
    objects: ObjectStore = Depends(get_object_store),
) -> dict:
    checks = {"metadata": bundles.configured, "storage": objects.configured}
    return {
        "status": "ok" if all(checks.values()) else "degraded",
        "checks": checks,
    }


@router.get("/ready")
def readiness() -> dict[str, str]:
    return {
        "status": "ready",
        "timestamp": datetime.now(UTC).isoformat(),
    }
