"""Select concrete metadata/object store implementations from settings."""

from __future__ import annotations

import logging

import httpx
from sqlalchemy.orm import Session

from app.config import Settings
from app.services.bundle_store import BundleStore, SqlBundleStore, UnconfiguredBundleStore
from app.services.d1_store import D1BundleStore
from app.services.memory_storage import InMemoryObjectStore
from app.services.object_store import ObjectStore, UnconfiguredObjectStore
from app.services.r2_storage import R2ObjectStore

logger = logging.getLogger(__name__)


def _missing(settings: Settings, names: dict[str, str]) -> list[str]:
    return [env for attr, env in names.items() if not (getattr(settings, attr) or "").strip()]


def build_object_store(settings: Settings, client: httpx.Client | None = None) -> ObjectStore:
    if settings.storage_backend == "memory":
        return InMemoryObjectStore(page_size=settings.object_list_page_size)

    missing = _missing(
        settings,
        {
            "cloudflare_api_token": "CLOUDFLARE_API_TOKEN",
            "cloudflare_account_id": "CLOUDFLARE_ACCOUNT_ID",
            "r2_bucket_name": "R2_BUCKET_NAME",
        },
    )
    if missing:
        reason = f"R2 storage is not configured; missing {', '.join(missing)}"
        logger.warning(reason)
        return UnconfiguredObjectStore("r2", reason)
    return R2ObjectStore(
        settings.cloudflare_api_token,
        settings.cloudflare_account_id,
        settings.r2_bucket_name,
        base_url=settings.cloudflare_api_base_url,
        page_size=settings.object_list_page_size,
        timeout=settings.backend_timeout_seconds,
        client=client,
    )


def build_bundle_store(
    settings: Settings,
    db: Session | None = None,
    client: httpx.Client | None = None,
) -> BundleStore:
    if settings.metadata_backend == "d1":
        missing = _missing(
            settings,
            {
                "cloudflare_api_token": "CLOUDFLARE_API_TOKEN",
                "cloudflare_account_id": "CLOUDFLARE_ACCOUNT_ID",
                "d1_database_id": "D1_DATABASE_ID",
            },
        )
        if missing:
            return UnconfiguredBundleStore("d1", f"D1 metadata store is not configured; missing {', '.join(missing)}")
        return D1BundleStore(
            settings.cloudflare_api_token,
            settings.cloudflare_account_id,
            settings.d1_database_id,
            base_url=settings.cloudflare_api_base_url,
            timeout=settings.backend_timeout_seconds,
            client=client,
        )

    if not (settings.database_url or "").strip():
        return UnconfiguredBundleStore("sql", "SQL metadata store is not configured; missing DATABASE_URL")
    if db is None:
        return UnconfiguredBundleStore("sql", "SQL metadata store has no database session")
    return SqlBundleStore(db)
