"""Tests for settings validation and backend selection."""

from __future__ import annotations

import httpx
import pytest
from pydantic import ValidationError

from app.config import Settings
from app.services.backends import build_bundle_store, build_object_store
from app.services.bundle_store import SqlBundleStore
from app.services.d1_store import D1BundleStore
from app.services.memory_storage import InMemoryObjectStore
from app.services.r2_storage import R2ObjectStore

CLOUDFLARE = {
    "cloudflare_api_token": "token",
    "cloudflare_account_id": "acct",
}


def _settings(**overrides) -> Settings:
    base = {
        "database_url": None,
        "cloudflare_api_token": None,
        "cloudflare_account_id": None,
        "r2_bucket_name": None,
        "d1_database_id": None,
    }
    base.update(overrides)
    return Settings(**base)


def test_memory_storage_backend():
    store = build_object_store(_settings(storage_backend="memory", object_list_page_size=25))

    assert isinstance(store, InMemoryObjectStore)
    assert store.page_size == 25


def test_r2_backend_when_configured():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})))

    store = build_object_store(
        _settings(storage_backend="r2", r2_bucket_name="ota-bundles", **CLOUDFLARE),
        client=client,
    )

    assert isinstance(store, R2ObjectStore)
    assert store.configured is True
    assert store.bucket_name == "ota-bundles"


def test_r2_backend_reports_missing_settings():
    store = build_object_store(_settings(storage_backend="r2", cloudflare_api_token="token"))

    assert store.configured is False
    assert store.name == "r2"
    assert "CLOUDFLARE_ACCOUNT_ID" in store.reason
    assert "R2_BUCKET_NAME" in store.reason
    assert "CLOUDFLARE_API_TOKEN" not in store.reason


def test_d1_metadata_backend():
    store = build_bundle_store(_settings(metadata_backend="d1", d1_database_id="db-1", **CLOUDFLARE))

    assert isinstance(store, D1BundleStore)


def test_d1_metadata_backend_missing_database_id():
    store = build_bundle_store(_settings(metadata_backend="d1", **CLOUDFLARE))

    assert store.configured is False
    assert "D1_DATABASE_ID" in store.reason


def test_sql_metadata_backend(db_session):
    store = build_bundle_store(_settings(database_url="sqlite+pysqlite:///:memory:"), db_session)

    assert isinstance(store, SqlBundleStore)


def test_sql_metadata_backend_without_url(db_session):
    store = build_bundle_store(_settings(), db_session)

    assert store.configured is False
    assert "DATABASE_URL" in store.reason


@pytest.mark.parametrize("field", ["metadata_backend", "storage_backend"])
def test_unknown_backend_names_are_rejected(field):
    with pytest.raises(ValidationError, match="must be one of"):
        _settings(**{field: "s3"})


def test_backend_names_are_normalized():
    settings = _settings(metadata_backend=" D1 ", storage_backend="Memory")

    assert settings.metadata_backend == "d1"
    assert settings.storage_backend == "memory"


def test_close_backends_closes_shared_client():
    from app.api import deps

    client = deps.get_http_client()
    store = deps.get_object_store()

    deps.close_backends()

    assert client.is_closed
    assert deps.get_object_store() is not store
    deps.close_backends()
