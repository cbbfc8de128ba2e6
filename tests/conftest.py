import asyncio
import os
import random
import uuid

import httpx
import pytest

# Configure the app for tests BEFORE any app imports.
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["METADATA_BACKEND"] = "sql"
os.environ["STORAGE_BACKEND"] = "memory"
for _name in ("CLOUDFLARE_API_TOKEN", "CLOUDFLARE_ACCOUNT_ID", "R2_BUCKET_NAME", "D1_DATABASE_ID"):
    os.environ.pop(_name, None)

from sqlalchemy import delete  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.db import Base, SessionLocal  # noqa: E402
from app.models.bundle import Bundle, BundlePlatform  # noqa: E402
from app.services.bundle_lifecycle_service import BundleLifecycleService  # noqa: E402
from app.services.bundle_store import SqlBundleStore  # noqa: E402
from app.services.memory_storage import InMemoryObjectStore  # noqa: E402
from app.services.size_cache import SizeCache  # noqa: E402

_test_engine = SessionLocal.kw["bind"]
Base.metadata.create_all(_test_engine)


def _uuid7(unix_ms: int) -> str:
    """Build a UUIDv7 string for the given millisecond timestamp."""
    value = (unix_ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76
    value |= random.getrandbits(12) << 64
    value |= 0b10 << 62
    value |= random.getrandbits(62)
    return str(uuid.UUID(int=value))


class SyncASGIClient:
    def __init__(self, app):
        self._app = app

    async def _request(self, method: str, url: str, **kwargs):
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self._app, raise_app_exceptions=False),
            base_url="http://testserver",
        ) as client:
            return await client.request(method, url, **kwargs)

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def patch(self, url: str, **kwargs):
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)


@pytest.fixture(scope="session")
def engine():
    return _test_engine


@pytest.fixture()
def db_session(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.rollback()
        session.execute(delete(Bundle))
        session.commit()
        session.close()


@pytest.fixture()
def make_bundle(db_session):
    def _make(
        bundle_id: str | None = None,
        channel: str = "production",
        platform: BundlePlatform = BundlePlatform.ios,
        enabled: bool = True,
        **fields,
    ) -> Bundle:
        row = Bundle(
            id=bundle_id or str(uuid.uuid4()),
            channel=channel,
            platform=platform,
            target_app_version=fields.pop("target_app_version", "1.0.0"),
            message=fields.pop("message", "test bundle"),
            enabled=enabled,
            should_force_update=fields.pop("should_force_update", False),
            **fields,
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _make


@pytest.fixture()
def object_store():
    # Small pages so every listing crosses page boundaries.
    return InMemoryObjectStore(page_size=2)


@pytest.fixture()
def bundle_store(db_session):
    return SqlBundleStore(db_session)


@pytest.fixture()
def lifecycle(bundle_store, object_store):
    return BundleLifecycleService(bundle_store, object_store)


@pytest.fixture()
def client(db_session, object_store):
    from app.api.deps import get_db, get_object_store, get_size_cache
    from app.main import app

    size_cache = SizeCache(object_store)
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_size_cache] = lambda: size_cache
    try:
        yield SyncASGIClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_uuid7():
    return _uuid7
