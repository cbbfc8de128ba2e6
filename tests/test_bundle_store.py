"""Tests for the SQL bundle metadata store."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from app.models.bundle import Bundle, BundlePlatform
from app.schemas.bundles import BundleRecord, bundle_created_at
from app.services.backend_errors import BundleNotFound, InvalidInput
from app.services.bundle_store import order_channels, validate_partial_fields


def test_get_bundles_filters_and_orders(bundle_store, make_bundle):
    make_bundle("0001", channel="production", platform=BundlePlatform.ios)
    make_bundle("0002", channel="beta", platform=BundlePlatform.ios)
    make_bundle("0003", channel="production", platform=BundlePlatform.android)
    make_bundle("0004", channel="production", platform=BundlePlatform.ios)

    all_ids = [b.id for b in bundle_store.get_bundles()]
    production_ios = [b.id for b in bundle_store.get_bundles(channel="production", platform="ios")]

    assert all_ids == ["0004", "0003", "0002", "0001"]
    assert production_ios == ["0004", "0001"]


def test_get_bundles_paginates(bundle_store, make_bundle):
    for i in range(5):
        make_bundle(f"000{i}")

    page = bundle_store.get_bundles(limit=2, offset=1)

    assert [b.id for b in page] == ["0003", "0002"]


def test_get_bundles_rejects_unknown_platform(bundle_store):
    with pytest.raises(InvalidInput, match="platform"):
        bundle_store.get_bundles(platform="windows")


def test_get_bundle_by_id(bundle_store, make_bundle):
    make_bundle("b1", message="hello", file_hash="abc")

    record = bundle_store.get_bundle_by_id("b1")

    assert isinstance(record, BundleRecord)
    assert record.message == "hello"
    assert record.file_hash == "abc"
    assert bundle_store.get_bundle_by_id("missing") is None


def test_update_is_staged_until_commit(bundle_store, db_session, make_bundle):
    make_bundle("b1", enabled=True)

    bundle_store.update_bundle("b1", {"enabled": False})
    bundle_store.rollback()

    assert db_session.get(Bundle, "b1").enabled is True

    bundle_store.update_bundle("b1", {"enabled": False, "message": "off"})
    bundle_store.commit_bundle()
    db_session.expire_all()

    row = db_session.get(Bundle, "b1")
    assert row.enabled is False
    assert row.message == "off"


def test_update_unknown_bundle(bundle_store):
    with pytest.raises(BundleNotFound):
        bundle_store.update_bundle("missing", {"enabled": False})


@pytest.mark.parametrize(
    "fields, match",
    [
        ({"id": "other"}, "immutable"),
        ({"color": "red"}, "Unknown"),
        ({}, "No fields"),
        ({"channel": None}, "channel cannot be null"),
        ({"platform": "windows"}, "platform"),
    ],
)
def test_validate_partial_fields_rejects(fields, match):
    with pytest.raises(InvalidInput, match=match):
        validate_partial_fields(fields)


def test_validate_partial_fields_coerces_platform():
    assert validate_partial_fields({"platform": "android"}) == {"platform": BundlePlatform.android}


def test_delete_bundle_removes_row_on_commit(bundle_store, db_session, make_bundle):
    make_bundle("b1")

    bundle_store.delete_bundle("b1")
    bundle_store.commit_bundle()

    assert db_session.get(Bundle, "b1") is None
    with pytest.raises(BundleNotFound):
        bundle_store.delete_bundle("b1")


def test_get_channels_and_ordering(bundle_store, make_bundle):
    make_bundle("b1", channel="staging")
    make_bundle("b2", channel="production")
    make_bundle("b3", channel="beta")
    make_bundle("b4", channel="beta")

    channels = bundle_store.get_channels()

    assert channels == {"staging", "production", "beta"}
    assert order_channels(channels) == ["production", "beta", "staging"]
    assert order_channels({"qa", "beta"}) == ["beta", "qa"]


def test_created_at_comes_from_uuid7_id(bundle_store, make_bundle, make_uuid7):
    millis = 1_700_000_000_123
    bundle_id = make_uuid7(millis)
    make_bundle(bundle_id)

    record = bundle_store.get_bundle_by_id(bundle_id)

    assert record.created_at == datetime.fromtimestamp(millis / 1000, tz=UTC)
    assert record.model_dump(mode="json", by_alias=True)["createdAt"].startswith("2023-11-14T22:13:20.123")


def test_created_at_is_none_for_other_ids():
    assert bundle_created_at("not-a-uuid") is None
    assert bundle_created_at("6f1c1b9e-3b0a-4c53-9a6e-2b0c8d7f4e11") is None
