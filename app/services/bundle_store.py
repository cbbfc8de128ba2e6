"""
Bundle Store: metadata backend for bundle records.

Mutations are staged by ``update_bundle``/``delete_bundle`` and only persist
when ``commit_bundle`` succeeds.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.bundle import Bundle, BundlePlatform
from app.schemas.bundles import BundleRecord
from app.services.backend_errors import (
    BackendUnavailable,
    BundleNotFound,
    ConfigurationError,
    InvalidInput,
    MetadataCommitFailure,
)

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset(
    {
        "channel",
        "platform",
        "target_app_version",
        "message",
        "enabled",
        "should_force_update",
        "file_hash",
        "git_commit_hash",
    }
)
DEFAULT_CHANNEL = "production"


def _coerce_platform(value: BundlePlatform | str) -> BundlePlatform:
    try:
        return BundlePlatform(value)
    except ValueError as exc:
        raise InvalidInput(f"Invalid platform {value!r}") from exc


def validate_partial_fields(fields: dict) -> dict:
    if "id" in fields:
        raise InvalidInput("Bundle id is immutable")
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise InvalidInput(f"Unknown bundle fields: {', '.join(sorted(unknown))}")
    if not fields:
        raise InvalidInput("No fields to update")
    cleaned = dict(fields)
    if cleaned.get("platform") is not None:
        cleaned["platform"] = _coerce_platform(cleaned["platform"])
    for required in ("channel", "platform", "target_app_version", "enabled", "should_force_update"):
        if required in cleaned and cleaned[required] is None:
            raise InvalidInput(f"{required} cannot be null")
    return cleaned


def order_channels(channels: set[str]) -> list[str]:
    ordered = sorted(channels)
    if DEFAULT_CHANNEL in channels:
        ordered.remove(DEFAULT_CHANNEL)
        ordered.insert(0, DEFAULT_CHANNEL)
    return ordered


class BundleStore(ABC):
    name = "bundle_store"
    configured = True
    reason: str | None = None

    @abstractmethod
    def get_bundles(
        self,
        channel: str | None = None,
        platform: BundlePlatform | str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[BundleRecord]: ...

    @abstractmethod
    def get_bundle_by_id(self, bundle_id: str) -> BundleRecord | None: ...

    @abstractmethod
    def update_bundle(self, bundle_id: str, fields: dict) -> None: ...

    @abstractmethod
    def delete_bundle(self, bundle_id: str) -> None: ...

    @abstractmethod
    def commit_bundle(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def get_channels(self) -> set[str]: ...


class SqlBundleStore(BundleStore):
    name = "sql"

    def __init__(self, db: Session):
        self.db = db

    def get_bundles(self, channel=None, platform=None, limit=None, offset=None) -> list[BundleRecord]:
        stmt = select(Bundle)
        if channel:
            stmt = stmt.where(Bundle.channel == channel)
        if platform:
            stmt = stmt.where(Bundle.platform == _coerce_platform(platform))
        stmt = stmt.order_by(Bundle.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        try:
            rows = self.db.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise BackendUnavailable(f"Failed to query bundles: {exc}") from exc
        return [BundleRecord.model_validate(row) for row in rows]

    def get_bundle_by_id(self, bundle_id: str) -> BundleRecord | None:
        row = self._get_row(bundle_id)
        return BundleRecord.model_validate(row) if row else None

    def _get_row(self, bundle_id: str) -> Bundle | None:
        try:
            return self.db.get(Bundle, bundle_id)
        except SQLAlchemyError as exc:
            raise BackendUnavailable(f"Failed to load bundle {bundle_id}: {exc}") from exc

    def update_bundle(self, bundle_id: str, fields: dict) -> None:
        cleaned = validate_partial_fields(fields)
        row = self._get_row(bundle_id)
        if row is None:
            raise BundleNotFound(bundle_id)
        for key, value in cleaned.items():
            setattr(row, key, value)

    def delete_bundle(self, bundle_id: str) -> None:
        row = self._get_row(bundle_id)
        if row is None:
            raise BundleNotFound(bundle_id)
        self.db.delete(row)

    def commit_bundle(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Bundle metadata commit failed: %s", exc)
            raise MetadataCommitFailure(f"Failed to commit bundle changes: {exc}") from exc

    def rollback(self) -> None:
        self.db.rollback()

    def get_channels(self) -> set[str]:
        try:
            return set(self.db.scalars(select(Bundle.channel).distinct()).all())
        except SQLAlchemyError as exc:
            raise BackendUnavailable(f"Failed to query channels: {exc}") from exc


class UnconfiguredBundleStore(BundleStore):
    configured = False

    def __init__(self, backend: str, reason: str):
        self.name = backend
        self.reason = reason

    def _fail(self):
        raise ConfigurationError(self.reason or "Metadata store is not configured")

    def get_bundles(self, channel=None, platform=None, limit=None, offset=None) -> list[BundleRecord]:
        self._fail()

    def get_bundle_by_id(self, bundle_id: str) -> BundleRecord | None:
        self._fail()

    def update_bundle(self, bundle_id: str, fields: dict) -> None:
        self._fail()

    def delete_bundle(self, bundle_id: str) -> None:
        self._fail()

    def commit_bundle(self) -> None:
        self._fail()

    def rollback(self) -> None:
        return None

    def get_channels(self) -> set[str]:
        self._fail()
