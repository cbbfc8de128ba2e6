from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from app.models.bundle import BundlePlatform


def bundle_created_at(bundle_id: str) -> datetime | None:
    """Creation time encoded in a UUIDv7 bundle id, or None for other id shapes."""
    try:
        parsed = uuid.UUID(bundle_id)
    except (ValueError, TypeError, AttributeError):
        return None
    if parsed.version != 7:
        return None
    millis = parsed.int >> 80
    return datetime.fromtimestamp(millis / 1000, tz=UTC)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BundleRecord(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    channel: str
    platform: BundlePlatform
    target_app_version: str
    message: str | None = None
    enabled: bool = True
    should_force_update: bool = False
    file_hash: str | None = None
    git_commit_hash: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def created_at(self) -> datetime | None:
        return bundle_created_at(self.id)


class BundleUpdate(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    channel: str | None = Field(default=None, min_length=1, max_length=120)
    platform: BundlePlatform | None = None
    target_app_version: str | None = Field(default=None, min_length=1, max_length=60)
    message: str | None = None
    enabled: bool | None = None
    should_force_update: bool | None = None
    file_hash: str | None = None
    git_commit_hash: str | None = None

    def to_fields(self) -> dict:
        return self.model_dump(exclude_unset=True)


class BundleIdsRequest(_CamelModel):
    bundle_ids: list[str]


class ObjectKeyRequest(BaseModel):
    key: str


class ObjectKeysRequest(BaseModel):
    keys: list[str]


class StoredObject(_CamelModel):
    key: str
    size: int = 0


# Outcomes. These are returned as response bodies, never raised.


class ObjectDeleteResult(_CamelModel):
    key: str
    success: bool
    error: str | None = None


class BulkObjectDeleteResult(_CamelModel):
    success: bool
    total_objects: int
    deleted_objects: int
    results: list[ObjectDeleteResult] = Field(default_factory=list)
    message: str | None = None
    error: str | None = None
    error_kind: str | None = None


class OperationResult(_CamelModel):
    success: bool
    message: str | None = None
    error: str | None = None
    error_kind: str | None = None


class SoftDeleteResult(OperationResult):
    partial_success: bool | None = None
    storage_error: str | None = None


class StorageCleanupResult(_CamelModel):
    deleted_objects: int = 0
    total_objects: int = 0
    skipped: bool = False
    results: list[ObjectDeleteResult] = Field(default_factory=list)


class CompleteDeleteResult(SoftDeleteResult):
    storage_result: StorageCleanupResult | None = None


class PurgeResult(CompleteDeleteResult):
    purged: bool = False


class DeletionOutcome(_CamelModel):
    bundle_id: str
    metadata_success: bool
    storage_success: bool
    error: str | None = None


class BulkDeleteResult(OperationResult):
    total: int = 0
    metadata_success_count: int = 0
    storage_success_count: int = 0
    per_item: list[DeletionOutcome] = Field(default_factory=list)
    storage_result: BulkObjectDeleteResult | None = None


class BackendStatus(_CamelModel):
    backend: str
    configured: bool
    reason: str | None = None


class ConsoleConfigRead(_CamelModel):
    metadata: BackendStatus
    storage: BackendStatus
    default_bundle_filename: str
