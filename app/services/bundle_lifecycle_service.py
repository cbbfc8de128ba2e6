"""
Bundle Lifecycle Service: disable, delete and purge bundles across the
metadata store and the object store.

The two stores share no transaction. Metadata is the primary effect: a
storage failure never blocks the metadata change and is reported as partial
success, while a metadata failure fails the operation. Every public method
returns an outcome model instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from app.metrics import observe_operation
from app.schemas.bundles import (
    BulkDeleteResult,
    BulkObjectDeleteResult,
    CompleteDeleteResult,
    DeletionOutcome,
    OperationResult,
    PurgeResult,
    SoftDeleteResult,
    StorageCleanupResult,
    StoredObject,
)
from app.services.backend_errors import BackendError, BundleNotFound, ConfigurationError, InvalidInput
from app.services.bundle_store import BundleStore
from app.services.object_store import (
    DEFAULT_BUNDLE_FILENAME,
    ObjectStore,
    bundle_prefix,
    object_key,
)

logger = logging.getLogger(__name__)


def _clean_id(bundle_id: str | None) -> str:
    if not isinstance(bundle_id, str) or not bundle_id.strip():
        raise InvalidInput("Bundle id is required")
    bundle_id = bundle_id.strip()
    if "/" in bundle_id:
        raise InvalidInput(f"Invalid bundle id {bundle_id!r}")
    return bundle_id


def _clean_ids(bundle_ids: Iterable[str] | None) -> list[str]:
    if bundle_ids is None or isinstance(bundle_ids, str):
        raise InvalidInput("bundleIds must be a list of bundle ids")
    ids = [_clean_id(bundle_id) for bundle_id in bundle_ids]
    if not ids:
        raise InvalidInput("bundleIds must not be empty")
    return ids


def _failed_cleanup_errors(cleanup: BulkObjectDeleteResult) -> str:
    return "; ".join(f"{r.key}: {r.error}" for r in cleanup.results if not r.success)


class BundleLifecycleService:
    def __init__(
        self,
        bundles: BundleStore,
        objects: ObjectStore,
        default_filename: str = DEFAULT_BUNDLE_FILENAME,
    ):
        self.bundles = bundles
        self.objects = objects
        self.default_filename = default_filename

    # -- helpers ---------------------------------------------------------

    def _require_metadata(self) -> None:
        if not self.bundles.configured:
            raise ConfigurationError(self.bundles.reason or "Metadata store is not configured")

    def _require_storage(self) -> None:
        if not self.objects.configured:
            raise ConfigurationError(self.objects.reason or "Object store is not configured")

    def _apply(self, bundle_id: str, fields: dict) -> None:
        """Stage ``fields`` and commit; discard the staged change on failure."""
        try:
            self.bundles.update_bundle(bundle_id, fields)
            self.bundles.commit_bundle()
        except BackendError:
            self.bundles.rollback()
            raise

    def _disable(self, bundle_id: str) -> None:
        self._apply(bundle_id, {"enabled": False})

    def _stored_keys(self, bundle_id: str) -> list[str]:
        keys = [obj.key for obj in self.objects.list_by_prefix(bundle_prefix(bundle_id))]
        return keys or [object_key(bundle_id, self.default_filename)]

    # -- metadata-only operations -----------------------------------------

    def disable_bundle(self, bundle_id: str) -> OperationResult:
        try:
            bundle_id = _clean_id(bundle_id)
            self._require_metadata()
            self._disable(bundle_id)
        except BackendError as exc:
            logger.error("Failed to disable bundle %s: %s", bundle_id, exc.message)
            observe_operation("disable", success=False)
            return OperationResult(success=False, error=exc.message, error_kind=exc.kind)
        logger.info("Disabled bundle %s", bundle_id)
        observe_operation("disable", success=True)
        return OperationResult(success=True, message=f"Bundle {bundle_id} disabled")

    def update_bundle(self, bundle_id: str, fields: dict) -> OperationResult:
        try:
            bundle_id = _clean_id(bundle_id)
            self._require_metadata()
            self._apply(bundle_id, fields)
        except BackendError as exc:
            logger.warning("Failed to update bundle %s: %s", bundle_id, exc.message)
            observe_operation("update", success=False)
            return OperationResult(success=False, error=exc.message, error_kind=exc.kind)
        logger.info("Updated bundle %s fields: %s", bundle_id, ", ".join(sorted(fields)))
        observe_operation("update", success=True)
        return OperationResult(success=True, message=f"Bundle {bundle_id} updated")

    # -- delete paths ------------------------------------------------------

    def delete_bundle(self, bundle_id: str) -> SoftDeleteResult:
        """Soft delete: remove the default payload object, then disable the row."""
        try:
            bundle_id = _clean_id(bundle_id)
            self._require_metadata()
        except BackendError as exc:
            observe_operation("delete", success=False)
            return SoftDeleteResult(success=False, error=exc.message, error_kind=exc.kind)

        storage_error: str | None = None
        try:
            self._require_storage()
            self.objects.delete_object(object_key(bundle_id, self.default_filename))
        except BackendError as exc:
            storage_error = exc.message
            logger.warning("Storage delete failed for bundle %s: %s", bundle_id, exc.message)

        try:
            self._disable(bundle_id)
        except BackendError as exc:
            logger.error("Failed to disable bundle %s during delete: %s", bundle_id, exc.message)
            observe_operation("delete", success=False)
            return SoftDeleteResult(
                success=False,
                error=exc.message,
                error_kind=exc.kind,
                storage_error=storage_error,
            )

        if storage_error:
            observe_operation("delete", success=True, partial=True)
            return SoftDeleteResult(
                success=True,
                partial_success=True,
                storage_error=storage_error,
                message=f"Bundle {bundle_id} disabled, but its stored payload could not be deleted",
            )
        logger.info("Deleted bundle %s", bundle_id)
        observe_operation("delete", success=True)
        return SoftDeleteResult(success=True, message=f"Bundle {bundle_id} deleted")

    def complete_delete(self, bundle_id: str) -> CompleteDeleteResult:
        """Disable the row, then remove every object under the bundle prefix."""
        try:
            bundle_id = _clean_id(bundle_id)
            self._require_metadata()
            self._disable(bundle_id)
        except BackendError as exc:
            logger.error("Complete delete of bundle %s failed: %s", bundle_id, exc.message)
            observe_operation("complete_delete", success=False)
            return CompleteDeleteResult(success=False, error=exc.message, error_kind=exc.kind)

        if not self.objects.configured:
            logger.warning("Skipping storage cleanup for bundle %s: %s", bundle_id, self.objects.reason)
            observe_operation("complete_delete", success=True, partial=True)
            return CompleteDeleteResult(
                success=True,
                message=f"Bundle {bundle_id} disabled; storage cleanup skipped ({self.objects.reason})",
                storage_result=StorageCleanupResult(skipped=True),
            )

        try:
            keys = [obj.key for obj in self.objects.list_by_prefix(bundle_prefix(bundle_id))]
        except BackendError as exc:
            logger.warning("Could not list objects for bundle %s: %s", bundle_id, exc.message)
            observe_operation("complete_delete", success=True, partial=True)
            return CompleteDeleteResult(
                success=True,
                partial_success=True,
                storage_error=exc.message,
                message=f"Bundle {bundle_id} disabled, but its stored objects could not be listed",
                storage_result=StorageCleanupResult(),
            )

        if not keys:
            observe_operation("complete_delete", success=True)
            return CompleteDeleteResult(
                success=True,
                message=f"Bundle {bundle_id} disabled; no stored objects to delete",
                storage_result=StorageCleanupResult(),
            )

        cleanup = self.objects.bulk_delete(keys)
        partial = cleanup.deleted_objects < cleanup.total_objects
        observe_operation("complete_delete", success=True, partial=partial)
        logger.info(
            "Complete delete of bundle %s removed %d/%d objects",
            bundle_id,
            cleanup.deleted_objects,
            cleanup.total_objects,
        )
        return CompleteDeleteResult(
            success=True,
            partial_success=True if partial else None,
            storage_error=_failed_cleanup_errors(cleanup) if partial else None,
            message=(
                f"Bundle {bundle_id} disabled, "
                f"{cleanup.deleted_objects}/{cleanup.total_objects} stored objects deleted"
            ),
            storage_result=StorageCleanupResult(
                deleted_objects=cleanup.deleted_objects,
                total_objects=cleanup.total_objects,
                results=cleanup.results,
            ),
        )

    def purge_bundle(self, bundle_id: str, confirm: str | None) -> PurgeResult:
        """Hard delete: remove stored objects and the metadata row itself.

        ``confirm`` must repeat the bundle id. When storage cleanup is not
        complete the row is only disabled, so its objects stay discoverable
        by prefix for a later retry.
        """
        try:
            bundle_id = _clean_id(bundle_id)
            if confirm != bundle_id:
                raise InvalidInput("Purging a bundle requires confirm to repeat the bundle id")
            self._require_metadata()
            self._require_storage()
            if self.bundles.get_bundle_by_id(bundle_id) is None:
                raise BundleNotFound(bundle_id)
        except BackendError as exc:
            observe_operation("purge", success=False)
            return PurgeResult(success=False, error=exc.message, error_kind=exc.kind)

        storage_error: str | None = None
        storage_result: StorageCleanupResult | None = None
        try:
            cleanup = self.objects.bulk_delete(self._stored_keys(bundle_id))
        except BackendError as exc:
            storage_error = exc.message
        else:
            storage_result = StorageCleanupResult(
                deleted_objects=cleanup.deleted_objects,
                total_objects=cleanup.total_objects,
                results=cleanup.results,
            )
            if cleanup.deleted_objects < cleanup.total_objects:
                storage_error = _failed_cleanup_errors(cleanup)

        try:
            if storage_error:
                self._disable(bundle_id)
            else:
                self.bundles.delete_bundle(bundle_id)
                self.bundles.commit_bundle()
        except BackendError as exc:
            self.bundles.rollback()
            logger.error("Purge of bundle %s failed at metadata: %s", bundle_id, exc.message)
            observe_operation("purge", success=False)
            return PurgeResult(
                success=False,
                error=exc.message,
                error_kind=exc.kind,
                storage_error=storage_error,
                storage_result=storage_result,
            )

        if storage_error:
            logger.warning("Purge of bundle %s left stored objects behind: %s", bundle_id, storage_error)
            observe_operation("purge", success=True, partial=True)
            return PurgeResult(
                success=True,
                partial_success=True,
                purged=False,
                storage_error=storage_error,
                storage_result=storage_result,
                message=f"Bundle {bundle_id} disabled but not purged; stored objects could not be removed",
            )
        logger.info("Purged bundle %s", bundle_id)
        observe_operation("purge", success=True)
        return PurgeResult(
            success=True,
            purged=True,
            storage_result=storage_result,
            message=f"Bundle {bundle_id} purged",
        )

    def bulk_delete(self, bundle_ids: Iterable[str]) -> BulkDeleteResult:
        """Disable each bundle in order, then delete all their objects in one batch.

        ``success`` is true when at least one bundle succeeded at either
        layer, even if most of the batch failed; callers must read the
        per-layer counts and ``perItem`` to see the real picture.
        """
        try:
            ids = _clean_ids(bundle_ids)
            self._require_metadata()
        except BackendError as exc:
            observe_operation("bulk_delete", success=False)
            return BulkDeleteResult(success=False, error=exc.message, error_kind=exc.kind)

        metadata_ok: dict[int, bool] = {}
        errors: dict[int, list[str]] = {i: [] for i in range(len(ids))}
        first_kind: str | None = None
        for i, bundle_id in enumerate(ids):
            try:
                self._disable(bundle_id)
            except BackendError as exc:
                metadata_ok[i] = False
                errors[i].append(exc.message)
                first_kind = first_kind or exc.kind
                logger.warning("Bulk delete could not disable bundle %s: %s", bundle_id, exc.message)
            else:
                metadata_ok[i] = True

        storage_ok: dict[int, bool] = {i: False for i in range(len(ids))}
        storage_result: BulkObjectDeleteResult | None = None
        if not self.objects.configured:
            for i in range(len(ids)):
                errors[i].append(self.objects.reason or "Object store is not configured")
        else:
            keys_by_item: dict[int, list[str]] = {}
            for i, bundle_id in enumerate(ids):
                try:
                    keys_by_item[i] = self._stored_keys(bundle_id)
                except BackendError as exc:
                    errors[i].append(exc.message)
                    first_kind = first_kind or exc.kind
            all_keys = list(dict.fromkeys(k for keys in keys_by_item.values() for k in keys))
            if all_keys:
                storage_result = self.objects.bulk_delete(all_keys)
                by_key = {r.key: r for r in storage_result.results}
                for i, keys in keys_by_item.items():
                    failed = [by_key[k] for k in keys if not by_key[k].success]
                    storage_ok[i] = not failed
                    errors[i].extend(f"{r.key}: {r.error}" for r in failed)
                    if failed:
                        first_kind = first_kind or "backend_unavailable"

        per_item = [
            DeletionOutcome(
                bundle_id=bundle_id,
                metadata_success=metadata_ok[i],
                storage_success=storage_ok[i],
                error="; ".join(errors[i]) or None,
            )
            for i, bundle_id in enumerate(ids)
        ]
        metadata_count = sum(1 for item in per_item if item.metadata_success)
        storage_count = sum(1 for item in per_item if item.storage_success)
        total = len(ids)
        success = metadata_count > 0 or storage_count > 0
        partial = success and (metadata_count < total or storage_count < total)
        observe_operation("bulk_delete", success=success, partial=partial)
        logger.info(
            "Bulk delete of %d bundles: metadata %d/%d, storage %d/%d",
            total,
            metadata_count,
            total,
            storage_count,
            total,
        )
        return BulkDeleteResult(
            success=success,
            message=(
                f"Disabled {metadata_count}/{total} bundles; "
                f"removed stored objects for {storage_count}/{total} bundles"
            ),
            error=None if success else "No bundle could be deleted",
            error_kind=None if success else first_kind,
            total=total,
            metadata_success_count=metadata_count,
            storage_success_count=storage_count,
            per_item=per_item,
            storage_result=storage_result,
        )

    # -- raw storage operations ---------------------------------------------

    def list_objects(self, prefix: str) -> list[StoredObject]:
        """List objects under ``prefix``; raises BackendError on failure."""
        self._require_storage()
        return list(self.objects.list_by_prefix(prefix or ""))

    def delete_object(self, key: str) -> OperationResult:
        try:
            if not key or not key.strip():
                raise InvalidInput("Object key is required")
            self._require_storage()
            self.objects.delete_object(key)
        except BackendError as exc:
            return OperationResult(success=False, error=exc.message, error_kind=exc.kind)
        return OperationResult(success=True, message=f"Object {key} deleted")

    def bulk_object_delete(self, keys: Iterable[str] | None) -> BulkObjectDeleteResult:
        try:
            if keys is None or isinstance(keys, str):
                raise InvalidInput("keys must be a list of object keys")
            keys = list(keys)
            if not keys or any(not isinstance(k, str) or not k.strip() for k in keys):
                raise InvalidInput("keys must be a non-empty list of object keys")
            self._require_storage()
        except BackendError as exc:
            return BulkObjectDeleteResult(
                success=False,
                total_objects=0,
                deleted_objects=0,
                error=exc.message,
                error_kind=exc.kind,
            )
        return self.objects.bulk_delete(keys)
