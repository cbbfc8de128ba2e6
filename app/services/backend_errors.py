"""Failure kinds shared by the storage adapters and the bundle lifecycle service."""

from __future__ import annotations


class BackendError(Exception):
    kind = "backend_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(BackendError):
    kind = "configuration_error"


class BackendUnavailable(BackendError):
    kind = "backend_unavailable"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ObjectNotFound(BackendError):
    kind = "not_found"


class BundleNotFound(BackendError):
    kind = "bundle_not_found"

    def __init__(self, bundle_id: str):
        self.bundle_id = bundle_id
        super().__init__(f"Bundle {bundle_id} not found")


class MetadataCommitFailure(BackendError):
    kind = "metadata_commit_failure"


class InvalidInput(BackendError):
    kind = "validation_error"
