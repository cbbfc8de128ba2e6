"""
D1 Store: bundle metadata in a Cloudflare D1 database via the REST query API.

Updates and deletions are buffered per bundle and written at commit time,
one statement per bundle.
"""

from __future__ import annotations

import enum
import logging
from typing import Any

import httpx

from app.models.bundle import BundlePlatform
from app.schemas.bundles import BundleRecord
from app.services.backend_errors import (
    BackendUnavailable,
    BundleNotFound,
    InvalidInput,
    MetadataCommitFailure,
)
from app.services.bundle_store import BundleStore, validate_partial_fields
from app.services.r2_storage import DEFAULT_API_BASE_URL, TIMEOUT_SECONDS, cloudflare_error_message

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "channel",
    "platform",
    "target_app_version",
    "message",
    "enabled",
    "should_force_update",
    "file_hash",
    "git_commit_hash",
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM bundles"


def _to_param(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _row_to_record(row: dict) -> BundleRecord:
    return BundleRecord(
        id=row["id"],
        channel=row["channel"],
        platform=row["platform"],
        target_app_version=row["target_app_version"],
        message=row.get("message"),
        enabled=bool(row.get("enabled")),
        should_force_update=bool(row.get("should_force_update")),
        file_hash=row.get("file_hash"),
        git_commit_hash=row.get("git_commit_hash"),
    )


class D1BundleStore(BundleStore):
    name = "d1"

    def __init__(
        self,
        api_token: str,
        account_id: str,
        database_id: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self.database_id = database_id
        self._client = client or httpx.Client(timeout=timeout)
        self._url = f"{base_url.rstrip('/')}/accounts/{account_id}/d1/database/{database_id}/query"
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }
        # bundle id -> staged field changes, or None for a staged deletion
        self._pending: dict[str, dict | None] = {}

    def query(self, sql: str, params: list | None = None) -> list[dict]:
        try:
            resp = self._client.post(
                self._url,
                json={"sql": sql, "params": params or []},
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"D1 request failed: {exc}") from exc
        if not resp.is_success:
            raise BackendUnavailable(
                f"D1 query failed: {cloudflare_error_message(resp)}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise BackendUnavailable("D1 returned a non-JSON response") from exc
        if not data.get("success", False):
            raise BackendUnavailable(f"D1 query failed: {cloudflare_error_message(resp)}")
        rows: list[dict] = []
        for statement in data.get("result") or []:
            rows.extend(statement.get("results") or [])
        return rows

    def get_bundles(self, channel=None, platform=None, limit=None, offset=None) -> list[BundleRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if channel:
            clauses.append("channel = ?")
            params.append(channel)
        if platform:
            try:
                params.append(BundlePlatform(platform).value)
            except ValueError as exc:
                raise InvalidInput(f"Invalid platform {platform!r}") from exc
            clauses.append("platform = ?")
        sql = _SELECT
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
            if offset:
                sql += " OFFSET ?"
                params.append(offset)
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(offset)
        return [_row_to_record(row) for row in self.query(sql, params)]

    def get_bundle_by_id(self, bundle_id: str) -> BundleRecord | None:
        rows = self.query(f"{_SELECT} WHERE id = ? LIMIT 1", [bundle_id])
        return _row_to_record(rows[0]) if rows else None

    def update_bundle(self, bundle_id: str, fields: dict) -> None:
        cleaned = validate_partial_fields(fields)
        if bundle_id in self._pending:
            staged = self._pending[bundle_id]
            if staged is None:
                raise BundleNotFound(bundle_id)
            staged.update(cleaned)
            return
        if self.get_bundle_by_id(bundle_id) is None:
            raise BundleNotFound(bundle_id)
        self._pending[bundle_id] = cleaned

    def delete_bundle(self, bundle_id: str) -> None:
        if self._pending.get(bundle_id, {}) is None:
            return
        if bundle_id not in self._pending and self.get_bundle_by_id(bundle_id) is None:
            raise BundleNotFound(bundle_id)
        self._pending[bundle_id] = None

    def commit_bundle(self) -> None:
        for bundle_id in list(self._pending):
            staged = self._pending[bundle_id]
            if staged is None:
                sql = "DELETE FROM bundles WHERE id = ?"
                params = [bundle_id]
            else:
                assignments = ", ".join(f"{column} = ?" for column in staged)
                sql = f"UPDATE bundles SET {assignments} WHERE id = ?"
                params = [_to_param(v) for v in staged.values()] + [bundle_id]
            try:
                self.query(sql, params)
            except BackendUnavailable as exc:
                logger.error("D1 commit failed for bundle %s: %s", bundle_id, exc.message)
                raise MetadataCommitFailure(f"Failed to commit bundle {bundle_id}: {exc.message}") from exc
            del self._pending[bundle_id]

    def rollback(self) -> None:
        self._pending.clear()

    def get_channels(self) -> set[str]:
        rows = self.query("SELECT DISTINCT channel FROM bundles")
        return {row["channel"] for row in rows if row.get("channel")}
