"""
R2 Storage: Cloudflare R2 object store over the Cloudflare REST API.

Listing follows ``result_info.cursor`` until the backend stops reporting a
truncated page. Deleting an absent key is treated as success.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from app.schemas.bundles import StoredObject
from app.services.backend_errors import BackendUnavailable, ObjectNotFound
from app.services.object_store import ObjectPage, ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.cloudflare.com/client/v4"
TIMEOUT_SECONDS = 30

# Cloudflare API error code for "The specified key does not exist."
_R2_NO_SUCH_KEY = 10007


def cloudflare_error_message(resp: httpx.Response) -> str:
    """Join the ``errors[].message`` list of a Cloudflare API response."""
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        messages = [str(e.get("message")) for e in data.get("errors") or [] if isinstance(e, dict) and e.get("message")]
        if messages:
            return ", ".join(messages)
    reason = resp.reason_phrase or (resp.text[:200] if resp.text else "")
    return f"HTTP {resp.status_code} {reason}".strip()


def _error_codes(resp: httpx.Response) -> set[int]:
    try:
        data = resp.json()
    except ValueError:
        return set()
    if not isinstance(data, dict):
        return set()
    codes = set()
    for err in data.get("errors") or []:
        if isinstance(err, dict) and isinstance(err.get("code"), int):
            codes.add(err["code"])
    return codes


class R2ObjectStore(ObjectStore):
    name = "r2"

    def __init__(
        self,
        api_token: str,
        account_id: str,
        bucket_name: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        page_size: int = 1000,
        timeout: float = TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ):
        self.account_id = account_id
        self.bucket_name = bucket_name
        self.page_size = page_size
        self._client = client or httpx.Client(timeout=timeout)
        self._base = f"{base_url.rstrip('/')}/accounts/{account_id}/r2/buckets/{bucket_name}"
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendUnavailable(f"R2 request failed: {exc}") from exc

    def _delete(self, key: str) -> None:
        url = f"{self._base}/objects/{quote(key, safe='')}"
        resp = self._request("DELETE", url)
        codes = _error_codes(resp)
        # A 404 with another error code (e.g. 10006, missing bucket) is a real failure.
        if _R2_NO_SUCH_KEY in codes or (resp.status_code == 404 and not codes):
            raise ObjectNotFound(f"Object {key} not found")
        if not resp.is_success:
            raise BackendUnavailable(
                f"Failed to delete R2 object {key}: {cloudflare_error_message(resp)}",
                status_code=resp.status_code,
            )
        logger.info("Deleted R2 object %s/%s", self.bucket_name, key)

    def _list_page(self, prefix: str, cursor: str | None) -> ObjectPage:
        params: dict[str, Any] = {"per_page": self.page_size}
        if prefix:
            params["prefix"] = prefix
        if cursor:
            params["cursor"] = cursor
        resp = self._request("GET", f"{self._base}/objects", params=params)
        if not resp.is_success:
            raise BackendUnavailable(
                f"Failed to list R2 objects: {cloudflare_error_message(resp)}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise BackendUnavailable("R2 returned a non-JSON object listing") from exc
        return self._parse_page(data)

    @staticmethod
    def _parse_page(data: dict) -> ObjectPage:
        result = data.get("result") or []
        info = data.get("result_info") or {}
        # Older responses nest the listing as {"objects": [...], "truncated": bool}.
        if isinstance(result, dict):
            raw_objects = result.get("objects") or []
            truncated = bool(result.get("truncated", info.get("is_truncated", False)))
            cursor = result.get("cursor") or info.get("cursor")
        else:
            raw_objects = result
            truncated = bool(info.get("is_truncated", False))
            cursor = info.get("cursor")
        objects = [
            StoredObject(key=obj["key"], size=int(obj.get("size") or 0))
            for obj in raw_objects
            if isinstance(obj, dict) and obj.get("key")
        ]
        return ObjectPage(objects=objects, cursor=cursor or None, truncated=truncated)
