"""
Shared remote document store — keyed JSON documents over a PostgREST API.

Each document is one row {key, value} in REMOTE_STORE_TABLE; value is a JSON
column holding the whole payload (the full wallet collection, or the
last-sync timestamp). Works against Supabase REST (`{url}/rest/v1/{table}`)
with the project API key.
"""

from __future__ import annotations

from typing import Any

import httpx

from backend_daimonitor.config.env import DEFAULT_REMOTE_TABLE
from backend_daimonitor.core.exceptions import RemoteStoreError
from backend_daimonitor.monitor_logging import get_logger

logger = get_logger(__name__)


class RemoteDocumentStore:
    """
    Upsert/select of JSON documents by string key.

    get() returns None when no row exists for the key. Any HTTP, transport
    or payload problem raises RemoteStoreError; callers decide how to degrade.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        table: str = DEFAULT_REMOTE_TABLE,
        timeout_sec: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url.strip() or not api_key.strip():
            raise ValueError("remote store url and key must be non-empty")
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._timeout_sec = timeout_sec
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _client(self) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {"headers": self._headers}
        if self._timeout_sec is not None:
            kwargs["timeout"] = httpx.Timeout(self._timeout_sec)
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def get(self, key: str) -> Any | None:
        """Return the document value for key, or None if absent."""
        params = {"key": f"eq.{key}", "select": "value"}
        try:
            async with self._client() as client:
                resp = await client.get(self._endpoint, params=params)
                resp.raise_for_status()
                rows = resp.json()
        except httpx.HTTPStatusError as e:
            raise RemoteStoreError(
                f"Remote select {key} failed: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteStoreError(f"Remote select {key} failed: {e}") from e
        if not isinstance(rows, list):
            raise RemoteStoreError(f"Remote select {key} returned {type(rows).__name__}, expected list")
        if not rows:
            return None
        row = rows[0]
        if not isinstance(row, dict):
            raise RemoteStoreError(f"Remote select {key} returned a malformed row")
        return row.get("value")

    async def put(self, key: str, value: Any) -> None:
        """Insert or replace the document for key."""
        headers = {"Prefer": "resolution=merge-duplicates,return=minimal"}
        try:
            async with self._client() as client:
                resp = await client.post(
                    self._endpoint,
                    params={"on_conflict": "key"},
                    json={"key": key, "value": value},
                    headers=headers,
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteStoreError(
                f"Remote upsert {key} failed: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Remote upsert {key} failed: {e}") from e
        logger.debug("remote_store_upserted", key=key)
