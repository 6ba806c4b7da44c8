"""
Wallet collection persistence — local cache plus optional shared remote store.

Responsibilities:
- Load/save the whole wallet collection and the last-sync timestamp.
- Keep the RPC URL override in the local cache only.
- On load with a remote configured, merge local-only wallets into the remote
  collection (remote wins on address conflicts), push the merge back when it
  grew, and overwrite the local cache with the result.
- Degrade every remote failure to local-only behavior; never raise it.

The backend is picked once by build_wallet_store(); there is no runtime toggle.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Sequence

import httpx

from backend_daimonitor.config.settings import Settings
from backend_daimonitor.core.exceptions import RemoteStoreError, StoreError
from backend_daimonitor.models import WalletRecord, wallets_from_payload, wallets_to_payload
from backend_daimonitor.monitor_logging import get_logger
from backend_daimonitor.storage.local_cache import LocalBlobCache
from backend_daimonitor.storage.remote_store import RemoteDocumentStore

logger = get_logger(__name__)

WALLETS_KEY = "polygon_dai_monitor_data"
LAST_UPDATE_KEY = "polygon_dai_last_update"
RPC_URL_KEY = "polygon_dai_rpc_url"


def merge_missing(
    primary: Sequence[WalletRecord],
    secondary: Sequence[WalletRecord],
) -> tuple[list[WalletRecord], int]:
    """
    Return primary plus every secondary record whose address primary lacks,
    and how many were appended. Primary records are never replaced; a
    duplicated primary address keeps its first occurrence.
    """
    merged: list[WalletRecord] = []
    known: set[str] = set()
    for wallet in primary:
        if wallet.address not in known:
            merged.append(wallet)
            known.add(wallet.address)
    appended = 0
    for wallet in secondary:
        if wallet.address in known:
            continue
        merged.append(wallet)
        known.add(wallet.address)
        appended += 1
    return merged, appended


class StoreBackend(ABC):
    """Local cache access shared by both backends; subclasses add the remote side."""

    remote_enabled = False

    def __init__(self, cache: LocalBlobCache) -> None:
        self.cache = cache
        self.last_remote_error: str | None = None

    def read_local_wallets(self) -> list[WalletRecord]:
        """Cached collection; an unparseable blob is logged and read as empty."""
        raw = self.cache.get(WALLETS_KEY)
        if not raw:
            return []
        try:
            return wallets_from_payload(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("local_wallets_malformed", error=str(e), size=len(raw))
            return []

    def write_local_wallets(self, wallets: Sequence[WalletRecord]) -> None:
        self.cache.set(WALLETS_KEY, json.dumps(wallets_to_payload(list(wallets))))

    def read_local_last_sync(self) -> str | None:
        return self.cache.get(LAST_UPDATE_KEY) or None

    def write_local_last_sync(self, timestamp: str) -> None:
        self.cache.set(LAST_UPDATE_KEY, timestamp)

    @abstractmethod
    async def load_wallets(self) -> list[WalletRecord]: ...

    @abstractmethod
    async def save_wallets(self, wallets: Sequence[WalletRecord]) -> None: ...

    @abstractmethod
    async def load_last_sync(self) -> str | None: ...

    @abstractmethod
    async def save_last_sync(self, timestamp: str) -> None: ...


class LocalOnlyBackend(StoreBackend):
    """No remote credentials: the local cache is the only copy."""

    async def load_wallets(self) -> list[WalletRecord]:
        return self.read_local_wallets()

    async def save_wallets(self, wallets: Sequence[WalletRecord]) -> None:
        self.write_local_wallets(wallets)

    async def load_last_sync(self) -> str | None:
        return self.read_local_last_sync()

    async def save_last_sync(self, timestamp: str) -> None:
        self.write_local_last_sync(timestamp)


class LocalRemoteBackend(StoreBackend):
    """Local cache mirrored to a shared remote store; remote is authoritative on load."""

    remote_enabled = True

    def __init__(self, cache: LocalBlobCache, remote: RemoteDocumentStore) -> None:
        super().__init__(cache)
        self.remote = remote

    def _remote_failed(self, event: str, error: Exception) -> None:
        self.last_remote_error = str(error)
        logger.warning(event, error=str(error))

    async def load_wallets(self) -> list[WalletRecord]:
        try:
            remote_wallets = wallets_from_payload(await self.remote.get(WALLETS_KEY))
        except (RemoteStoreError, ValueError, KeyError, TypeError) as e:
            self._remote_failed("remote_load_failed_using_local", e)
            return self.read_local_wallets()

        local_wallets = self.read_local_wallets()
        merged, appended = merge_missing(remote_wallets, local_wallets)
        if appended:
            try:
                await self.remote.put(WALLETS_KEY, wallets_to_payload(merged))
            except RemoteStoreError as e:
                self._remote_failed("remote_merge_push_failed_using_local", e)
                return local_wallets
            logger.info("remote_merged_local_wallets", appended=appended, total=len(merged))

        try:
            self.write_local_wallets(merged)
        except StoreError as e:
            logger.warning("local_refresh_after_merge_failed", error=str(e))
        self.last_remote_error = None
        logger.debug(
            "wallets_reconciled",
            remote_count=len(remote_wallets),
            local_count=len(local_wallets),
            merged_count=len(merged),
        )
        return merged

    async def save_wallets(self, wallets: Sequence[WalletRecord]) -> None:
        self.write_local_wallets(wallets)
        try:
            await self.remote.put(WALLETS_KEY, wallets_to_payload(list(wallets)))
            self.last_remote_error = None
        except RemoteStoreError as e:
            self._remote_failed("remote_save_failed", e)

    async def load_last_sync(self) -> str | None:
        try:
            value = await self.remote.get(LAST_UPDATE_KEY)
        except RemoteStoreError as e:
            self._remote_failed("remote_last_sync_failed_using_local", e)
            return self.read_local_last_sync()
        if isinstance(value, str) and value:
            try:
                self.write_local_last_sync(value)
            except StoreError as e:
                logger.warning("local_last_sync_refresh_failed", error=str(e))
            return value
        return self.read_local_last_sync()

    async def save_last_sync(self, timestamp: str) -> None:
        self.write_local_last_sync(timestamp)
        try:
            await self.remote.put(LAST_UPDATE_KEY, timestamp)
        except RemoteStoreError as e:
            self._remote_failed("remote_last_sync_save_failed", e)


class WalletStore:
    """
    Single owner of the wallet collection.

    save() raises StoreError only when the local write fails; remote mirror
    failures are logged and exposed via last_remote_error. Concurrent saves
    are not coordinated (last writer wins).
    """

    def __init__(self, backend: StoreBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> StoreBackend:
        return self._backend

    @property
    def last_remote_error(self) -> str | None:
        return self._backend.last_remote_error

    def remote_enabled(self) -> bool:
        return self._backend.remote_enabled

    async def load(self) -> list[WalletRecord]:
        wallets = await self._backend.load_wallets()
        logger.info("wallets_loaded", wallet_count=len(wallets), remote_enabled=self.remote_enabled())
        return wallets

    async def save(self, wallets: Sequence[WalletRecord]) -> None:
        await self._backend.save_wallets(wallets)
        logger.info("wallets_saved", wallet_count=len(wallets), remote_enabled=self.remote_enabled())

    async def get_last_sync(self) -> str | None:
        return await self._backend.load_last_sync()

    async def set_last_sync(self, timestamp: str) -> None:
        await self._backend.save_last_sync(timestamp)

    def get_rpc_url(self, default: str) -> str:
        """Locally persisted RPC override, or default. Never read from the remote store."""
        return self._backend.cache.get(RPC_URL_KEY) or default

    def set_rpc_url(self, url: str) -> None:
        self._backend.cache.set(RPC_URL_KEY, url)


def build_wallet_store(
    settings: Settings,
    *,
    remote_transport: httpx.AsyncBaseTransport | None = None,
) -> WalletStore:
    """Select the backend from settings: local+remote when credentials exist, else local only."""
    cache = LocalBlobCache(settings.local_cache_path)
    if settings.remote_enabled:
        remote = RemoteDocumentStore(
            settings.remote_store_url or "",
            settings.remote_store_key or "",
            table=settings.remote_store_table,
            transport=remote_transport,
        )
        logger.info("wallet_store_backend", backend="local_remote", table=settings.remote_store_table)
        return WalletStore(LocalRemoteBackend(cache, remote))
    logger.info("wallet_store_backend", backend="local_only")
    return WalletStore(LocalOnlyBackend(cache))
