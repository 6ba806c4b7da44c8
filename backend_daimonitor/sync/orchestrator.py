"""
Sync orchestrator — load, refresh, fold, persist.

Ties the chain reader, history ledger and wallet store together:
- sync_now(): refresh every tracked wallet with one shared as-of timestamp.
- register_addresses(): add or relabel wallets, seeding a one-entry history.
- startup(): load the collection and auto-sync when the last sync is stale.

A chain read failure aborts the operation before anything is persisted.
There is no lock: `busy` only reports that an operation is running, and two
overlapping operations race with last-write-wins persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence

import httpx

from backend_daimonitor.chain.reader import ChainBalanceReader
from backend_daimonitor.config.settings import Settings
from backend_daimonitor.core.exceptions import ChainReadError, InvalidAddressError
from backend_daimonitor.ledger.history import fold
from backend_daimonitor.models import AddressEntry, HistoryEntry, WalletRecord
from backend_daimonitor.monitor_logging import bind_wallet, get_logger
from backend_daimonitor.storage.wallet_store import WalletStore, build_wallet_store
from backend_daimonitor.utils.address_utils import normalize_address

logger = get_logger(__name__)

DEFAULT_STALE_HOURS = 24.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime | None:
    """Parse an ISO timestamp (Z or offset form). Naive values are taken as UTC."""
    try:
        moment = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def is_sync_due(
    last_sync: str | None,
    now: datetime,
    stale_hours: float = DEFAULT_STALE_HOURS,
) -> bool:
    """True when there is no usable last-sync timestamp or it is more than stale_hours away."""
    if not last_sync:
        return True
    last = parse_iso(last_sync)
    if last is None:
        return True
    return abs(now - last) > timedelta(hours=stale_hours)


class SyncOrchestrator:
    """
    Owns the in-memory wallet collection and drives refreshes.

    Args:
        reader: Balance reader (reconfigured in place by update_rpc_url).
        store: Wallet store; single source of truth for persistence.
        stale_hours: Age after which startup() triggers an automatic sync.
        clock: Returns the current UTC datetime (tests inject a fixed one).
    """

    def __init__(
        self,
        reader: ChainBalanceReader,
        store: WalletStore,
        *,
        stale_hours: float = DEFAULT_STALE_HOURS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.reader = reader
        self.store = store
        self.stale_hours = stale_hours
        self._clock = clock
        self.wallets: list[WalletRecord] = []
        self.last_sync: str | None = None
        self.busy = False

    async def startup(self) -> list[WalletRecord]:
        """Load the collection; run sync_now when the last sync is absent or stale."""
        self.wallets = await self.store.load()
        self.last_sync = await self.store.get_last_sync()
        if self.wallets and is_sync_due(self.last_sync, self._clock(), self.stale_hours):
            logger.info("auto_sync_due", last_sync=self.last_sync, wallet_count=len(self.wallets))
            try:
                await self.sync_now(self.wallets)
            except (ChainReadError, InvalidAddressError) as e:
                logger.error("auto_sync_failed", error=str(e))
        return self.wallets

    async def sync_now(self, wallets: Sequence[WalletRecord] | None = None) -> list[WalletRecord]:
        """
        Refresh balances for wallets (default: the current collection).

        All wallets share one observation timestamp. Raises ChainReadError
        (or InvalidAddressError for a malformed stored address) with the
        store untouched if the balance fetch fails.
        """
        wallets = list(self.wallets if wallets is None else wallets)
        if not wallets:
            return []
        self.busy = True
        try:
            balances = await self.reader.fetch_balances([w.address for w in wallets])
            observed_at = to_iso(self._clock())
            updated = [
                fold(w, balances.get(w.address, w.current_balance), observed_at)
                for w in wallets
            ]
            await self.store.save(updated)
            await self.store.set_last_sync(observed_at)
        finally:
            self.busy = False
        self.wallets = updated
        self.last_sync = observed_at
        logger.info("sync_completed", wallet_count=len(updated), observed_at=observed_at)
        return updated

    async def register_addresses(
        self,
        entries: Sequence[AddressEntry],
        existing: Sequence[WalletRecord] | None = None,
    ) -> list[WalletRecord]:
        """
        Add new wallets (or relabel existing ones) and persist the merged collection.

        New records start with the current balance as both initial and only
        history value. On an address conflict the new record replaces the old.
        Raises InvalidAddressError for a malformed address and ChainReadError
        if the balance fetch fails; nothing is persisted in either case.
        """
        existing = list(self.wallets if existing is None else existing)
        if not entries:
            return existing
        normalized = [
            AddressEntry(address=normalize_address(e.address), label=(e.label or "").strip())
            for e in entries
        ]
        self.busy = True
        try:
            block = await self.reader.fetch_block_height()
            balances = await self.reader.fetch_balances([e.address for e in normalized])
            observed_at = to_iso(self._clock())
            new_wallets = []
            for idx, entry in enumerate(normalized):
                balance = balances.get(entry.address, 0.0)
                bind_wallet(logger, entry.address).debug(
                    "wallet_initialized", label=entry.label, balance=balance, block=block
                )
                new_wallets.append(
                    WalletRecord(
                        address=entry.address,
                        owner=entry.label or f"Wallet #{len(existing) + idx + 1}",
                        initial_balance=balance,
                        initial_block=block,
                        current_balance=balance,
                        last_updated=observed_at,
                        history=(HistoryEntry(date=observed_at, balance=balance),),
                    )
                )
            by_address: dict[str, WalletRecord] = {w.address: w for w in existing}
            for wallet in new_wallets:
                by_address[wallet.address] = wallet
            merged = list(by_address.values())
            await self.store.save(merged)
            await self.store.set_last_sync(observed_at)
        finally:
            self.busy = False
        self.wallets = merged
        self.last_sync = observed_at
        logger.info(
            "addresses_registered",
            submitted=len(normalized),
            total=len(merged),
            block=block,
        )
        return merged

    async def delete_wallet(
        self,
        address: str,
        wallets: Sequence[WalletRecord] | None = None,
    ) -> list[WalletRecord]:
        """Drop one address from the collection and persist. Unknown addresses are a no-op save."""
        address = normalize_address(address)
        wallets = list(self.wallets if wallets is None else wallets)
        remaining = [w for w in wallets if w.address != address]
        await self.store.save(remaining)
        self.wallets = remaining
        bind_wallet(logger, address).info("wallet_deleted", removed=len(wallets) - len(remaining))
        return remaining

    async def purge(self) -> None:
        """Persist an empty collection."""
        await self.store.save([])
        self.wallets = []
        logger.info("wallets_purged")

    def update_rpc_url(self, rpc_url: str) -> None:
        """Persist the RPC override locally and point the reader at it."""
        rpc_url = (rpc_url or "").strip()
        if not rpc_url:
            raise ValueError("RPC URL cannot be empty")
        self.store.set_rpc_url(rpc_url)
        self.reader.reconfigure(rpc_url)


def build_orchestrator(
    settings: Settings,
    *,
    rpc_transport: httpx.AsyncBaseTransport | None = None,
    remote_transport: httpx.AsyncBaseTransport | None = None,
) -> SyncOrchestrator:
    """Wire store, reader (honoring a locally saved RPC override) and orchestrator from settings."""
    store = build_wallet_store(settings, remote_transport=remote_transport)
    rpc_url = store.get_rpc_url(settings.rpc_url)
    reader = ChainBalanceReader(
        rpc_url,
        chunk_size=settings.chunk_size,
        timeout_sec=settings.rpc_timeout_sec,
        transport=rpc_transport,
    )
    return SyncOrchestrator(reader, store, stale_hours=settings.sync_stale_hours)
