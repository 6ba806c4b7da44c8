"""
Data models for tracked wallets.

WalletRecord is the unit persisted by the storage layer (as camelCase JSON,
the dashboard's on-disk format) and produced by the sync orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from backend_daimonitor.monitor_logging import get_logger
from backend_daimonitor.utils.address_utils import is_valid_address

logger = get_logger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """One daily balance observation. date is a full ISO-8601 timestamp."""

    date: str
    balance: float

    @property
    def day(self) -> str:
        return day_key(self.date)

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date, "balance": self.balance}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        return cls(date=str(data["date"]), balance=float(data.get("balance") or 0.0))


@dataclass(frozen=True)
class WalletRecord:
    """
    One tracked address.

    address is lowercase and unique across the collection. history holds at
    most 7 entries, one per calendar day, oldest first.
    """

    address: str
    owner: str = ""
    initial_balance: float = 0.0
    initial_block: int = 0
    current_balance: float = 0.0
    last_updated: str = ""
    history: tuple[HistoryEntry, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "owner": self.owner,
            "initialBalance": self.initial_balance,
            "initialBlock": self.initial_block,
            "currentBalance": self.current_balance,
            "lastUpdated": self.last_updated,
            "history": [h.to_dict() for h in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WalletRecord":
        """Build from the persisted camelCase form. Missing optional fields get defaults."""
        history = tuple(
            HistoryEntry.from_dict(h) for h in (data.get("history") or []) if isinstance(h, dict)
        )
        return cls(
            address=str(data["address"]).strip().lower(),
            owner=str(data.get("owner") or ""),
            initial_balance=float(data.get("initialBalance") or 0.0),
            initial_block=int(data.get("initialBlock") or 0),
            current_balance=float(data.get("currentBalance") or 0.0),
            last_updated=str(data.get("lastUpdated") or ""),
            history=history,
        )


@dataclass(frozen=True)
class AddressEntry:
    """Parsed bulk-upload line: lowercase address plus optional label."""

    address: str
    label: str = ""


def day_key(timestamp: str) -> str:
    """Calendar day (YYYY-MM-DD) of an ISO timestamp: the part before 'T'."""
    return timestamp.split("T")[0]


def wallets_to_payload(wallets: list[WalletRecord]) -> list[dict[str, Any]]:
    return [w.to_dict() for w in wallets]


def wallets_from_payload(payload: Any) -> list[WalletRecord]:
    """
    Decode a persisted collection. Entries without a valid EVM address are
    logged and skipped. Raises ValueError if payload is not a list.
    """
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ValueError(f"wallet collection must be a list, got {type(payload).__name__}")
    wallets: list[WalletRecord] = []
    for item in payload:
        if not isinstance(item, dict) or not item.get("address"):
            continue
        if not is_valid_address(str(item["address"])):
            logger.warning("stored_wallet_invalid_address_skipped", address=str(item["address"]))
            continue
        wallets.append(WalletRecord.from_dict(item))
    return wallets
