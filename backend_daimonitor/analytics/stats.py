"""
Portfolio statistics over the tracked wallet collection.

7-day change is measured against the oldest entry still in the history
window (falling back to initial_balance), 1-day change against the
second-to-last entry.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Sequence

from backend_daimonitor.models import WalletRecord, day_key

SORT_BALANCE_DESC = "balance_desc"
SORT_BALANCE_ASC = "balance_asc"
SORT_CHANGE7D_DESC = "change7d_desc"
SORT_CHANGE7D_ASC = "change7d_asc"
SORT_CHANGE1D_DESC = "change1d_desc"

SORT_OPTIONS = (
    SORT_BALANCE_DESC,
    SORT_BALANCE_ASC,
    SORT_CHANGE7D_DESC,
    SORT_CHANGE7D_ASC,
    SORT_CHANGE1D_DESC,
)


def change_7d(wallet: WalletRecord) -> float:
    baseline = wallet.history[0].balance if wallet.history else 0.0
    return wallet.current_balance - (baseline or wallet.initial_balance)


def change_1d(wallet: WalletRecord) -> float:
    if len(wallet.history) < 2:
        return 0.0
    return wallet.current_balance - wallet.history[-2].balance


def filter_wallets(wallets: Sequence[WalletRecord], search: str) -> list[WalletRecord]:
    """Case-insensitive substring match on address or owner."""
    needle = (search or "").strip().lower()
    if not needle:
        return list(wallets)
    return [w for w in wallets if needle in w.address.lower() or needle in w.owner.lower()]


def sort_wallets(wallets: Sequence[WalletRecord], option: str = SORT_BALANCE_DESC) -> list[WalletRecord]:
    """Sort by one of SORT_OPTIONS. Unknown options keep the input order."""
    if option == SORT_BALANCE_DESC:
        return sorted(wallets, key=lambda w: w.current_balance, reverse=True)
    if option == SORT_BALANCE_ASC:
        return sorted(wallets, key=lambda w: w.current_balance)
    if option == SORT_CHANGE7D_DESC:
        return sorted(wallets, key=change_7d, reverse=True)
    if option == SORT_CHANGE7D_ASC:
        return sorted(wallets, key=change_7d)
    if option == SORT_CHANGE1D_DESC:
        return sorted(wallets, key=change_1d, reverse=True)
    return list(wallets)


def portfolio_totals(wallets: Sequence[WalletRecord]) -> dict[str, Any]:
    return {
        "wallet_count": len(wallets),
        "total_balance": sum(w.current_balance for w in wallets),
        "total_change_7d": sum(change_7d(w) for w in wallets),
    }


def daily_totals(wallets: Sequence[WalletRecord], days: int = 7) -> list[dict[str, Any]]:
    """Sum of history balances per calendar day, oldest first, last `days` days."""
    totals: dict[str, float] = defaultdict(float)
    for wallet in wallets:
        for entry in wallet.history:
            totals[day_key(entry.date)] += entry.balance
    ordered = sorted(totals.items())
    return [{"date": d, "total": t} for d, t in ordered[-days:]]


def format_address(address: str) -> str:
    """0x1234...abcd; strings shorter than 10 chars are returned unchanged."""
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
