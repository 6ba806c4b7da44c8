"""
Wallet balance history — rolling daily window.

Pure functions, no I/O. A refresh on a day that already has an entry
overwrites that entry; a refresh on a new day appends. The window keeps the
latest HISTORY_WINDOW entries (oldest dropped first). initial_balance on the
record is kept separately and never evicted.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from backend_daimonitor.models import HistoryEntry, WalletRecord, day_key

HISTORY_WINDOW = 7


def fold_history(
    history: Sequence[HistoryEntry],
    balance: float,
    observed_at: str,
) -> list[HistoryEntry]:
    """Return a new history list with the observation folded in."""
    new_history = list(history)
    entry = HistoryEntry(date=observed_at, balance=balance)
    if new_history and new_history[-1].day == day_key(observed_at):
        new_history[-1] = entry
    else:
        new_history.append(entry)
    if len(new_history) > HISTORY_WINDOW:
        new_history = new_history[-HISTORY_WINDOW:]
    return new_history


def fold(wallet: WalletRecord, balance: float, observed_at: str) -> WalletRecord:
    """
    Return a copy of wallet updated with a new balance observation.

    current_balance and last_updated take the observation's values; the input
    record is not modified.
    """
    return replace(
        wallet,
        current_balance=balance,
        last_updated=observed_at,
        history=tuple(fold_history(wallet.history, balance, observed_at)),
    )
