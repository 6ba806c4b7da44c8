"""Balance history folding (rolling 7-day window)."""

from backend_daimonitor.ledger.history import HISTORY_WINDOW, fold, fold_history

__all__ = ["HISTORY_WINDOW", "fold", "fold_history"]
