"""
Backend DAI Monitor — balance tracking for curated Polygon wallets.

Reads DAI balances through Multicall3, keeps a rolling 7-day history per
wallet, and persists the collection to a local cache mirrored to an optional
shared remote store. Modular layout: chain reader, history ledger, storage,
sync orchestrator, API server.
"""

__version__ = "0.1.0"
