"""
Persistence for the wallet collection: local blob cache, shared remote
document store, and the WalletStore that reconciles them.
"""

from backend_daimonitor.storage.local_cache import LocalBlobCache
from backend_daimonitor.storage.remote_store import RemoteDocumentStore
from backend_daimonitor.storage.wallet_store import (
    LocalOnlyBackend,
    LocalRemoteBackend,
    StoreBackend,
    WalletStore,
    build_wallet_store,
)

__all__ = [
    "LocalBlobCache",
    "LocalOnlyBackend",
    "LocalRemoteBackend",
    "RemoteDocumentStore",
    "StoreBackend",
    "WalletStore",
    "build_wallet_store",
]
