"""
Environment variable loading for DAI Monitor.

- POLYGON_RPC_URL: default JSON-RPC endpoint (overridable at runtime, stored locally)
- RPC_TIMEOUT_SEC: optional HTTP timeout for RPC calls
- REMOTE_STORE_URL / REMOTE_STORE_KEY: shared store credentials (both required to enable)
- GEMINI_API_KEY (or API_KEY): AI summary key; absent disables the summary
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_daimonitor/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

POLYGON_RPC_URL = "https://polygon-rpc.com"
DEFAULT_LOCAL_CACHE_PATH = "daimonitor_cache.db"
DEFAULT_REMOTE_TABLE = "app_state"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


def load_monitor_env() -> None:
    """Load .env from project root. Safe to call multiple times; existing env wins."""
    load_dotenv(_ENV_PATH, override=False)


def _get_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _get_float(name: str, default: float | None) -> float | None:
    raw = _get_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_rpc_url() -> str:
    """Return POLYGON_RPC_URL from env, or the public Polygon endpoint."""
    load_monitor_env()
    return _get_str("POLYGON_RPC_URL") or POLYGON_RPC_URL


def get_rpc_timeout() -> float | None:
    """RPC_TIMEOUT_SEC; None means the httpx default."""
    load_monitor_env()
    return _get_float("RPC_TIMEOUT_SEC", None)


def get_chunk_size() -> int:
    load_monitor_env()
    raw = _get_str("MULTICALL_CHUNK_SIZE")
    try:
        value = int(raw) if raw else 100
    except ValueError:
        value = 100
    return value if value > 0 else 100


def get_local_cache_path() -> str:
    load_monitor_env()
    return _get_str("LOCAL_CACHE_PATH") or DEFAULT_LOCAL_CACHE_PATH


def get_remote_credentials() -> tuple[str, str] | None:
    """
    Return (url, key) for the shared remote store, or None when either is missing.
    Resolved once at startup; there is no runtime toggle.
    """
    load_monitor_env()
    url = _get_str("REMOTE_STORE_URL")
    key = _get_str("REMOTE_STORE_KEY")
    if not url or not key:
        return None
    return url.rstrip("/"), key


def get_remote_table() -> str:
    load_monitor_env()
    return _get_str("REMOTE_STORE_TABLE") or DEFAULT_REMOTE_TABLE


def get_ai_api_key() -> str:
    """GEMINI_API_KEY, falling back to API_KEY. Empty string when unset."""
    load_monitor_env()
    return _get_str("GEMINI_API_KEY") or _get_str("API_KEY")


def get_ai_model() -> str:
    load_monitor_env()
    return _get_str("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL


def get_sync_stale_hours() -> float:
    load_monitor_env()
    value = _get_float("SYNC_STALE_HOURS", 24.0)
    return value if value is not None else 24.0


def mask_url(url: str) -> str:
    """Hide query-string credentials (api keys) in URLs before logging."""
    if "?" in url:
        return url.split("?")[0] + "?***"
    return url
