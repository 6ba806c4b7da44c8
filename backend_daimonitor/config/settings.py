"""
Application settings.

Responsibilities:
- Resolve configuration once from environment variables and .env.
- Expose a typed, immutable Settings object for the reader, storage,
  orchestrator, summary client and API server.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from backend_daimonitor.config import env


@dataclass(frozen=True)
class Settings:
    """Resolved configuration. Remote store is enabled only when both credentials are set."""

    rpc_url: str
    rpc_timeout_sec: float | None
    chunk_size: int
    local_cache_path: str
    remote_store_url: str | None
    remote_store_key: str | None
    remote_store_table: str
    ai_api_key: str
    ai_model: str
    sync_stale_hours: float
    api_host: str
    api_port: int

    @property
    def remote_enabled(self) -> bool:
        return bool(self.remote_store_url and self.remote_store_key)


def load_settings() -> Settings:
    """Build a fresh Settings from the current environment."""
    creds = env.get_remote_credentials()
    api_port_raw = (os.getenv("API_PORT") or "8000").strip() or "8000"
    return Settings(
        rpc_url=env.get_rpc_url(),
        rpc_timeout_sec=env.get_rpc_timeout(),
        chunk_size=env.get_chunk_size(),
        local_cache_path=env.get_local_cache_path(),
        remote_store_url=creds[0] if creds else None,
        remote_store_key=creds[1] if creds else None,
        remote_store_table=env.get_remote_table(),
        ai_api_key=env.get_ai_api_key(),
        ai_model=env.get_ai_model(),
        sync_stale_hours=env.get_sync_stale_hours(),
        api_host=(os.getenv("API_HOST") or "0.0.0.0").strip(),
        api_port=int(api_port_raw),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, resolved on first call."""
    return load_settings()
