"""
Application-level exceptions.

- ChainReadError: a balance fetch failed at the transport or decode level.
- StoreError / RemoteStoreError: persistence failures (remote ones are
  absorbed by the store and only logged).
- InvalidAddressError: a value that is not a 20-byte hex address.
"""

from __future__ import annotations


class DaiMonitorError(Exception):
    """Base class for DAI Monitor errors."""


class ChainReadError(DaiMonitorError):
    """Aggregator call, JSON-RPC response, or return data could not be used."""


class StoreError(DaiMonitorError):
    """Local cache read/write failed."""


class RemoteStoreError(StoreError):
    """Remote document store request failed or returned an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InvalidAddressError(DaiMonitorError, ValueError):
    """Address is not a 0x-prefixed 40-hex-character string."""
