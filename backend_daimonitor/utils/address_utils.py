"""EVM address validation and normalization utilities."""

from __future__ import annotations

from eth_utils import is_hex_address

from backend_daimonitor.core.exceptions import InvalidAddressError


def is_valid_address(address: str) -> bool:
    """Return True if address is a 0x-prefixed 40-hex-character string (any case)."""
    address = (address or "").strip()
    return address.startswith(("0x", "0X")) and is_hex_address(address)


def normalize_address(address: str) -> str:
    """Return the lowercase form used as the collection key. Raises InvalidAddressError."""
    address = (address or "").strip()
    if not is_valid_address(address):
        raise InvalidAddressError(f"Invalid EVM address: {address!r}")
    return address.lower()
