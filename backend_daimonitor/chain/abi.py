"""
ABI encoding for Multicall3 aggregate3 batches of ERC-20 balanceOf calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, encode_hex, to_checksum_address

from backend_daimonitor.chain.constants import (
    AGGREGATE3_INPUT_TYPES,
    AGGREGATE3_OUTPUT_TYPES,
    AGGREGATE3_SELECTOR,
    BALANCE_OF_OUTPUT_TYPES,
    BALANCE_OF_SELECTOR,
    DAI_DECIMALS,
)
from backend_daimonitor.core.exceptions import ChainReadError


@dataclass(frozen=True)
class CallResult:
    """One aggregate3 sub-call result."""

    success: bool
    return_data: bytes


def encode_balance_of(address: str) -> bytes:
    """Calldata for balanceOf(address)."""
    return BALANCE_OF_SELECTOR + encode(["address"], [to_checksum_address(address)])


def encode_aggregate3(token_address: str, addresses: Sequence[str]) -> str:
    """
    Hex calldata for aggregate3 with one allowFailure=true balanceOf per address,
    all targeting token_address.
    """
    target = to_checksum_address(token_address)
    calls = [(target, True, encode_balance_of(addr)) for addr in addresses]
    return encode_hex(AGGREGATE3_SELECTOR + encode(AGGREGATE3_INPUT_TYPES, [calls]))


def decode_aggregate3(result_hex: str) -> list[CallResult]:
    """Decode the eth_call result of aggregate3. Raises ChainReadError on malformed data."""
    try:
        (results,) = decode(AGGREGATE3_OUTPUT_TYPES, decode_hex(result_hex))
    except (DecodingError, ValueError, TypeError) as e:
        raise ChainReadError(f"Undecodable aggregate3 result: {e}") from e
    return [CallResult(success=bool(ok), return_data=bytes(data)) for ok, data in results]


def decode_balance(return_data: bytes, decimals: int = DAI_DECIMALS) -> float:
    """Decode a balanceOf uint256 and scale it to a human-readable amount."""
    try:
        (raw,) = decode(BALANCE_OF_OUTPUT_TYPES, return_data)
    except (DecodingError, ValueError, TypeError) as e:
        raise ChainReadError(f"Undecodable balanceOf result: {e}") from e
    return float(Decimal(raw).scaleb(-decimals))
