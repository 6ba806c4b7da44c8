"""
Polygon contract addresses and ABI signatures used by the balance reader.
"""

from __future__ import annotations

from eth_utils import function_signature_to_4byte_selector

# Polygon DAI (PoS bridged), 18 decimals
DAI_ADDRESS = "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063"
DAI_DECIMALS = 18

# Multicall3, same address on every EVM chain it is deployed to
MULTICALL_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

BALANCE_OF_SIGNATURE = "balanceOf(address)"
AGGREGATE3_SIGNATURE = "aggregate3((address,bool,bytes)[])"

BALANCE_OF_SELECTOR = function_signature_to_4byte_selector(BALANCE_OF_SIGNATURE)
AGGREGATE3_SELECTOR = function_signature_to_4byte_selector(AGGREGATE3_SIGNATURE)

AGGREGATE3_INPUT_TYPES = ["(address,bool,bytes)[]"]
AGGREGATE3_OUTPUT_TYPES = ["(bool,bytes)[]"]
BALANCE_OF_OUTPUT_TYPES = ["uint256"]

# Addresses per aggregate3 call; keeps one eth_call under common RPC response/gas limits
DEFAULT_CHUNK_SIZE = 100
