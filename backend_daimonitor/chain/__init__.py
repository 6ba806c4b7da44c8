"""
Polygon chain access: Multicall3 batched balance reads and block height.
"""

from backend_daimonitor.chain.reader import ChainBalanceReader, RpcHandle

__all__ = ["ChainBalanceReader", "RpcHandle"]
