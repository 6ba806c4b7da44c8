"""
Polygon DAI balance reader — Multicall3 batches over JSON-RPC.

Responsibilities:
- Split tracked addresses into chunks and read each chunk with one
  aggregate3 eth_call against the Multicall3 contract.
- Map per-address failures to a zero balance without failing the chunk.
- Abort the whole fetch on any chunk-level transport or decode failure.
- Report the latest block number for registration metadata (0 on failure).

The reader holds no state between calls other than its RpcHandle, which is
replaced (never mutated) by reconfigure().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from backend_daimonitor.chain.abi import decode_aggregate3, decode_balance, encode_aggregate3
from backend_daimonitor.chain.constants import DAI_ADDRESS, DEFAULT_CHUNK_SIZE, MULTICALL_ADDRESS
from backend_daimonitor.config.env import mask_url
from backend_daimonitor.core.exceptions import ChainReadError
from backend_daimonitor.monitor_logging import get_logger
from backend_daimonitor.utils.address_utils import normalize_address

logger = get_logger(__name__)

# JSON-RPC request id counter
_request_id = 0


def _next_id() -> int:
    global _request_id
    _request_id += 1
    return _request_id


def _build_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": _next_id(),
        "method": method,
        "params": params,
    }


@dataclass(frozen=True)
class RpcHandle:
    """Endpoint plus HTTP settings. Each call opens its client from the handle it started with."""

    rpc_url: str
    timeout_sec: float | None = None
    transport: httpx.AsyncBaseTransport | None = None

    def client(self) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {}
        if self.timeout_sec is not None:
            kwargs["timeout"] = httpx.Timeout(self.timeout_sec)
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)


class ChainBalanceReader:
    """
    Batched ERC-20 balance reader for one token through Multicall3.

    Args:
        rpc_url: EVM JSON-RPC HTTP endpoint.
        token_address: ERC-20 contract queried with balanceOf (Polygon DAI by default).
        multicall_address: Multicall3 deployment.
        chunk_size: Max addresses per aggregate3 call.
        timeout_sec: HTTP timeout; None keeps the httpx default.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        token_address: str = DAI_ADDRESS,
        multicall_address: str = MULTICALL_ADDRESS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout_sec: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._token_address = token_address
        self._multicall_address = multicall_address
        self._chunk_size = chunk_size
        self._handle = RpcHandle(rpc_url.strip(), timeout_sec, transport)

    @property
    def rpc_url(self) -> str:
        return self._handle.rpc_url

    @property
    def handle(self) -> RpcHandle:
        return self._handle

    def reconfigure(self, rpc_url: str) -> None:
        """Point subsequent calls at a new endpoint. In-flight calls keep the old handle."""
        rpc_url = (rpc_url or "").strip()
        if not rpc_url:
            raise ValueError("rpc_url must be non-empty")
        self._handle = RpcHandle(rpc_url, self._handle.timeout_sec, self._handle.transport)
        logger.info("chain_reader_reconfigured", rpc_url=mask_url(rpc_url))

    async def fetch_balances(self, addresses: Sequence[str]) -> dict[str, float]:
        """
        Return {lowercase address: balance} for every input address.

        Failed sub-calls report 0.0, so a failed read and an empty wallet look
        the same. Raises ChainReadError if any chunk fails; no partial result.
        """
        if not addresses:
            return {}
        normalized = [normalize_address(a) for a in addresses]
        handle = self._handle
        balances: dict[str, float] = {}
        failed_calls = 0
        async with handle.client() as client:
            for start in range(0, len(normalized), self._chunk_size):
                chunk = normalized[start : start + self._chunk_size]
                results = await self._aggregate_chunk(client, handle, chunk)
                if len(results) != len(chunk):
                    raise ChainReadError(
                        f"aggregate3 returned {len(results)} results for {len(chunk)} calls"
                    )
                for address, result in zip(chunk, results):
                    if result.success:
                        balances[address] = decode_balance(result.return_data)
                    else:
                        failed_calls += 1
                        balances[address] = 0.0
        logger.info(
            "chain_balances_fetched",
            address_count=len(normalized),
            chunk_count=(len(normalized) + self._chunk_size - 1) // self._chunk_size,
            failed_calls=failed_calls,
        )
        return balances

    async def fetch_block_height(self) -> int:
        """Latest block number, or 0 if the call fails for any reason."""
        handle = self._handle
        try:
            async with handle.client() as client:
                result = await self._rpc_call(client, handle, "eth_blockNumber", [])
            return int(result, 16)
        except Exception as e:
            logger.warning("chain_block_height_failed", error=str(e))
            return 0

    async def _aggregate_chunk(
        self,
        client: httpx.AsyncClient,
        handle: RpcHandle,
        chunk: list[str],
    ):
        call = {
            "to": self._multicall_address,
            "data": encode_aggregate3(self._token_address, chunk),
        }
        result = await self._rpc_call(client, handle, "eth_call", [call, "latest"])
        return decode_aggregate3(result)

    async def _rpc_call(
        self,
        client: httpx.AsyncClient,
        handle: RpcHandle,
        method: str,
        params: list[Any],
    ) -> Any:
        """Perform one JSON-RPC call; raise ChainReadError on transport or RPC error."""
        body = _build_rpc_body(method, params)
        try:
            resp = await client.post(handle.rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("chain_rpc_transport_failed", method=method, error=str(e))
            raise ChainReadError(f"{method} failed: {e}") from e
        if not isinstance(data, dict):
            raise ChainReadError(f"{method} returned a non-object response")
        if "error" in data:
            err = data["error"]
            message = err.get("message", err) if isinstance(err, dict) else err
            code = err.get("code") if isinstance(err, dict) else None
            logger.error("chain_rpc_error", method=method, code=code, error=str(message))
            raise ChainReadError(f"RPC error: {message} (code={code})")
        result = data.get("result")
        if result is None:
            raise ChainReadError(f"{method} returned no result")
        return result
