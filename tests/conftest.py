"""
Pytest fixtures for DAI Monitor tests.

Local cache uses a temporary SQLite file. The JSON-RPC node and the remote
document store are simulated with httpx.MockTransport so no network is used.
"""

from __future__ import annotations

import json

import httpx
import pytest
from eth_abi import decode, encode
from eth_utils import decode_hex, encode_hex

from backend_daimonitor.chain.constants import AGGREGATE3_SELECTOR, BALANCE_OF_SELECTOR
from backend_daimonitor.chain.reader import ChainBalanceReader
from backend_daimonitor.config.settings import Settings
from backend_daimonitor.storage.local_cache import LocalBlobCache
from backend_daimonitor.storage.remote_store import RemoteDocumentStore
from backend_daimonitor.storage.wallet_store import LocalOnlyBackend, LocalRemoteBackend, WalletStore

RPC_URL = "https://rpc.test"
REMOTE_URL = "https://remote.test"


class FakeRpcNode:
    """
    Minimal Polygon node: answers eth_blockNumber and aggregate3 eth_calls of balanceOf.

    balances maps lowercase address -> raw uint256; addresses in `failing`
    return success=false; `fail_on_call` makes the Nth eth_call (1-based) a 500.
    """

    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.failing: set[str] = set()
        self.block_number = 0x3B9ACA0
        self.fail_on_call: int | None = None
        self.block_error = False
        self.chunk_sizes: list[int] = []
        self.urls: list[str] = []
        self.eth_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        body = json.loads(request.content)
        method = body["method"]
        if method == "eth_blockNumber":
            if self.block_error:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": hex(self.block_number)})
        assert method == "eth_call"
        self.eth_calls += 1
        if self.fail_on_call == self.eth_calls:
            return httpx.Response(500, text="boom")
        data = decode_hex(body["params"][0]["data"])
        assert data[:4] == AGGREGATE3_SELECTOR
        (calls,) = decode(["(address,bool,bytes)[]"], data[4:])
        self.chunk_sizes.append(len(calls))
        results = []
        for _target, allow_failure, call_data in calls:
            assert allow_failure is True
            assert call_data[:4] == BALANCE_OF_SELECTOR
            (owner,) = decode(["address"], call_data[4:])
            owner = owner.lower()
            if owner in self.failing:
                results.append((False, b""))
            else:
                results.append((True, encode(["uint256"], [self.balances.get(owner, 0)])))
        result = encode_hex(encode(["(bool,bytes)[]"], [results]))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeRemoteStore:
    """
    PostgREST-style document table kept in a dict. Set `fail` to answer every
    request with 500, or `fail_posts` to fail only upserts.
    """

    def __init__(self) -> None:
        self.docs: dict[str, object] = {}
        self.fail = False
        self.fail_posts = False
        self.puts: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, json={"message": "down"})
        if request.method == "GET":
            key = request.url.params["key"].removeprefix("eq.")
            if key not in self.docs:
                return httpx.Response(200, json=[])
            return httpx.Response(200, json=[{"value": self.docs[key]}])
        if request.method == "POST":
            if self.fail_posts:
                return httpx.Response(503, json={"message": "read only"})
            row = json.loads(request.content)
            self.docs[row["key"]] = row["value"]
            self.puts.append(row["key"])
            return httpx.Response(201)
        return httpx.Response(405)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_rpc() -> FakeRpcNode:
    return FakeRpcNode()


@pytest.fixture
def fake_remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def local_cache(tmp_path) -> LocalBlobCache:
    cache = LocalBlobCache(str(tmp_path / "cache.db"))
    yield cache
    cache.close()


@pytest.fixture
def reader(fake_rpc) -> ChainBalanceReader:
    return ChainBalanceReader(RPC_URL, transport=fake_rpc.transport)


@pytest.fixture
def local_store(local_cache) -> WalletStore:
    return WalletStore(LocalOnlyBackend(local_cache))


@pytest.fixture
def remote_store(local_cache, fake_remote) -> WalletStore:
    remote = RemoteDocumentStore(REMOTE_URL, "test-key", transport=fake_remote.transport)
    return WalletStore(LocalRemoteBackend(local_cache, remote))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        rpc_url=RPC_URL,
        rpc_timeout_sec=None,
        chunk_size=100,
        local_cache_path=str(tmp_path / "settings_cache.db"),
        remote_store_url=None,
        remote_store_key=None,
        remote_store_table="app_state",
        ai_api_key="",
        ai_model="gemini-2.5-flash",
        sync_stale_hours=24.0,
        api_host="127.0.0.1",
        api_port=8000,
    )
