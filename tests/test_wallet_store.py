"""
Pytest tests for WalletStore: local-only backend, remote reconciliation and
fail-open behavior when the remote store is unavailable.
"""

from __future__ import annotations

import asyncio
import json

from backend_daimonitor.models import HistoryEntry, WalletRecord, wallets_to_payload
from backend_daimonitor.storage.wallet_store import (
    LAST_UPDATE_KEY,
    RPC_URL_KEY,
    WALLETS_KEY,
    LocalOnlyBackend,
    LocalRemoteBackend,
    build_wallet_store,
    merge_missing,
)

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40
ADDR_C = "0x" + "c" * 40


def _wallet(address: str, balance: float, owner: str = "") -> WalletRecord:
    ts = "2026-10-18T08:00:00.000Z"
    return WalletRecord(
        address=address,
        owner=owner,
        initial_balance=balance,
        initial_block=1,
        current_balance=balance,
        last_updated=ts,
        history=(HistoryEntry(date=ts, balance=balance),),
    )


def test_local_only_roundtrip(local_store, local_cache):
    wallets = [_wallet(ADDR_A, 1.5, "one"), _wallet(ADDR_B, 2.0)]
    asyncio.run(local_store.save(wallets))
    assert local_store.remote_enabled() is False
    assert asyncio.run(local_store.load()) == wallets
    stored = json.loads(local_cache.get(WALLETS_KEY))
    assert stored[0]["initialBalance"] == 1.5
    assert stored[0]["history"][0]["date"] == "2026-10-18T08:00:00.000Z"


def test_malformed_local_blob_loads_empty(local_store, local_cache):
    local_cache.set(WALLETS_KEY, "{not json")
    assert asyncio.run(local_store.load()) == []
    local_cache.set(WALLETS_KEY, json.dumps({"address": ADDR_A}))
    assert asyncio.run(local_store.load()) == []


def test_reconciliation_merges_local_into_remote(remote_store, local_cache, fake_remote):
    """remote {A, B} + local {B stale, C} -> {A, B(remote), C}; pushed back; local converges."""
    remote_a = _wallet(ADDR_A, 10.0, "remote A")
    remote_b = _wallet(ADDR_B, 20.0, "remote B")
    stale_b = _wallet(ADDR_B, 1.0, "stale B")
    local_c = _wallet(ADDR_C, 30.0, "local C")
    fake_remote.docs[WALLETS_KEY] = wallets_to_payload([remote_a, remote_b])
    local_cache.set(WALLETS_KEY, json.dumps(wallets_to_payload([stale_b, local_c])))

    merged = asyncio.run(remote_store.load())

    assert merged == [remote_a, remote_b, local_c]
    assert fake_remote.puts == [WALLETS_KEY]
    assert fake_remote.docs[WALLETS_KEY] == wallets_to_payload(merged)
    assert json.loads(local_cache.get(WALLETS_KEY)) == wallets_to_payload(merged)


def test_reconciliation_without_new_local_skips_push(remote_store, local_cache, fake_remote):
    remote_a = _wallet(ADDR_A, 10.0)
    fake_remote.docs[WALLETS_KEY] = wallets_to_payload([remote_a])
    local_cache.set(WALLETS_KEY, json.dumps(wallets_to_payload([_wallet(ADDR_A, 3.0)])))

    merged = asyncio.run(remote_store.load())

    assert merged == [remote_a]
    assert fake_remote.puts == []
    assert json.loads(local_cache.get(WALLETS_KEY)) == wallets_to_payload([remote_a])


def test_merge_push_failure_returns_local_untouched(remote_store, local_cache, fake_remote):
    remote_a = _wallet(ADDR_A, 10.0, "remote A")
    stale_b = _wallet(ADDR_B, 1.0, "stale B")
    local_c = _wallet(ADDR_C, 30.0, "local C")
    fake_remote.docs[WALLETS_KEY] = wallets_to_payload([remote_a])
    blob = json.dumps(wallets_to_payload([stale_b, local_c]))
    local_cache.set(WALLETS_KEY, blob)
    fake_remote.fail_posts = True

    loaded = asyncio.run(remote_store.load())

    assert loaded == [stale_b, local_c]
    assert local_cache.get(WALLETS_KEY) == blob
    assert fake_remote.docs[WALLETS_KEY] == wallets_to_payload([remote_a])
    assert remote_store.last_remote_error is not None


def test_reconciliation_drops_duplicate_remote_addresses(remote_store, local_cache, fake_remote):
    first_a = _wallet(ADDR_A, 10.0, "first")
    fake_remote.docs[WALLETS_KEY] = wallets_to_payload([first_a, _wallet(ADDR_A, 99.0, "dup")])
    local_c = _wallet(ADDR_C, 3.0)
    local_cache.set(WALLETS_KEY, json.dumps(wallets_to_payload([local_c])))

    merged = asyncio.run(remote_store.load())

    assert merged == [first_a, local_c]
    assert fake_remote.docs[WALLETS_KEY] == wallets_to_payload([first_a, local_c])


def test_merge_missing_keeps_first_primary_occurrence():
    first = _wallet(ADDR_A, 1.0, "first")
    merged, appended = merge_missing([first, _wallet(ADDR_A, 2.0, "second")], [_wallet(ADDR_B, 3.0)])
    assert [w.owner for w in merged] == ["first", ""]
    assert appended == 1


def test_stored_invalid_addresses_are_skipped(local_store, local_cache):
    payload = wallets_to_payload([_wallet(ADDR_A, 1.0)])
    payload.append({"address": "0xdeadbeef", "owner": "broken", "currentBalance": 5})
    local_cache.set(WALLETS_KEY, json.dumps(payload))
    assert [w.address for w in asyncio.run(local_store.load())] == [ADDR_A]


def test_remote_not_found_is_empty_collection(remote_store, local_cache, fake_remote):
    local_a = _wallet(ADDR_A, 4.0)
    local_cache.set(WALLETS_KEY, json.dumps(wallets_to_payload([local_a])))
    merged = asyncio.run(remote_store.load())
    assert merged == [local_a]
    assert fake_remote.docs[WALLETS_KEY] == wallets_to_payload([local_a])


def test_remote_failure_on_load_returns_local(remote_store, local_cache, fake_remote):
    local_a = _wallet(ADDR_A, 4.0)
    local_cache.set(WALLETS_KEY, json.dumps(wallets_to_payload([local_a])))
    fake_remote.fail = True
    assert asyncio.run(remote_store.load()) == [local_a]
    assert remote_store.last_remote_error is not None


def test_malformed_remote_payload_returns_local(remote_store, local_cache, fake_remote):
    local_a = _wallet(ADDR_A, 4.0)
    local_cache.set(WALLETS_KEY, json.dumps(wallets_to_payload([local_a])))
    fake_remote.docs[WALLETS_KEY] = {"unexpected": "shape"}
    assert asyncio.run(remote_store.load()) == [local_a]
    assert fake_remote.puts == []


def test_save_writes_local_then_remote(remote_store, local_cache, fake_remote):
    wallets = [_wallet(ADDR_A, 1.0)]
    asyncio.run(remote_store.save(wallets))
    assert json.loads(local_cache.get(WALLETS_KEY)) == wallets_to_payload(wallets)
    assert fake_remote.docs[WALLETS_KEY] == wallets_to_payload(wallets)


def test_remote_failure_on_save_keeps_local(remote_store, local_cache, fake_remote):
    fake_remote.fail = True
    wallets = [_wallet(ADDR_A, 1.0)]
    asyncio.run(remote_store.save(wallets))
    assert json.loads(local_cache.get(WALLETS_KEY)) == wallets_to_payload(wallets)
    assert WALLETS_KEY not in fake_remote.docs
    assert "500" in remote_store.last_remote_error


def test_last_sync_prefers_remote_and_falls_back(remote_store, local_cache, fake_remote):
    local_cache.set(LAST_UPDATE_KEY, "2026-10-01T00:00:00.000Z")
    assert asyncio.run(remote_store.get_last_sync()) == "2026-10-01T00:00:00.000Z"

    fake_remote.docs[LAST_UPDATE_KEY] = "2026-10-18T08:00:00.000Z"
    assert asyncio.run(remote_store.get_last_sync()) == "2026-10-18T08:00:00.000Z"
    assert local_cache.get(LAST_UPDATE_KEY) == "2026-10-18T08:00:00.000Z"

    fake_remote.fail = True
    asyncio.run(remote_store.set_last_sync("2026-10-19T08:00:00.000Z"))
    assert asyncio.run(remote_store.get_last_sync()) == "2026-10-19T08:00:00.000Z"


def test_rpc_url_is_local_only(remote_store, local_cache, fake_remote):
    assert remote_store.get_rpc_url("https://default.test") == "https://default.test"
    remote_store.set_rpc_url("https://mine.test")
    assert remote_store.get_rpc_url("https://default.test") == "https://mine.test"
    assert local_cache.get(RPC_URL_KEY) == "https://mine.test"
    assert RPC_URL_KEY not in fake_remote.docs
    assert fake_remote.puts == []


def test_build_wallet_store_selects_backend(settings):
    from dataclasses import replace

    local = build_wallet_store(settings)
    assert isinstance(local.backend, LocalOnlyBackend)
    assert local.remote_enabled() is False

    with_remote = build_wallet_store(
        replace(settings, remote_store_url="https://remote.test", remote_store_key="k")
    )
    assert isinstance(with_remote.backend, LocalRemoteBackend)
    assert with_remote.remote_enabled() is True

    key_only = build_wallet_store(replace(settings, remote_store_key="k"))
    assert key_only.remote_enabled() is False
