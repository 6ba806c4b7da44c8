"""
Main entrypoint: API server, one-off sync, or bulk address upload.

    python main.py serve                 # FastAPI on API_HOST:API_PORT (auto-sync on startup)
    python main.py sync                  # load, refresh every wallet, save
    python main.py upload wallets.txt    # register addresses from a file (one per line)

Env: POLYGON_RPC_URL, LOCAL_CACHE_PATH, REMOTE_STORE_URL, REMOTE_STORE_KEY,
GEMINI_API_KEY, API_HOST, API_PORT, LOG_LEVEL, LOG_FORMAT.

API-only: uvicorn backend_daimonitor.api_server.server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Configure structured logging before other imports that may log
from backend_daimonitor.monitor_logging import get_logger

logger = get_logger("main")


async def _run_sync() -> int:
    from backend_daimonitor.config import get_settings
    from backend_daimonitor.core.exceptions import ChainReadError
    from backend_daimonitor.sync.orchestrator import build_orchestrator

    orch = build_orchestrator(get_settings())
    wallets = await orch.store.load()
    if not wallets:
        logger.warning("main_sync_no_wallets")
        return 0
    try:
        updated = await orch.sync_now(wallets)
    except ChainReadError as e:
        logger.error("main_sync_failed", error=str(e))
        return 1
    logger.info("main_sync_done", wallet_count=len(updated), last_sync=orch.last_sync)
    return 0


async def _run_upload(path: Path) -> int:
    from backend_daimonitor.config import get_settings
    from backend_daimonitor.core.exceptions import ChainReadError
    from backend_daimonitor.intake.parser import parse_address_lines
    from backend_daimonitor.sync.orchestrator import build_orchestrator

    entries = parse_address_lines(path.read_text(encoding="utf-8", errors="replace"))
    if not entries:
        logger.error("main_upload_no_addresses", path=str(path))
        return 1
    orch = build_orchestrator(get_settings())
    existing = await orch.store.load()
    try:
        merged = await orch.register_addresses(entries, existing)
    except ChainReadError as e:
        logger.error("main_upload_failed", error=str(e))
        return 1
    logger.info("main_upload_done", parsed=len(entries), wallet_count=len(merged))
    return 0


def _serve() -> int:
    import uvicorn

    from backend_daimonitor.api_server.server import app
    from backend_daimonitor.config import get_settings

    settings = get_settings()
    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Polygon DAI balance monitor")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="Run the API server (default)")
    sub.add_parser("sync", help="Refresh balances for every tracked wallet")
    upload = sub.add_parser("upload", help="Register addresses from a text file")
    upload.add_argument("file", type=Path, help="One address per line, optionally with a label")
    args = parser.parse_args(argv)

    if args.command == "sync":
        return asyncio.run(_run_sync())
    if args.command == "upload":
        if not args.file.is_file():
            logger.error("main_upload_missing_file", path=str(args.file))
            return 1
        return asyncio.run(_run_upload(args.file))
    return _serve()


if __name__ == "__main__":
    sys.exit(main())
