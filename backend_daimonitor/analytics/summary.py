"""
AI narrative summary of the tracked wallets (Gemini generateContent REST API).

Fails open: a missing key returns setup instructions and any request or
response problem returns a fixed failure message. Only aggregates (totals,
top 5 accumulating / decreasing wallets by 7-day change) are sent.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

import httpx

from backend_daimonitor.analytics.stats import change_7d
from backend_daimonitor.config.env import DEFAULT_GEMINI_MODEL
from backend_daimonitor.models import WalletRecord
from backend_daimonitor.monitor_logging import get_logger

logger = get_logger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_TIMEOUT_SEC = 60.0
TOP_N = 5

MISSING_KEY_MESSAGE = (
    "AI Analysis Unavailable.\n\n"
    "To enable this feature, add your Gemini API key to the `.env` file in the project root:\n\n"
    "GEMINI_API_KEY=your_key_here\n\n"
    "(The rest of the monitor works normally without it.)"
)
FAILURE_MESSAGE = (
    "Failed to generate analysis. Please check your API key configuration or try again later."
)
NO_OUTPUT_MESSAGE = "No analysis generated."
EMPTY_DATASET_MESSAGE = "No wallets are tracked yet; upload addresses to enable analysis."


def _movers(wallets: Sequence[WalletRecord], descending: bool) -> list[dict[str, Any]]:
    ranked = sorted(wallets, key=change_7d, reverse=descending)[:TOP_N]
    return [
        {"addr": w.address, "bal": w.current_balance, "change": change_7d(w)}
        for w in ranked
    ]


def build_prompt(wallets: Sequence[WalletRecord]) -> str:
    total = sum(w.current_balance for w in wallets)
    return (
        f"I have a dataset of {len(wallets)} Polygon wallets holding DAI stablecoin.\n"
        f"Total DAI tracked: {total:,.2f}.\n\n"
        "Top 5 Accumulating Wallets (Address, Balance, 7D Change):\n"
        f"{json.dumps(_movers(wallets, descending=True))}\n\n"
        "Top 5 Decreasing Wallets (Address, Balance, 7D Change):\n"
        f"{json.dumps(_movers(wallets, descending=False))}\n\n"
        "Please provide a concise financial executive summary suitable for a crypto fund manager.\n"
        "Focus on accumulation trends vs selling pressure. Are the whales accumulating or dumping?\n"
        "Format the output with Markdown. Keep it under 200 words."
    )


def _extract_text(payload: Any) -> str:
    candidates = payload.get("candidates") if isinstance(payload, dict) else None
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


async def summarize_wallets(
    wallets: Sequence[WalletRecord],
    *,
    api_key: str,
    model: str = DEFAULT_GEMINI_MODEL,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Return a Markdown summary, or one of the fixed fallback messages."""
    if not api_key:
        return MISSING_KEY_MESSAGE
    if not wallets:
        return EMPTY_DATASET_MESSAGE
    body = {"contents": [{"parts": [{"text": build_prompt(wallets)}]}]}
    kwargs: dict[str, Any] = {"timeout": httpx.Timeout(timeout_sec)}
    if transport is not None:
        kwargs["transport"] = transport
    try:
        async with httpx.AsyncClient(**kwargs) as client:
            resp = await client.post(
                GEMINI_ENDPOINT.format(model=model),
                json=body,
                headers={"x-goog-api-key": api_key},
            )
            resp.raise_for_status()
            text = _extract_text(resp.json())
    except (httpx.HTTPError, ValueError, AttributeError, IndexError, TypeError) as e:
        logger.warning("ai_summary_failed", model=model, error=str(e))
        return FAILURE_MESSAGE
    logger.info("ai_summary_generated", model=model, wallet_count=len(wallets), chars=len(text))
    return text or NO_OUTPUT_MESSAGE
