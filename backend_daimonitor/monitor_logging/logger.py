"""
Structured logging: timestamp, service, event_type and lowercase wallet fields.

structlog with ISO timestamps, log level, and consistent keys so sync runs can
be followed in aggregated logs. Modules call get_logger(__name__) and log a
snake_case event name plus keyword fields:

    logger.info("sync_completed", wallet_count=12, observed_at="...")

Uses only stdlib logging and structlog; no backend_daimonitor imports to avoid
circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)

# json for production; console for local runs
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

SERVICE_NAME = "daimonitor"
WALLET_FIELDS = ("wallet", "address")


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _add_service(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _normalize_wallet(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Lowercase wallet/address fields so one wallet greps the same across events."""
    for key in WALLET_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = value.strip().lower()
    return event_dict


def configure_structlog() -> None:
    """Configure structlog once: timestamp, level, event_type, JSON or console output."""
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _add_service,
        _normalize_wallet,
        _normalize_event,
    ]
    if LOG_FORMAT == "json":
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        )
    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structured logger bound to the given module name."""
    return structlog.get_logger(name).bind(logger=name)


def bind_wallet(logger: structlog.BoundLogger, address: str) -> structlog.BoundLogger:
    """Return logger with the wallet address bound to all subsequent calls."""
    return logger.bind(wallet=address)
