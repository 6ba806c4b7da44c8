"""
Structured logging for DAI Monitor.

JSON logs with timestamp and event_type. Use get_logger() in all modules.
"""

from backend_daimonitor.monitor_logging.logger import bind_wallet, get_logger

__all__ = ["bind_wallet", "get_logger"]
