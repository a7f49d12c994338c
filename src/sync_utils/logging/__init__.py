"""
Structured logging configuration for the HRIS directory sync

Provides JSON-formatted logging for unattended scheduled passes and a
coloured console format for interactive runs.

Usage:
    from sync_utils.logging import configure_from_env

    configure_from_env(level="INFO", log_file="/var/log/hris-sync/sync.log")

    logger = logging.getLogger(__name__)
    logger.info("Applied diff", extra={"employee_id": "MTI123456"})
"""

from .config import configure_from_env, setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "configure_from_env",
    "shutdown_logging",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
