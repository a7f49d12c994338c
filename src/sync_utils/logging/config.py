"""
Logging setup for sync passes.

Interactive runs log coloured lines to stderr; scheduled runs usually add a
rotating file and switch to JSON lines so pass_id and employee_id can be
searched. Command-line flags win over the LOG_* environment variables.
"""

import logging
import logging.handlers
import os
import sys

from .formatters import ConsoleFormatter, JSONFormatter

# ldap3 logs every PDU at DEBUG; the rest are chatty at INFO
NOISY_LOGGERS = ("urllib3", "requests", "ldap3", "apscheduler")

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_TRUTHY = ("true", "1", "yes")


def _file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = "hris-sync",
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL; unknown names mean INFO
        log_file: Rotating log file, created with its directory if missing
        console_output: Log to stderr
        json_format: JSON lines on every handler instead of text
        app_name: ``app`` field of JSON lines
        max_bytes: Rotation size of the log file
        backup_count: Rotated files kept
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if console_output:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ConsoleFormatter(use_colors=True))
        handlers.append(console)
    if log_file:
        file_handler = _file_handler(log_file, max_bytes, backup_count)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(numeric_level)
        if json_format:
            handler.setFormatter(JSONFormatter(app_name=app_name))
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging initialized: level={level}, file={log_file or 'none'}, "
        f"console={console_output}, json={json_format}"
    )


def configure_from_env(
    level: str | None = None,
    log_file: str | None = None,
    json_format: bool | None = None,
    console_output: bool | None = None,
) -> None:
    """
    Configure logging from LOG_LEVEL, LOG_FILE, LOG_JSON and LOG_CONSOLE.

    Arguments that are not None override the matching variable, so the CLI
    passes its flags straight through.
    """
    if json_format is None:
        json_format = os.getenv("LOG_JSON", "false").lower() in _TRUTHY
    if console_output is None:
        console_output = os.getenv("LOG_CONSOLE", "true").lower() in _TRUTHY

    setup_logging(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        log_file=log_file or os.getenv("LOG_FILE"),
        console_output=console_output,
        json_format=json_format,
    )


def shutdown_logging() -> None:
    """Close and detach the root handlers, releasing the log file."""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except OSError:
            pass
        root.removeHandler(handler)

    logging.shutdown()
