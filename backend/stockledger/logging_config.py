"""
StockLedger - Logging Configuration

Structured logging for the reconciliation services.

- JSON lines (default) or plain text, selected by LOG_FORMAT
- Everything passed via ``extra=`` lands in the JSON payload
- Optional file handler via LOG_FILE

Usage:
    from stockledger.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Receipt posted", extra={"po_line_id": 12, "quantity": "40"})
"""
import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from stockledger.core.config import settings

_LOGGER_PREFIX = "stockledger"
_configured = False

# Attributes present on every LogRecord; anything else came from ``extra=``
_STDLIB_KEYS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Handle Decimal, date and datetime in log payloads."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if hasattr(obj, "isoformat"):
            return obj.isoformat()
        return super().default(obj)


class JSONFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder, default=str)


class TextFormatter(logging.Formatter):
    """Human readable format for local development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """
    Configure the ``stockledger`` logger hierarchy.

    Safe to call more than once; only the first call (or a call with
    ``force=True``) installs handlers.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        log_format: 'json' or 'text', defaults to settings.LOG_FORMAT
        log_file: Optional file path, defaults to settings.LOG_FILE

    Returns:
        The configured root project logger
    """
    global _configured

    root = logging.getLogger(_LOGGER_PREFIX)
    if _configured and not force:
        return root

    level = (level or settings.LOG_LEVEL).upper()
    log_format = (log_format or settings.LOG_FORMAT).lower()
    log_file = log_file or settings.LOG_FILE

    formatter: logging.Formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    for handler in list(root.handlers):
        root.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)
    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the stockledger namespace."""
    if name.startswith(_LOGGER_PREFIX):
        return logging.getLogger(name)
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")
