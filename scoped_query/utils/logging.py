"""Logging setup for scoped_query, with optional JSON output."""

import logging
import sys
import json
from typing import Dict, Any
from datetime import datetime, timezone

# Loggers of the database drivers; kept at WARNING unless DEBUG is asked for
DRIVER_LOGGERS = ("psycopg2", "duckdb")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Request context attached by ``ContextLoggerAdapter`` is nested under
    ``"context"`` so it can never shadow the standard keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "extra_fields", None)
        if context:
            log_data["context"] = dict(context)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter used by the CLI."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )


def setup_logging(level: str = "INFO", structured: bool = False) -> None:
    """Send log records to stderr, leaving stdout to command output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        structured: Use structured JSON logging if True
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = StandardFormatter()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    driver_level = logging.WARNING
    if log_level <= logging.DEBUG:
        driver_level = log_level
    for name in DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(driver_level)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Tags every message with the request context, e.g. ``[request_id=r-17]``."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        if "extra" not in kwargs:
            kwargs["extra"] = {}
        kwargs["extra"]["extra_fields"] = self.extra

        if self.extra:
            tags = []
            for key in sorted(self.extra):
                tags.append(f"{key}={self.extra[key]}")
            msg = f"[{' '.join(tags)}] {msg}"

        return msg, kwargs


def get_contextual_logger(name: str, context: Dict[str, Any]) -> ContextLoggerAdapter:
    """Get a logger that carries request context on every record.

    Args:
        name: Logger name
        context: Identifiers of the request (route, request id); never
            caller-supplied data values

    Returns:
        Logger adapter with context
    """
    return ContextLoggerAdapter(logging.getLogger(name), context)
