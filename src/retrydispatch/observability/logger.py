"""Structured JSON logger for retrydispatch.

Each record becomes one line of JSON so retry activity can be shipped to a
log pipeline and filtered by attempt, status code or URL without regexes.

Typical structured output::

    {"ts": "2025-07-01T12:00:00.123456+00:00", "level": "WARNING",
     "logger": "retrydispatch.transport", "message": "Retryable response",
     "method": "GET", "url": "https://api.example.com/v2/orders",
     "status_code": 429, "attempt": 1, "retry_after_ms": 2000,
     "delay_ms": 2713}

Usage::

    from retrydispatch.observability import get_logger

    log = get_logger("retrydispatch.transport")
    log.warning("Retryable response", extra={"extra_fields": {"attempt": 1}})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from retrydispatch.utils.redact import redact_mapping


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  Fields passed through ``extra={"extra_fields": {...}}``
    are merged into the top-level object after sensitive keys (tokens,
    authorization headers, ...) have been masked.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(record, "extra_fields", None)
        if extra_fields:
            log_entry.update(redact_mapping(extra_fields))

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


# One handler per logger name so repeated get_logger() calls stay idempotent.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "retrydispatch",
    *,
    level: int | str = logging.INFO,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name, e.g. ``"retrydispatch.transport"``.
    level:
        Minimum level, as an ``int`` or a case-insensitive name (``"DEBUG"``).
        Only applied the first time a given *name* is configured.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        The logger, with exactly one :class:`StructuredFormatter` handler.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        _configured_loggers.add(name)

    return logger
