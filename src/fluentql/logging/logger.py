"""JSON logging for fluentql.

Every record emitted under the ``fluentql`` logger namespace is written as a
single JSON object: the statement timings, table names and retry attempts the
engine passes as ``extra`` become top-level keys, and the active OpenTelemetry
span (if any) contributes ``trace_id``/``span_id`` so SQL logs line up with
traces.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from opentelemetry import trace

from fluentql.settings import get_settings

PACKAGE_LOGGER = "fluentql"


def _build_reserved_keys() -> Set[str]:
    """Attributes every ``LogRecord`` carries; only the rest count as extras."""
    blank = logging.LogRecord(
        name=PACKAGE_LOGGER,
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    )
    return set(blank.__dict__) | {"asctime", "message"}


_RESERVED_LOG_RECORD_KEYS = _build_reserved_keys()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class CustomJsonFormatter(logging.Formatter):
    """Render a record, its ``extra`` fields and the current trace ids as JSON.

    Values json cannot encode natively (``Decimal``, ``datetime`` bound as
    statement parameters) fall back to ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_KEYS
        }
        payload["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        payload["level"] = record.levelname
        payload["logger"] = record.name
        payload["message"] = record.getMessage()

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            payload["trace_id"] = format(span_context.trace_id, "032x")
            payload["span_id"] = format(span_context.span_id, "016x")

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """Send ``fluentql`` logs to stdout as JSON.

    Only the package logger is configured; it stops propagating so the host
    application's root handlers do not print each record a second time.

    Args:
        level: Log level name. Defaults to ``FLUENTQL_LOG_LEVEL`` through
            ``get_settings().log_level``.
    """
    level = (level or get_settings().log_level).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "fluentql_json": {"()": "fluentql.logging.logger.CustomJsonFormatter"},
            },
            "filters": {
                "fluentql_context": {"()": "fluentql.logging.filters.ContextFilter"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "fluentql_json",
                    "filters": ["fluentql_context"],
                    "stream": "ext://sys.stdout",
                }
            },
            "loggers": {
                PACKAGE_LOGGER: {
                    "level": level,
                    "handlers": ["console"],
                    "propagate": False,
                }
            },
        }
    )
