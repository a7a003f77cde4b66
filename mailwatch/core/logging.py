"""Logging for mailwatch.

Every component logs through a ``ContextualLogger``: a ``LoggerAdapter`` that carries
a dimension dict (component, history id, ...) and renders it with each record.
"""

import json
import logging
import sys
from typing import Any, MutableMapping, Optional, Tuple

from mailwatch.core.config import settings

LOGGER_NAME = "mailwatch"


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that attaches contextual dimensions to every record.

    Usage:
        log = logger.with_context(component="sync_engine")
        log.info("Starting cycle")
    """

    def __init__(self, logger: logging.Logger, dimensions: Optional[dict] = None):
        """Initialize the adapter.

        Args:
            logger: Underlying stdlib logger
            dimensions: Key/value pairs rendered with every record
        """
        super().__init__(logger, dict(dimensions or {}))
        self.dimensions = dict(dimensions or {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, Any]:
        """Attach dimensions to the record via ``extra``."""
        extra = dict(kwargs.get("extra") or {})
        extra["dimensions"] = {**self.dimensions, **extra.get("dimensions", {})}
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with additional dimensions merged in."""
        return ContextualLogger(self.logger, {**self.dimensions, **dimensions})


class _TextFormatter(logging.Formatter):
    """Plain text formatter that prefixes records with their dimensions."""

    def format(self, record: logging.LogRecord) -> str:
        dimensions = getattr(record, "dimensions", None) or {}
        message = super().format(record)
        if not dimensions:
            return message
        rendered = " ".join(f"{k}={v}" for k, v in dimensions.items())
        return f"[{rendered}] {message}"


class _JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **(getattr(record, "dimensions", None) or {}),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Install a stream handler on the mailwatch logger.

    Safe to call more than once; the previous handler is replaced.

    Args:
        level: Log level name, defaults to ``settings.LOG_LEVEL``
        json_output: Emit JSON lines, defaults to ``settings.LOG_JSON``
    """
    level = (level or settings.LOG_LEVEL).upper()
    json_output = settings.LOG_JSON if json_output is None else json_output

    handler = logging.StreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(_JSONFormatter())
    else:
        handler.setFormatter(
            _TextFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )

    base = logging.getLogger(LOGGER_NAME)
    for existing in list(base.handlers):
        base.removeHandler(existing)
    base.addHandler(handler)
    base.setLevel(level)
    base.propagate = False


logger = ContextualLogger(logging.getLogger(LOGGER_NAME))
