"""Centralized JSON formatter and logger setup for structured logging."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

_RESERVED_ATTRS = {
    "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno",
    "funcName", "created", "msecs", "relativeCreated", "thread",
    "threadName", "processName", "process", "name", "message",
    "taskName",
}

_PACKAGE_LOGGER = "plotpipe"


class JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects.

    Merges any `extra=` kwargs directly into the payload, so pipeline steps
    can attach row and layer counts that stay queryable downstream.
    """

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "ts": stamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(_extras(record))

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        # group keys are tuples and counts may be numpy scalars
        return json.dumps(payload, default=str)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached through ``extra=``; standard record attributes are skipped."""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS}


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Attach a single stream handler to the ``plotpipe`` logger.

    Calling this more than once replaces the previously installed handler
    instead of stacking duplicates.

    Args:
        level: Logging level for the package logger.
        json_format: Use :class:`JsonFormatter` when ``True``; otherwise a
            plain ``"%(levelname)s %(name)s: %(message)s"`` format.
        stream: Target stream. Defaults to ``sys.stderr``.

    Returns:
        The configured ``plotpipe`` logger.
    """
    logger = logging.getLogger(_PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_plotpipe_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handler._plotpipe_handler = True  # type: ignore[attr-defined]

    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
