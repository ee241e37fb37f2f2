"""
Logging helpers for the Chimera gateway.

Every module obtains its logger through :func:`get_logger` so that the
installation's logs share one format (JSON by default, plain text when
``LOG_FORMAT=text``) and carry a request id.

Usage:
    from chimera.utils.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Generation attempt failed", extra={"provider": "openai"})

    with LogContext(request_id="gen-42"):
        logger.info("Trying fallback provider")
"""

import json
import logging
import os
import sys
import uuid
from typing import Any, Dict, Optional, Union

# Attributes present on every LogRecord; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "request_id", "context"}


class RequestContextFilter(logging.Filter):
    """
    Filter that stamps a request id on every record that lacks one.
    """

    def __init__(self, request_id: Optional[str] = None):
        super().__init__()
        self.request_id = request_id or str(uuid.uuid4())

    def filter(self, record):
        context = getattr(record, "context", None) or {}
        record.request_id = getattr(
            record, "request_id", context.get("request_id", self.request_id)
        )
        return True


class JsonFormatter(logging.Formatter):
    """
    Format log records as one JSON object per line.
    """

    def format(self, record):
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "request_id": getattr(record, "request_id", "-"),
        }

        log_data.update(getattr(record, "context", None) or {})
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logger(
    name: str,
    level: Union[int, str] = None,
    log_format: str = None,
    request_id: Optional[str] = None,
    add_console_handler: bool = True,
) -> logging.Logger:
    """
    Configure and return a logger with the specified settings.

    Args:
        name: The name of the logger (usually __name__)
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: The format to use (json or text)
        request_id: Optional request ID for tracking related log entries
        add_console_handler: Whether to add a console handler

    Returns:
        A configured logger instance
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_format = log_format or os.getenv("LOG_FORMAT", "json")

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Re-configuring must not stack handlers or filters
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    for existing in logger.filters[:]:
        logger.removeFilter(existing)

    logger.addFilter(RequestContextFilter(request_id))

    text_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(request_id)s] - %(name)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    formatter = JsonFormatter() if log_format.lower() == "json" else text_formatter

    if add_console_handler:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger


def get_logger(
    name: str, level: Union[int, str] = None, request_id: Optional[str] = None
) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: The name of the logger (usually __name__)
        level: Override the default logging level for this logger
        request_id: Optional request ID for tracking related log entries

    Returns:
        A configured logger instance
    """
    return setup_logger(name, level=level, request_id=request_id)


class LogContext:
    """
    Context manager for temporarily adding context data to logs.

    Usage:
        with LogContext(request_id="abc", identity="ele_back"):
            logger.info("Classifying image")  # includes the context data
    """

    def __init__(self, **context):
        self.context = context
        self.old_factory = None

    def __enter__(self):
        self.old_factory = logging.getLogRecordFactory()

        old_factory = self.old_factory
        context = self.context

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            merged = dict(getattr(record, "context", None) or {})
            merged.update(context)
            record.context = merged
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        logging.setLogRecordFactory(self.old_factory)
