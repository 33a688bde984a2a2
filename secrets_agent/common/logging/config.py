"""Logging setup for the secrets agent.

configure_logging() is called once by the listener entry point. Library
modules never configure logging; they use ``logging.getLogger(__name__)`` and
pass context through ``extra=``.
"""

import logging
import sys

from secrets_agent.common.logging.context import get_trace_id
from secrets_agent.common.logging.formatter import JSONFormatter

# Chatty SDK loggers, capped at WARNING unless DEBUG is requested
_SDK_LOGGERS = ("botocore", "boto3", "urllib3")


class TraceIDFilter(logging.Filter):
    """Stamp the current request's trace ID on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = get_trace_id()
        return True


def configure_logging(service_name: str, log_level: str = "INFO") -> logging.Logger:
    """Install a JSON stdout handler with trace IDs on the root logger.

    Args:
        service_name: Name stamped on every record
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured root logger

    Raises:
        ValueError: If log_level is invalid
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    # Replace, not stack, handlers when called again
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter(service_name=service_name))
    handler.addFilter(TraceIDFilter())
    root_logger.addHandler(handler)

    sdk_level = numeric_level
    if numeric_level > logging.DEBUG:
        sdk_level = max(logging.WARNING, numeric_level)
    for name in _SDK_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)

    return root_logger
