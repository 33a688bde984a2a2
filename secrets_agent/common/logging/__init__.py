"""Structured JSON logging with trace ID correlation.

Usage:
    # At listener startup
    from secrets_agent.common.logging import configure_logging
    configure_logging(service_name="secrets-agent", log_level="INFO")

    # Anywhere else
    logger = logging.getLogger(__name__)
    logger.warning("Upstream call failed", extra={"secret_id": secret_id})
"""

from secrets_agent.common.logging.config import TraceIDFilter, configure_logging
from secrets_agent.common.logging.context import (
    TRACE_ID_HEADER,
    clear_trace_id,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
)
from secrets_agent.common.logging.formatter import JSONFormatter
from secrets_agent.common.logging.middleware import (
    ASGITraceIDMiddleware,
    add_trace_id_middleware,
)

__all__ = [
    "configure_logging",
    "TraceIDFilter",
    "JSONFormatter",
    "TRACE_ID_HEADER",
    "generate_trace_id",
    "get_trace_id",
    "set_trace_id",
    "clear_trace_id",
    "ASGITraceIDMiddleware",
    "add_trace_id_middleware",
]
