"""Per-request trace ID held in a context variable.

The listener middleware sets it for each request (from X-Trace-ID or freshly
generated) and TraceIDFilter stamps it on every log record emitted while the
request is served, including records from the cache and the AWS source.
"""

import contextvars
import uuid

_trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

# HTTP header name for trace ID propagation
TRACE_ID_HEADER = "X-Trace-ID"


def generate_trace_id() -> str:
    return str(uuid.uuid4())


def get_trace_id() -> str | None:
    return _trace_id_var.get()


def set_trace_id(trace_id: str) -> None:
    """Set the trace ID for the current context.

    Raises:
        ValueError: If trace_id is empty
    """
    if not trace_id:
        raise ValueError("Trace ID cannot be empty")
    _trace_id_var.set(trace_id)


def clear_trace_id() -> None:
    _trace_id_var.set(None)
