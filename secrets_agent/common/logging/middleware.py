"""ASGI middleware for trace ID extraction and injection.

Each HTTP request served by the listener runs with a trace ID in the logging
context. The ID comes from the caller's X-Trace-ID header when present and is
echoed back on the response, error responses included.

Example:
    >>> from fastapi import FastAPI
    >>> from secrets_agent.common.logging.middleware import add_trace_id_middleware
    >>>
    >>> app = FastAPI()
    >>> add_trace_id_middleware(app)
"""

import logging
import time
from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any

from fastapi import FastAPI
from starlette.types import ASGIApp

from secrets_agent.common.logging.context import (
    TRACE_ID_HEADER,
    clear_trace_id,
    generate_trace_id,
    set_trace_id,
)

logger = logging.getLogger(__name__)

Message = MutableMapping[str, Any]

_HEADER_KEY = TRACE_ID_HEADER.lower().encode()


class ASGITraceIDMiddleware:
    """Low-level ASGI middleware managing per-request trace IDs.

    Works below FastAPI's exception handlers so the header is present on every
    response. Also emits one access log line per request with the status
    code and duration; the request path is logged, query strings are not.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(
        self,
        scope: MutableMapping[str, Any],
        receive: Callable[[], Awaitable[Message]],
        send: Callable[[Message], Awaitable[None]],
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        trace_id_bytes = headers.get(_HEADER_KEY)
        trace_id = trace_id_bytes.decode("latin-1") if trace_id_bytes else generate_trace_id()
        set_trace_id(trace_id)

        status_code = 500
        started = time.perf_counter()

        async def send_with_trace_id(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_headers = list(message.get("headers", []))
                response_headers.append((_HEADER_KEY, trace_id.encode("latin-1")))
                message["headers"] = response_headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_trace_id)
        finally:
            logger.info(
                "Request handled",
                extra={
                    "method": scope.get("method"),
                    "path": scope.get("path"),
                    "status_code": status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                },
            )
            clear_trace_id()


def add_trace_id_middleware(app: FastAPI) -> None:
    """Install ASGITraceIDMiddleware on a FastAPI application."""
    app.add_middleware(ASGITraceIDMiddleware)
