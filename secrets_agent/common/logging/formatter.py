"""JSON log formatter for the secrets agent.

One JSON object per line:

    {"timestamp": "2026-10-19T10:30:00.000Z", "level": "WARNING",
     "service": "secrets-agent", "trace_id": "abc123",
     "message": "Serving stale secret after transient upstream failure",
     "context": {"secret_id": "prod/database/password", "http_status": 504},
     "source": {"file": ".../cache.py", "line": 201, "function": "_refresh"}}

Whatever is passed through ``extra=`` lands in "context". Only secret ids go
there, never secret values.
"""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Attributes of a bare LogRecord; anything else on a record came from extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "trace_id",
}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON tagged with the service name."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self.service_name,
            "trace_id": getattr(record, "trace_id", None),
            "message": record.getMessage(),
        }

        context = {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
        if context:
            entry["context"] = context

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        entry["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }
        return json.dumps(entry, default=str)
