"""
Secrets Agent Exception Hierarchy.

This module defines every exception that crosses a component boundary in the
caching layer. Upstream failures enter as ``SourceFailure`` (a neutral shape
built by the SecretsSource adapter), get classified, and leave as
``ClassifiedError`` carrying an HTTP status and the wire error body.

Exception hierarchy:
    SecretsAgentError (base)
    ├── ClassifiedError - Classified failure returned to callers (status + wire body)
    ├── SourceFailure - Raw upstream failure (timeout, io, response, service, other)
    ├── InputError - Malformed request parameters (400)
    └── SerializationError - Secret payload could not be encoded (500)

Security:
    - Secret values are NEVER placed in exception messages (only secret ids)
    - Internal failure detail never reaches the wire body (see classifier.py)
"""

from __future__ import annotations

import json
from enum import Enum


class SecretsAgentError(Exception):
    """
    Base exception for all secrets agent errors.

    Attributes:
        message: Human-readable error message (MUST NOT include secret values)
        secret_id: Secret id the failure relates to, if known
    """

    def __init__(self, message: str, secret_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.secret_id = secret_id

    def __str__(self) -> str:
        """
        Format error message with the secret id (never the value).

        Example:
            >>> str(SecretsAgentError("Timeout", "db/password"))
            'Timeout (secret: db/password)'
        """
        if self.secret_id:
            return f"{self.message} (secret: {self.secret_id})"
        return self.message


class FailureKind(str, Enum):
    """Kind of raw upstream failure reported by a SecretsSource."""

    TIMEOUT = "timeout"
    IO = "io"
    RESPONSE = "response"
    SERVICE = "service"
    OTHER = "other"


class SourceFailure(SecretsAgentError):
    """
    Raw failure reported by a SecretsSource adapter.

    Adapters translate their SDK-specific errors into this single shape so the
    classifier never depends on a particular client library.

    Attributes:
        kind: Failure kind (timeout, io, response, service, other)
        http_status: HTTP status of the upstream response, if one was received
        code: Service-declared error code (SERVICE failures only)
        service_message: Service-declared error message (SERVICE failures only)

    Example:
        >>> raise SourceFailure(
        ...     FailureKind.SERVICE,
        ...     http_status=400,
        ...     code="ResourceNotFoundException",
        ...     service_message="Secrets Manager can't find the specified secret.",
        ...     secret_id="prod/db/password",
        ... )
    """

    def __init__(
        self,
        kind: FailureKind,
        *,
        http_status: int | None = None,
        code: str | None = None,
        service_message: str | None = None,
        secret_id: str | None = None,
        detail: str | None = None,
    ) -> None:
        parts = [f"Upstream {kind.value} failure"]
        if code:
            parts.append(code)
        if http_status is not None:
            parts.append(f"HTTP {http_status}")
        if detail:
            parts.append(detail)
        super().__init__(": ".join(parts), secret_id=secret_id)
        self.kind = kind
        self.http_status = http_status
        self.code = code
        self.service_message = service_message


class InputError(SecretsAgentError):
    """
    Raised when a request parameter is missing or cannot be parsed.

    The description is safe to return to the caller; it describes the caller's
    own input and never contains secret material.
    """

    def __init__(self, description: str, code: str = "InvalidParameterException") -> None:
        if not description:
            raise TypeError("description must be a non-empty string")
        super().__init__(description)
        self.code = code


class SerializationError(SecretsAgentError):
    """Raised when a fetched secret payload cannot be encoded for the wire."""


class ClassifiedError(SecretsAgentError):
    """
    A failure translated into the stable taxonomy callers see.

    This is what the cache and the orchestrator raise. ``body`` renders the
    exact wire error body (Coral JSON 1.1 compatible).

    Attributes:
        transient: True if the failure is presumed possibly self-correcting
        http_status: HTTP status returned to the caller
        wire_code: Modeled exception name (``__type``)
        wire_message: Message surfaced to the caller (may be empty)

    Example:
        >>> err = ClassifiedError(True, 504, "TimeoutError", "Timeout")
        >>> err.body
        '{"__type":"TimeoutError", "message":"Timeout"}'
    """

    def __init__(
        self,
        transient: bool,
        http_status: int,
        wire_code: str,
        wire_message: str = "",
        secret_id: str | None = None,
    ) -> None:
        super().__init__(f"{wire_code} (HTTP {http_status})", secret_id=secret_id)
        self.transient = transient
        self.http_status = http_status
        self.wire_code = wire_code
        self.wire_message = wire_message

    def clone(self) -> ClassifiedError:
        """Return an equal, independent instance (for re-raising in another thread)."""
        return ClassifiedError(
            self.transient,
            self.http_status,
            self.wire_code,
            self.wire_message,
            secret_id=self.secret_id,
        )

    @property
    def body(self) -> str:
        """Wire error body for this failure."""
        return err_response(self.wire_code, self.wire_message)

    def __repr__(self) -> str:
        return (
            f"ClassifiedError(transient={self.transient!r}, http_status={self.http_status!r}, "
            f"wire_code={self.wire_code!r}, wire_message={self.wire_message!r})"
        )


INTERNAL_FAILURE = "InternalFailure"


def err_response(wire_code: str, message: str) -> str:
    """
    Format an error response body in Coral JSON 1.1 format.

    InternalFailure bodies and bodies without a message carry only the
    ``__type`` field; named exceptions carry their message verbatim.

    Args:
        wire_code: Modeled exception name (e.g. ResourceNotFoundException)
        message: Error message, or "" for none

    Returns:
        The JSON 1.1 response body

    Example:
        >>> err_response("InternalFailure", "boom")
        '{"__type":"InternalFailure"}'
        >>> err_response("AccessDeniedException", "Access to KMS is not allowed")
        '{"__type":"AccessDeniedException", "message":"Access to KMS is not allowed"}'
    """
    if wire_code == INTERNAL_FAILURE or not message:
        return f'{{"__type":{json.dumps(wire_code)}}}'
    return f'{{"__type":{json.dumps(wire_code)}, "message":{json.dumps(message)}}}'
