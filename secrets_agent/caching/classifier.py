"""
Error classification and translation for the secrets caching layer.

Every failure raised on the fetch path ends up here. ``classify()`` maps it
into a ``ClassifiedError`` with a transient flag (used by the cache's
stale-serve policy), the HTTP status returned to the caller, and the wire
error body.

Classification rules (first match wins):
    - ClassifiedError          → returned unchanged
    - InputError               → permanent, 400, error code + description
    - SourceFailure TIMEOUT    → transient, 504, TimeoutError / "Timeout"
    - SourceFailure IO         → transient, 502, ConnectionError / "Read Error"
    - SourceFailure RESPONSE   → transient, 502, ConnectionError / "Response Error"
    - SourceFailure SERVICE    → 500 if code contains "Internal", 404 if it
                                 contains "NotFound", else 400; transient iff 5xx
    - SerializationError       → permanent, 500, InternalFailure
    - anything else            → permanent, 500, InternalFailure (cause logged)

Security:
    - InternalFailure bodies never carry a message; the raw cause is only
      logged internally.
"""

from __future__ import annotations

import logging

from secrets_agent.caching.exceptions import (
    INTERNAL_FAILURE,
    ClassifiedError,
    FailureKind,
    InputError,
    SerializationError,
    SourceFailure,
)

logger = logging.getLogger(__name__)

_DEFAULT_SERVICE_CODE = "InternalError"


def _service_status(code: str) -> int:
    if "Internal" in code:
        return 500
    if "NotFound" in code:
        return 404
    return 400


def _internal(secret_id: str | None) -> ClassifiedError:
    return ClassifiedError(False, 500, INTERNAL_FAILURE, "", secret_id=secret_id)


def classify(failure: BaseException) -> ClassifiedError:
    """
    Translate an arbitrary failure into a ClassifiedError.

    Deterministic and side-effect-free apart from diagnostic logging of
    internal/unclassified failures.

    Args:
        failure: Exception raised anywhere on the fetch path

    Returns:
        ClassifiedError describing the failure for callers

    Example:
        >>> err = classify(SourceFailure(FailureKind.TIMEOUT))
        >>> (err.transient, err.http_status, err.body)
        (True, 504, '{"__type":"TimeoutError", "message":"Timeout"}')
    """
    if isinstance(failure, ClassifiedError):
        return failure

    secret_id = failure.secret_id if isinstance(failure, SourceFailure | InputError) else None

    if isinstance(failure, InputError):
        return ClassifiedError(False, 400, failure.code, failure.message)

    if isinstance(failure, SourceFailure):
        if failure.kind is FailureKind.TIMEOUT:
            return ClassifiedError(True, 504, "TimeoutError", "Timeout", secret_id=secret_id)
        if failure.kind is FailureKind.IO:
            return ClassifiedError(True, 502, "ConnectionError", "Read Error", secret_id=secret_id)
        if failure.kind is FailureKind.RESPONSE:
            return ClassifiedError(
                True, 502, "ConnectionError", "Response Error", secret_id=secret_id
            )
        if failure.kind is FailureKind.SERVICE:
            code = failure.code or _DEFAULT_SERVICE_CODE
            status = _service_status(code)
            # The raw upstream status decides retry eligibility when known
            upstream_status = failure.http_status if failure.http_status is not None else status
            return ClassifiedError(
                upstream_status >= 500,
                status,
                code,
                failure.service_message or "",
                secret_id=secret_id,
            )
        logger.error(
            "Unclassified upstream failure",
            extra={"secret_id": secret_id, "kind": failure.kind.value, "detail": failure.message},
        )
        return _internal(secret_id)

    if isinstance(failure, SerializationError):
        logger.error(
            "JSON serialization error",
            extra={"secret_id": failure.secret_id, "detail": failure.message},
        )
        return _internal(failure.secret_id)

    logger.error(
        "Internal failure",
        exc_info=(type(failure), failure, failure.__traceback__),
    )
    return _internal(None)


def is_transient(failure: BaseException) -> bool:
    """
    Return True if the failure is presumed possibly self-correcting.

    Transient = timeouts, response-parse failures, IO dispatch failures and
    5xx service errors. Everything else is permanent.
    """
    if isinstance(failure, SourceFailure) and failure.kind is FailureKind.OTHER:
        return False
    if isinstance(failure, SourceFailure | ClassifiedError):
        return classify(failure).transient
    return False
