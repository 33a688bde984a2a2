"""
Request dependencies for the secrets listener.

The SSRF token check guards every secret route: a request must carry one of
the configured token headers with the expected value. This blocks requests
forwarded by a compromised application (server-side request forgery), which
cannot set arbitrary headers.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Request

from secrets_agent.caching.exceptions import ClassifiedError
from secrets_agent.caching.manager import CacheManager

logger = logging.getLogger(__name__)

ACCESS_DENIED = "AccessDeniedException"


def bad_token_error() -> ClassifiedError:
    return ClassifiedError(False, 403, ACCESS_DENIED, "Bad Token")


def verify_ssrf_token(request: Request) -> None:
    """
    Reject the request unless a configured SSRF header carries the token.

    Raises:
        ClassifiedError: 403 AccessDeniedException "Bad Token"
    """
    expected: str = request.app.state.ssrf_token
    for header in request.app.state.ssrf_headers:
        supplied = request.headers.get(header)
        if supplied is not None and hmac.compare_digest(
            supplied.encode("utf-8"), expected.encode("utf-8")
        ):
            return

    logger.warning(
        "Rejected request without a valid SSRF token",
        extra={"path": request.url.path},
    )
    raise bad_token_error()


def get_manager(request: Request) -> CacheManager:
    """Return the CacheManager owned by the running application."""
    manager: CacheManager = request.app.state.manager
    return manager
