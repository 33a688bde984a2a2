"""
HTTP routes for the secrets listener.

Endpoints:
- GET /ping - Liveness check (no token required)
- GET /secretsmanager/get?secretId=... - Fetch a secret (query parameter form)
- GET {path_prefix}{secret_id} - Fetch a secret (path form, default /v1/)

Both fetch routes accept optional versionId, versionStage and refreshNow
query parameters and return the serialized GetSecretValue payload. Failures
are raised as ClassifiedError and rendered by the application's exception
handler.

Handlers are plain ``def`` so FastAPI runs them on its thread pool; the
cache blocks on upstream calls.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import PlainTextResponse

from secrets_agent.caching.exceptions import InputError
from secrets_agent.caching.manager import CacheManager
from secrets_agent.server.dependencies import get_manager, verify_ssrf_token

logger = logging.getLogger(__name__)

SECRETS_MANAGER_GET_PATH = "/secretsmanager/get"

health_router = APIRouter(tags=["Health"])


@health_router.get("/ping", response_class=PlainTextResponse)
def ping() -> str:
    """Liveness check."""
    return "healthy"


def parse_refresh_now(raw: str | None) -> bool:
    """
    Parse the refreshNow query parameter.

    Raises:
        InputError: The value is neither true nor false
    """
    if raw is None:
        return False
    value = raw.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise InputError("refreshNow must be true or false")


def _serve(
    manager: CacheManager,
    secret_id: str | None,
    version_id: str | None,
    version_stage: str | None,
    refresh_now: str | None,
) -> Response:
    if not secret_id:
        raise InputError("secretId is required")
    body = manager.fetch(
        secret_id,
        version=version_id or None,
        label=version_stage or None,
        refresh_now=parse_refresh_now(refresh_now),
    )
    return Response(content=body, media_type="application/json")


def build_secrets_router(path_prefix: str) -> APIRouter:
    """
    Build the token-protected secret routes.

    Args:
        path_prefix: Prefix of the path-form route, starting and ending with /

    Returns:
        Router with both fetch routes registered
    """
    router = APIRouter(tags=["Secrets"], dependencies=[Depends(verify_ssrf_token)])

    def get_secret_by_query(
        manager: Annotated[CacheManager, Depends(get_manager)],
        secret_id: Annotated[str | None, Query(alias="secretId")] = None,
        version_id: Annotated[str | None, Query(alias="versionId")] = None,
        version_stage: Annotated[str | None, Query(alias="versionStage")] = None,
        refresh_now: Annotated[str | None, Query(alias="refreshNow")] = None,
    ) -> Response:
        """Fetch a secret named by the secretId query parameter."""
        return _serve(manager, secret_id, version_id, version_stage, refresh_now)

    def get_secret_by_path(
        secret_id: str,
        manager: Annotated[CacheManager, Depends(get_manager)],
        version_id: Annotated[str | None, Query(alias="versionId")] = None,
        version_stage: Annotated[str | None, Query(alias="versionStage")] = None,
        refresh_now: Annotated[str | None, Query(alias="refreshNow")] = None,
    ) -> Response:
        """Fetch a secret named by the request path."""
        return _serve(manager, secret_id, version_id, version_stage, refresh_now)

    router.add_api_route(SECRETS_MANAGER_GET_PATH, get_secret_by_query, methods=["GET"])
    router.add_api_route(
        f"{path_prefix}{{secret_id:path}}", get_secret_by_path, methods=["GET"]
    )
    return router
