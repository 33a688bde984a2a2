"""
FastAPI application for the secrets agent listener.

The listener runs on the loopback interface and serves secrets from a
CacheManager that lives for the lifetime of the process.

Configuration via environment variables (see secrets_agent/config/settings.py):
- SECRETS_AGENT_HTTP_PORT: Listener port (default 2773)
- AWS_TOKEN / SECRETS_AGENT_SSRF_TOKEN: Required SSRF token (or file://<path>)
- SECRETS_AGENT_TTL_SECONDS, SECRETS_AGENT_CACHE_SIZE: Cache tuning

Example:
    Start the agent:
        $ AWS_TOKEN=$(openssl rand -hex 16) secrets-agent

    Fetch a secret:
        $ curl -H "X-Aws-Parameters-Secrets-Token: $AWS_TOKEN" \\
            "http://localhost:2773/secretsmanager/get?secretId=prod/db/password"
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from prometheus_client import make_asgi_app

from secrets_agent import __version__
from secrets_agent.caching.classifier import classify
from secrets_agent.caching.exceptions import ClassifiedError, InputError
from secrets_agent.caching.factory import create_cache_manager
from secrets_agent.caching.manager import CacheManager
from secrets_agent.common.logging import add_trace_id_middleware, configure_logging
from secrets_agent.config.settings import AgentSettings, get_settings
from secrets_agent.server.routes import build_secrets_router, health_router

logger = logging.getLogger(__name__)

SERVICE_NAME = "secrets-agent"


def _error_response(error: ClassifiedError) -> Response:
    return Response(
        content=error.body,
        status_code=error.http_status,
        media_type="application/json",
    )


def create_app(
    settings: AgentSettings | None = None,
    manager: CacheManager | None = None,
) -> FastAPI:
    """
    Build the listener application.

    Args:
        settings: Agent settings. If None, loads them from the environment.
        manager: CacheManager to serve from. If None, one is created from
                 settings at startup and closed at shutdown.

    Returns:
        Configured FastAPI application

    Raises:
        RuntimeError: No SSRF token is configured
        ValueError: The SSRF token file cannot be read
    """
    if settings is None:
        settings = get_settings()
    ssrf_token = settings.resolve_ssrf_token()
    if not ssrf_token:
        # Fail closed: secret routes are never served without a token
        raise RuntimeError("An SSRF token is required; set AWS_TOKEN or SECRETS_AGENT_SSRF_TOKEN")

    owns_manager = manager is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the cache manager on startup and release it on shutdown."""
        if app.state.manager is None:
            app.state.manager = create_cache_manager(settings)
        logger.info(
            "Secrets agent listener ready",
            extra={
                "host": settings.http_host,
                "port": settings.http_port,
                "path_prefix": settings.path_prefix,
                "version": __version__,
            },
        )
        try:
            yield
        finally:
            if owns_manager and app.state.manager is not None:
                app.state.manager.close()
                app.state.manager = None
            logger.info("Secrets agent listener shutting down")

    app = FastAPI(
        title="Secrets Agent",
        description="Local caching proxy for AWS Secrets Manager",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.manager = manager
    app.state.ssrf_token = ssrf_token
    app.state.ssrf_headers = list(settings.ssrf_headers)

    @app.exception_handler(ClassifiedError)
    async def classified_error_handler(request: Request, exc: ClassifiedError) -> Response:
        if exc.http_status >= 500:
            logger.warning(
                "Secret request failed",
                extra={
                    "secret_id": exc.secret_id,
                    "error_code": exc.wire_code,
                    "http_status": exc.http_status,
                    "transient": exc.transient,
                },
            )
        return _error_response(exc)

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError) -> Response:
        return _error_response(classify(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
        # classify() logs the cause; the body never carries it
        return _error_response(classify(exc))

    add_trace_id_middleware(app)

    # Health and metrics first so a "/" path prefix cannot shadow them
    app.include_router(health_router)
    app.mount("/metrics", make_asgi_app())
    app.include_router(build_secrets_router(settings.path_prefix))

    return app


def main() -> None:
    """Console entry point: configure logging and run the listener."""
    import uvicorn

    settings = get_settings()
    configure_logging(service_name=SERVICE_NAME, log_level=settings.log_level)
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.http_host,
        port=settings.http_port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
