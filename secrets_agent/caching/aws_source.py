"""
AWS Secrets Manager SecretsSource backed by boto3.

This module implements AWSSecretsSource, the production SecretsSource. It owns
everything network-shaped that the cache deliberately does not: client
construction, timeouts, retry/backoff, and translation of botocore errors into
the neutral SourceFailure shape the classifier understands.

Architecture:
    - boto3 "secretsmanager" client with explicit connect/read timeouts
    - botocore's built-in retries disabled; tenacity retries transient failures
      (timeouts, connection faults, throttling, 5xx) with exponential backoff
    - IAM role (default credential chain) authentication
    - Thread-safe: boto3 clients are safe to share between threads

Error translation:
    ConnectTimeoutError / ReadTimeoutError      → SourceFailure(TIMEOUT)
    ResponseParserError                         → SourceFailure(RESPONSE)
    ConnectionError / HTTPClientError           → SourceFailure(IO)
    ClientError                                 → SourceFailure(SERVICE, code, message, status)
    any other BotoCoreError                     → SourceFailure(OTHER)

IAM Permissions Required:
    - secretsmanager:GetSecretValue
    - secretsmanager:DescribeSecret

Usage Example:
    >>> source = AWSSecretsSource(region_name="us-east-1")
    >>> value = source.get_secret_value("prod/database/password")
    >>> value.version_stages
    ('AWSCURRENT',)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Final

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    HTTPClientError,
    ReadTimeoutError,
)
from botocore.exceptions import ConnectionError as BotoConnectionError
from botocore.parsers import ResponseParserError
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from secrets_agent import __version__
from secrets_agent.caching.exceptions import FailureKind, SecretsAgentError, SourceFailure
from secrets_agent.caching.source import SecretMetadata, SecretsSource, SecretValue

logger = logging.getLogger(__name__)

USER_AGENT_EXTRA: Final[str] = f"secrets-agent/{__version__}"

_THROTTLING_CODES: Final[frozenset[str]] = frozenset(
    {
        "ThrottlingException",
        "TooManyRequestsException",
        "RequestLimitExceeded",
    }
)


def translate_boto_error(exc: Exception, secret_id: str | None = None) -> SourceFailure:
    """
    Translate a botocore failure into a SourceFailure.

    Args:
        exc: Exception raised by the boto3 client
        secret_id: Secret the call was for (for diagnostics only)

    Returns:
        SourceFailure with the matching kind
    """
    if isinstance(exc, ConnectTimeoutError | ReadTimeoutError):
        return SourceFailure(FailureKind.TIMEOUT, secret_id=secret_id, detail=str(exc))
    if isinstance(exc, ResponseParserError):
        return SourceFailure(FailureKind.RESPONSE, secret_id=secret_id, detail=str(exc))
    if isinstance(exc, BotoConnectionError | HTTPClientError):
        return SourceFailure(FailureKind.IO, secret_id=secret_id, detail=str(exc))
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return SourceFailure(
            FailureKind.SERVICE,
            http_status=status,
            code=error.get("Code") or None,
            service_message=error.get("Message") or error.get("message") or None,
            secret_id=secret_id,
        )
    return SourceFailure(FailureKind.OTHER, secret_id=secret_id, detail=str(exc))


def _is_retryable(exception: BaseException) -> bool:
    """
    Check if a translated failure should be retried.

    Transient (retry): timeouts, connection faults, unparseable responses,
    throttling, 5xx service errors.
    Permanent (do not retry): ResourceNotFoundException, AccessDeniedException,
    InvalidParameterException, InvalidRequestException, etc.
    """
    if not isinstance(exception, SourceFailure):
        return False
    if exception.kind in (FailureKind.TIMEOUT, FailureKind.IO, FailureKind.RESPONSE):
        return True
    if exception.kind is FailureKind.SERVICE:
        if exception.code in _THROTTLING_CODES:
            return True
        return exception.http_status is not None and exception.http_status >= 500
    return False


class AWSSecretsSource(SecretsSource):
    """
    SecretsSource reading from AWS Secrets Manager.

    Example:
        >>> # IAM role authentication (recommended)
        >>> source = AWSSecretsSource(region_name="us-east-1")
        >>>
        >>> # Local endpoint (e.g. LocalStack) with a single attempt
        >>> source = AWSSecretsSource(
        ...     region_name="us-east-1",
        ...     endpoint_url="http://localhost:4566",
        ...     max_attempts=1,
        ... )
    """

    def __init__(
        self,
        region_name: str = "us-east-1",
        endpoint_url: str | None = None,
        connect_timeout: float = 3.0,
        read_timeout: float = 5.0,
        max_attempts: int = 3,
        backoff_min_seconds: float = 0.1,
        backoff_max_seconds: float = 2.0,
        client: Any | None = None,
    ) -> None:
        """
        Initialize the boto3 client.

        Args:
            region_name: AWS region
            endpoint_url: Optional endpoint override (VPC endpoint, LocalStack)
            connect_timeout: Seconds to wait for a connection
            read_timeout: Seconds to wait for a response
            max_attempts: Total attempts per call, including the first
            backoff_min_seconds: Lower bound of the exponential backoff
            backoff_max_seconds: Upper bound of the exponential backoff
            client: Pre-built secretsmanager client (skips boto3 construction)

        Raises:
            SecretsAgentError: The boto3 client could not be created
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self._region_name = region_name
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(
                multiplier=backoff_min_seconds, min=backoff_min_seconds, max=backoff_max_seconds
            ),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )

        if client is not None:
            self._client = client
            return

        client_kwargs: dict[str, Any] = {
            "region_name": region_name,
            "config": Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"total_max_attempts": 1},
                user_agent_extra=USER_AGENT_EXTRA,
            ),
        }
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url

        try:
            self._client = boto3.client("secretsmanager", **client_kwargs)
        except BotoCoreError as e:
            raise SecretsAgentError(
                f"AWS SDK error during Secrets Manager client initialization: {e}"
            ) from e

        # Credentials are validated lazily on the first call, so read-only roles
        # that only hold GetSecretValue/DescribeSecret work
        logger.info(
            "AWS Secrets Manager source initialized",
            extra={"region": region_name, "endpoint_url": endpoint_url},
        )

    def get_secret_value(
        self,
        secret_id: str,
        version_id: str | None = None,
        version_stage: str | None = None,
    ) -> SecretValue:
        params: dict[str, str] = {"SecretId": secret_id}
        if version_id is not None:
            params["VersionId"] = version_id
        if version_stage is not None:
            params["VersionStage"] = version_stage

        response = self._call(self._client.get_secret_value, secret_id, params)
        logger.debug(
            "Fetched secret value from AWS Secrets Manager",
            extra={"secret_id": secret_id, "version_id": response.get("VersionId")},
        )
        return SecretValue.model_validate(response)

    def describe_secret(self, secret_id: str) -> SecretMetadata:
        response = self._call(self._client.describe_secret, secret_id, {"SecretId": secret_id})
        return SecretMetadata.model_validate(response)

    def _call(
        self, operation: Callable[..., dict[str, Any]], secret_id: str, params: dict[str, str]
    ) -> dict[str, Any]:
        def attempt() -> dict[str, Any]:
            try:
                return operation(**params)
            except (BotoCoreError, ClientError, ResponseParserError) as exc:
                failure = translate_boto_error(exc, secret_id)
                if _is_retryable(failure):
                    logger.warning(
                        "Transient AWS Secrets Manager failure",
                        extra={
                            "secret_id": secret_id,
                            "kind": failure.kind.value,
                            "code": failure.code,
                        },
                    )
                raise failure from exc

        # copy() gives each call its own retry state
        return self._retrying.copy()(attempt)

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
        logger.info("AWS Secrets Manager source closed", extra={"region": self._region_name})
