"""
SecretsSource interface and secret payload models.

The cache depends on the remote secrets service only through this interface,
so production code and tests supply different implementations of the same
contract (dependency injection instead of swapping clients behind the
caller's back).

Architecture:
    SecretsSource (ABC)
    └── AWSSecretsSource - AWS Secrets Manager via boto3 (aws_source.py)

Contract:
    - get_secret_value() returns a SecretValue
    - describe_secret() returns SecretMetadata
    - Every failure is raised as SourceFailure (never an SDK exception)
    - Retry/backoff for transient failures is the implementation's job

Models serialize with the AWS Secrets Manager field names so the cached
payload can be handed to clients unchanged:
    >>> value = SecretValue(Name="prod/db", VersionId="v1", SecretString="hunter2")
    >>> value.model_dump_json(by_alias=True, exclude_none=True)
    '{"Name":"prod/db","VersionId":"v1","SecretString":"hunter2","VersionStages":[]}'
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from datetime import datetime
from types import TracebackType

from pydantic import BaseModel, ConfigDict, Field, field_serializer

AWSCURRENT = "AWSCURRENT"


class SecretValue(BaseModel):
    """GetSecretValue payload, immutable once fetched."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    arn: str | None = Field(default=None, alias="ARN")
    name: str | None = Field(default=None, alias="Name")
    version_id: str | None = Field(default=None, alias="VersionId")
    secret_string: str | None = Field(default=None, alias="SecretString")
    secret_binary: bytes | None = Field(default=None, alias="SecretBinary")
    version_stages: tuple[str, ...] = Field(default=(), alias="VersionStages")
    created_date: datetime | None = Field(default=None, alias="CreatedDate")

    @field_serializer("secret_binary")
    def _serialize_binary(self, value: bytes | None) -> str | None:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @field_serializer("created_date")
    def _serialize_created(self, value: datetime | None) -> float | None:
        # Secrets Manager JSON protocol uses epoch seconds
        if value is None:
            return None
        return round(value.timestamp(), 3)


class SecretMetadata(BaseModel):
    """DescribeSecret payload (the subset the cache needs)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    arn: str | None = Field(default=None, alias="ARN")
    name: str | None = Field(default=None, alias="Name")
    version_ids_to_stages: dict[str, tuple[str, ...]] = Field(
        default_factory=dict, alias="VersionIdsToStages"
    )
    last_changed_date: datetime | None = Field(default=None, alias="LastChangedDate")

    def version_for_stage(self, stage: str) -> str | None:
        """Return the version id currently carrying ``stage``, if any."""
        for version_id, stages in self.version_ids_to_stages.items():
            if stage in stages:
                return version_id
        return None


class SecretsSource(ABC):
    """
    Abstract capability for reading secrets from the remote service.

    Thread Safety:
        - Implementations MUST be safe to call from multiple threads; the cache
          issues concurrent calls for different keys.

    Security:
        - NEVER log secret values, only secret ids
    """

    @abstractmethod
    def get_secret_value(
        self,
        secret_id: str,
        version_id: str | None = None,
        version_stage: str | None = None,
    ) -> SecretValue:
        """
        Fetch a secret value.

        Args:
            secret_id: Secret name or ARN
            version_id: Optional version selector
            version_stage: Optional staging label selector (e.g. "AWSPREVIOUS")

        Returns:
            The secret payload

        Raises:
            SourceFailure: Any upstream failure, already translated
        """

    @abstractmethod
    def describe_secret(self, secret_id: str) -> SecretMetadata:
        """
        Fetch secret metadata (version ids and their stages).

        Raises:
            SourceFailure: Any upstream failure, already translated
        """

    def close(self) -> None:  # noqa: B027 - Intentionally optional hook with default no-op
        """Release client resources (optional hook)."""

    def __enter__(self) -> SecretsSource:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
