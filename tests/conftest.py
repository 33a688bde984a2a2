"""
Shared fixtures for secrets agent tests.

Provides an in-memory SecretsSource with call counters and failure
injection, and a manually advanced clock for TTL tests.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from datetime import timedelta

import pytest

from secrets_agent.caching import metrics
from secrets_agent.caching.cache import CacheConfig
from secrets_agent.caching.exceptions import FailureKind, SourceFailure
from secrets_agent.caching.source import AWSCURRENT, SecretMetadata, SecretsSource, SecretValue


class FakeSecretsSource(SecretsSource):
    """
    In-memory SecretsSource.

    Secrets are stored as version_id -> (value, stages). Failures queued with
    fail_next() are raised by the next calls, one per call.
    """

    def __init__(self) -> None:
        self._versions: dict[str, dict[str, tuple[str, tuple[str, ...]]]] = {}
        self._failures: list[Exception] = []
        self._describe_failures: list[Exception] = []
        self._lock = threading.Lock()
        self.get_calls = 0
        self.describe_calls = 0
        self.closed = False
        # When set, get_secret_value blocks until the event is released
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def put(self, secret_id: str, value: str, version_id: str = "v1") -> None:
        """Store a new AWSCURRENT version, demoting the old one to AWSPREVIOUS."""
        with self._lock:
            versions = self._versions.setdefault(secret_id, {})
            for vid, (old_value, stages) in list(versions.items()):
                if AWSCURRENT in stages:
                    versions[vid] = (old_value, ("AWSPREVIOUS",))
                elif "AWSPREVIOUS" in stages:
                    versions[vid] = (old_value, ())
            versions[version_id] = (value, (AWSCURRENT,))

    def delete_version(self, secret_id: str, version_id: str) -> None:
        with self._lock:
            del self._versions[secret_id][version_id]

    def fail_next(self, failure: Exception, times: int = 1) -> None:
        self._failures.extend([failure] * times)

    def fail_describe(self, failure: Exception, times: int = 1) -> None:
        self._describe_failures.extend([failure] * times)

    def get_secret_value(
        self,
        secret_id: str,
        version_id: str | None = None,
        version_stage: str | None = None,
    ) -> SecretValue:
        with self._lock:
            self.get_calls += 1
            failure = self._failures.pop(0) if self._failures else None
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if failure is not None:
            raise failure

        versions = self._versions.get(secret_id, {})
        if version_id is None:
            stage = version_stage or AWSCURRENT
            version_id = next(
                (vid for vid, (_, stages) in versions.items() if stage in stages), None
            )
        if version_id not in versions:
            raise SourceFailure(
                FailureKind.SERVICE,
                http_status=400,
                code="ResourceNotFoundException",
                service_message="Secrets Manager can't find the specified secret.",
                secret_id=secret_id,
            )
        value, stages = versions[version_id]
        return SecretValue(
            ARN=f"arn:aws:secretsmanager:us-east-1:123456789012:secret:{secret_id}",
            Name=secret_id,
            VersionId=version_id,
            SecretString=value,
            VersionStages=stages,
        )

    def describe_secret(self, secret_id: str) -> SecretMetadata:
        with self._lock:
            self.describe_calls += 1
            failure = self._describe_failures.pop(0) if self._describe_failures else None
        if failure is not None:
            raise failure
        versions = self._versions.get(secret_id, {})
        return SecretMetadata(
            Name=secret_id,
            VersionIdsToStages={vid: stages for vid, (_, stages) in versions.items()},
        )

    def close(self) -> None:
        self.closed = True


class ManualClock:
    """Monotonic clock advanced explicitly by tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def source() -> FakeSecretsSource:
    return FakeSecretsSource()


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def config() -> CacheConfig:
    return CacheConfig(cache_size=10, ttl=timedelta(seconds=60), ignore_transient_errors=True)


@pytest.fixture()
def timeout_failure() -> SourceFailure:
    return SourceFailure(FailureKind.TIMEOUT, secret_id="prod/db", detail="Read timeout")


@pytest.fixture(autouse=True)
def _reset_entries_gauge() -> Iterator[None]:
    yield
    metrics.secrets_cache_entries.set(0)
