"""Tests for secrets_agent/caching/manager.py - fetch orchestrator."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from secrets_agent.caching.cache import CacheConfig
from secrets_agent.caching.exceptions import ClassifiedError
from secrets_agent.caching.manager import CacheManager
from secrets_agent.caching.source import SecretsSource, SecretValue


@pytest.fixture()
def manager(source, config) -> CacheManager:
    source.put("prod/db", "P1", "v1")
    return CacheManager(source, config)


class TestFetch:
    @pytest.mark.unit()
    def test_returns_payload_with_aws_field_names(self, manager) -> None:
        body = json.loads(manager.fetch("prod/db"))

        assert body["Name"] == "prod/db"
        assert body["VersionId"] == "v1"
        assert body["SecretString"] == "P1"
        assert body["VersionStages"] == ["AWSCURRENT"]
        assert "SecretBinary" not in body

    @pytest.mark.unit()
    def test_second_fetch_served_from_cache(self, manager, source) -> None:
        assert manager.fetch("prod/db") == manager.fetch("prod/db")
        assert source.get_calls == 1

    @pytest.mark.unit()
    def test_refresh_now_goes_upstream(self, manager, source) -> None:
        manager.fetch("prod/db")
        source.put("prod/db", "P2", "v2")

        body = json.loads(manager.fetch("prod/db", refresh_now=True))

        assert body["SecretString"] == "P2"
        assert source.get_calls == 2

    @pytest.mark.unit()
    def test_version_and_label_select_separate_entries(self, manager, source) -> None:
        source.put("prod/db", "P2", "v2")

        assert json.loads(manager.fetch("prod/db", label="AWSPREVIOUS"))["SecretString"] == "P1"
        assert json.loads(manager.fetch("prod/db", version="v2"))["SecretString"] == "P2"
        assert source.get_calls == 2

    @pytest.mark.unit()
    def test_both_selectors_are_forwarded_to_source(self, config) -> None:
        source = MagicMock(spec=SecretsSource)
        source.get_secret_value.return_value = SecretValue(Name="prod/db", VersionId="v1")
        manager = CacheManager(source, config)

        manager.fetch("prod/db", version="v1", label="AWSCURRENT")

        source.get_secret_value.assert_called_once_with("prod/db", "v1", "AWSCURRENT")

    @pytest.mark.unit()
    def test_binary_and_date_serialization(self, config) -> None:
        source = MagicMock(spec=SecretsSource)
        source.get_secret_value.return_value = SecretValue(
            Name="prod/cert",
            VersionId="v1",
            SecretBinary=b"\x00\x01binary",
            CreatedDate=datetime(2024, 1, 1, tzinfo=UTC),
        )
        manager = CacheManager(source, config)

        body = json.loads(manager.fetch("prod/cert"))

        assert body["SecretBinary"] == "AAFiaW5hcnk="
        assert body["CreatedDate"] == 1704067200.0
        assert "SecretString" not in body

    @pytest.mark.unit()
    def test_upstream_failure_surfaces_classified(self, manager) -> None:
        with pytest.raises(ClassifiedError) as exc_info:
            manager.fetch("missing")

        assert exc_info.value.http_status == 404

    @pytest.mark.unit()
    def test_serialization_failure_is_internal(self, manager) -> None:
        with patch.object(SecretValue, "model_dump_json", side_effect=ValueError("cannot encode")):
            with pytest.raises(ClassifiedError) as exc_info:
                manager.fetch("prod/db")

        assert exc_info.value.http_status == 500
        assert exc_info.value.body == '{"__type":"InternalFailure"}'
        assert exc_info.value.transient is False


class TestLifecycle:
    @pytest.mark.unit()
    def test_close_closes_source_and_clears_cache(self, manager, source) -> None:
        manager.fetch("prod/db")

        manager.close()

        assert source.closed is True
        assert len(manager.cache) == 0

    @pytest.mark.unit()
    def test_context_manager(self, source) -> None:
        with CacheManager(source, CacheConfig()) as manager:
            assert manager.cache.config.cache_size == 1000
        assert source.closed is True
