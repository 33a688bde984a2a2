"""
Tests for the secrets listener (secrets_agent/server).

Uses FastAPI TestClient against an app built around a CacheManager with the
in-memory FakeSecretsSource.
"""

from __future__ import annotations

import json
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from secrets_agent.caching.exceptions import FailureKind, SourceFailure
from secrets_agent.caching.manager import CacheManager
from secrets_agent.common.logging.context import TRACE_ID_HEADER
from secrets_agent.config.settings import AgentSettings
from secrets_agent.server.main import create_app

TOKEN = "test-token"
AUTH = {"X-Aws-Parameters-Secrets-Token": TOKEN}


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> AgentSettings:
    monkeypatch.delenv("AWS_TOKEN", raising=False)
    return AgentSettings(_env_file=None, ssrf_token=TOKEN)


@pytest.fixture()
def manager(source, config) -> CacheManager:
    source.put("prod/db", "P1", "v1")
    return CacheManager(source, config)


@pytest.fixture()
def client(settings, manager) -> Iterator[TestClient]:
    with TestClient(create_app(settings, manager)) as test_client:
        yield test_client


class TestPing:
    @pytest.mark.unit()
    def test_ping_needs_no_token(self, client: TestClient) -> None:
        response = client.get("/ping")

        assert response.status_code == 200
        assert response.text == "healthy"


class TestTokenCheck:
    @pytest.mark.unit()
    def test_missing_token_is_rejected(self, client: TestClient, source) -> None:
        response = client.get("/secretsmanager/get", params={"secretId": "prod/db"})

        assert response.status_code == 403
        assert response.text == '{"__type":"AccessDeniedException", "message":"Bad Token"}'
        assert source.get_calls == 0

    @pytest.mark.unit()
    def test_wrong_token_is_rejected(self, client: TestClient) -> None:
        response = client.get(
            "/v1/prod/db", headers={"X-Aws-Parameters-Secrets-Token": "nope"}
        )

        assert response.status_code == 403

    @pytest.mark.unit()
    def test_any_configured_header_is_accepted(self, client: TestClient) -> None:
        response = client.get("/v1/prod/db", headers={"X-Vault-Token": TOKEN})

        assert response.status_code == 200

    @pytest.mark.unit()
    def test_token_check_runs_before_parameter_validation(self, client: TestClient) -> None:
        response = client.get("/secretsmanager/get")

        assert response.status_code == 403


class TestGetSecret:
    @pytest.mark.unit()
    def test_query_form(self, client: TestClient) -> None:
        response = client.get(
            "/secretsmanager/get", params={"secretId": "prod/db"}, headers=AUTH
        )

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        body = response.json()
        assert body["SecretString"] == "P1"
        assert body["VersionStages"] == ["AWSCURRENT"]

    @pytest.mark.unit()
    def test_path_form_with_slashes_in_name(self, client: TestClient, source) -> None:
        source.put("team/app/api-key", "K1")

        response = client.get("/v1/team/app/api-key", headers=AUTH)

        assert response.status_code == 200
        assert response.json()["Name"] == "team/app/api-key"

    @pytest.mark.unit()
    def test_second_request_is_cached(self, client: TestClient, source) -> None:
        client.get("/v1/prod/db", headers=AUTH)
        client.get("/v1/prod/db", headers=AUTH)

        assert source.get_calls == 1

    @pytest.mark.unit()
    def test_refresh_now(self, client: TestClient, source) -> None:
        client.get("/v1/prod/db", headers=AUTH)
        source.put("prod/db", "P2", "v2")

        response = client.get("/v1/prod/db", params={"refreshNow": "TRUE"}, headers=AUTH)

        assert response.json()["SecretString"] == "P2"
        assert source.get_calls == 2

    @pytest.mark.unit()
    def test_version_stage_selector(self, client: TestClient, source) -> None:
        source.put("prod/db", "P2", "v2")

        response = client.get(
            "/secretsmanager/get",
            params={"secretId": "prod/db", "versionStage": "AWSPREVIOUS"},
            headers=AUTH,
        )

        assert response.json()["SecretString"] == "P1"

    @pytest.mark.unit()
    def test_trace_id_echoed(self, client: TestClient) -> None:
        response = client.get("/v1/prod/db", headers={**AUTH, TRACE_ID_HEADER: "trace-7"})

        assert response.headers[TRACE_ID_HEADER] == "trace-7"


class TestErrors:
    @pytest.mark.unit()
    def test_missing_secret_id(self, client: TestClient) -> None:
        response = client.get("/secretsmanager/get", headers=AUTH)

        assert response.status_code == 400
        assert json.loads(response.text) == {
            "__type": "InvalidParameterException",
            "message": "secretId is required",
        }

    @pytest.mark.unit()
    def test_invalid_refresh_now(self, client: TestClient) -> None:
        response = client.get("/v1/prod/db", params={"refreshNow": "yes"}, headers=AUTH)

        assert response.status_code == 400
        assert "refreshNow" in response.json()["message"]

    @pytest.mark.unit()
    def test_not_found(self, client: TestClient) -> None:
        response = client.get("/v1/does/not/exist", headers=AUTH)

        assert response.status_code == 404
        assert response.json()["__type"] == "ResourceNotFoundException"

    @pytest.mark.unit()
    def test_timeout_without_cached_entry(self, client: TestClient, source) -> None:
        source.fail_next(SourceFailure(FailureKind.TIMEOUT))

        response = client.get("/v1/prod/db", headers=AUTH)

        assert response.status_code == 504
        assert response.text == '{"__type":"TimeoutError", "message":"Timeout"}'

    @pytest.mark.unit()
    def test_internal_failure_body_has_no_message(self, client: TestClient, source) -> None:
        source.fail_next(RuntimeError("secret detail"))

        response = client.get("/v1/prod/db", headers=AUTH)

        assert response.status_code == 500
        assert response.text == '{"__type":"InternalFailure"}'


class TestMetrics:
    @pytest.mark.unit()
    def test_metrics_exposed(self, client: TestClient) -> None:
        client.get("/v1/prod/db", headers=AUTH)

        response = client.get("/metrics/")

        assert response.status_code == 200
        assert "secrets_cache_lookups_total" in response.text


class TestCreateApp:
    @pytest.mark.unit()
    def test_requires_token(self, manager, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AWS_TOKEN", raising=False)
        monkeypatch.delenv("SECRETS_AGENT_SSRF_TOKEN", raising=False)

        with pytest.raises(RuntimeError, match="SSRF token"):
            create_app(AgentSettings(_env_file=None), manager)

    @pytest.mark.unit()
    def test_custom_path_prefix(self, manager) -> None:
        settings = AgentSettings(_env_file=None, ssrf_token=TOKEN, path_prefix="/secrets/")

        with TestClient(create_app(settings, manager)) as client:
            assert client.get("/secrets/prod/db", headers=AUTH).status_code == 200
            assert client.get("/v1/prod/db", headers=AUTH).status_code == 404

    @pytest.mark.unit()
    def test_injected_manager_is_not_closed(self, settings, manager, source) -> None:
        with TestClient(create_app(settings, manager)):
            pass

        assert source.closed is False
