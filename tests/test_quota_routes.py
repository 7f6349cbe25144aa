"""End-to-end tests for the quota routes served by the app factory."""

import asyncio
from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from quota_gate.core.config import settings
from quota_gate.core.errors import ValidationAppError
from quota_gate.core.rate_limit import REJECT_MESSAGE, close_quota_guard, get_quota_guard
from quota_gate.main import app


@pytest.fixture(autouse=True)
def fresh_guard(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test with an empty in-memory store and a small quota."""
    monkeypatch.setattr(settings.quota, "enabled", True)
    monkeypatch.setattr(settings.quota, "store_backend", "memory")
    monkeypatch.setattr(settings.quota, "restriction_count", 2)
    monkeypatch.setattr(settings.quota, "restriction_time_seconds", 60)
    asyncio.run(close_quota_guard())
    yield
    asyncio.run(close_quota_guard())


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def test_quota_status_counts_down_then_rejects(client: TestClient) -> None:
    responses = [client.get("/v1/quota") for _ in range(4)]

    assert [r.status_code for r in responses] == [200, 200, 200, 403]
    assert [r.json().get("remaining") for r in responses[:3]] == [2, 1, 0]
    assert responses[0].json()["limit"] == 2
    assert responses[3].json()["detail"] == REJECT_MESSAGE
    assert responses[3].headers["X-RateLimit-Remaining"] == "0"
    assert responses[3].headers["X-RateLimit-Reset"] == str(responses[0].json()["reset_at"])


def test_headers_match_body(client: TestClient) -> None:
    response = client.get("/v1/quota")
    body = response.json()

    assert response.headers["X-RateLimit-Limit"] == str(body["limit"])
    assert response.headers["X-RateLimit-Remaining"] == str(body["remaining"])
    assert response.headers["X-RateLimit-Reset"] == str(body["reset_at"])


def test_health_is_not_rate_limited(client: TestClient) -> None:
    for _ in range(5):
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


def test_disabled_quota_skips_the_gate(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.quota, "enabled", False)

    response = client.get("/v1/quota")

    assert response.status_code == 404
    assert "X-RateLimit-Limit" not in response.headers


def test_guard_is_rebuilt_when_settings_change(monkeypatch: pytest.MonkeyPatch) -> None:
    first = asyncio.run(get_quota_guard())
    assert asyncio.run(get_quota_guard()) is first

    monkeypatch.setattr(settings.quota, "restriction_count", 7)
    second = asyncio.run(get_quota_guard())

    assert second is not first
    assert second.gate.config.restriction_count == 7
    assert second.key_prefix == settings.quota.key_prefix


def test_rebuilding_the_guard_closes_the_previous_store(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    first = asyncio.run(get_quota_guard())
    old_store = first.gate.store
    old_store.close = AsyncMock()

    monkeypatch.setattr(settings.quota, "restriction_time_seconds", 120)
    second = asyncio.run(get_quota_guard())

    old_store.close.assert_awaited_once()
    assert second.gate.store is not old_store


def test_invalid_backend_fails_at_startup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.quota, "store_backend", "sqlite")

    with pytest.raises(ValidationAppError) as exc_info:
        with TestClient(app):
            pass

    assert exc_info.value.code == "unsupported_store_backend"


def test_openapi_documents_rate_limit_headers(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    quota_op = schema["paths"]["/v1/quota"]["get"]
    assert "X-RateLimit-Remaining" in quota_op["responses"]["200"]["headers"]
    assert "403" in quota_op["responses"]
    health_op = schema["paths"]["/health"]["get"]
    assert "headers" not in health_op["responses"]["200"]
    assert {"Quota", "Health"} <= {t["name"] for t in schema["tags"]}
