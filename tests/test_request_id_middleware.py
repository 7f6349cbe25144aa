"""Tests for the request correlation middleware."""

import uuid

import pytest
from fastapi.testclient import TestClient

from quota_gate.core.config import settings
from quota_gate.core.middleware import (
    DURATION_HEADER,
    MAX_REQUEST_ID_LENGTH,
    resolve_request_id,
)
from quota_gate.main import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def _is_uuid4(value: str) -> bool:
    try:
        return uuid.UUID(value).version == 4
    except ValueError:
        return False


def test_caller_supplied_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"X-Request-ID": "edge-7f3a:42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "edge-7f3a:42"
    assert float(response.headers[DURATION_HEADER]) >= 0


def test_missing_id_is_generated(client: TestClient) -> None:
    response = client.get("/health")

    assert _is_uuid4(response.headers["X-Request-ID"])


@pytest.mark.parametrize(
    "incoming",
    [
        "x" * (MAX_REQUEST_ID_LENGTH + 1),
        "id with spaces",
        "id\twith\ttabs",
        "<script>",
    ],
)
def test_unsafe_id_is_replaced(client: TestClient, incoming: str) -> None:
    response = client.get("/health", headers={"X-Request-ID": incoming})

    echoed = response.headers["X-Request-ID"]
    assert echoed != incoming
    assert _is_uuid4(echoed)


def test_id_at_length_limit_is_kept() -> None:
    candidate = "a" * MAX_REQUEST_ID_LENGTH

    assert resolve_request_id(candidate) == candidate


def test_completion_is_logged_with_status(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level("INFO", logger="quota_gate.core.middleware"):
        client.get("/health", headers={"X-Request-ID": "trace-1"})

    records = [r for r in caplog.records if r.getMessage() == "http.request.completed"]
    assert len(records) == 1
    assert records[0].status_code == 200
    assert records[0].path == "/health"
    assert records[0].method == "GET"
    assert records[0].duration_ms >= 0


def test_configured_header_name_is_used(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.log, "request_id_header", "X-Correlation-ID")

    response = client.get("/health", headers={"X-Correlation-ID": "corr-9"})

    assert response.headers["X-Correlation-ID"] == "corr-9"
    assert "X-Request-ID" not in response.headers

