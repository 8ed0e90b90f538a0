from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_health_reports_rate_limit_flag_without_quota_headers():
    resp = client.get("/health")

    assert resp.json() == {"status": "ok", "rate_limit_enabled": True}
    assert "X-RateLimit-Limit" not in resp.headers


def test_request_id_reaches_error_body():
    resp = client.post(
        "/v1/limits/check",
        json={"key": "k", "limit": 0},
        headers={"X-Request-ID": "req-err-1"},
    )

    assert resp.status_code == 400
    assert resp.json()["error"]["request_id"] == "req-err-1"
    assert resp.headers["X-Request-ID"] == "req-err-1"


def test_admitted_request_carries_rate_limit_headers():
    resp = client.post("/v1/limits/check", json={"key": "header-check"})

    assert resp.status_code == 200
    assert resp.headers["X-RateLimit-Limit"] == "10"
    assert resp.headers["X-RateLimit-Remaining"] == "9"
