"""Tests for the correlation id middleware."""
# pylint: disable=missing-function-docstring

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from bible_study_engine.apps.api.middleware import CorrelationIdMiddleware
from bible_study_engine.core.logging import get_log_context


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)

    @app.get("/context")
    async def context() -> dict:
        return {
            "cid": get_log_context("correlation_id"),
            "ip": get_log_context("client_ip"),
        }

    return app


def test_incoming_request_id_is_bound_and_echoed() -> None:
    client = TestClient(_app())
    resp = client.get(
        "/context", headers={"X-Request-ID": "req-42", "X-Forwarded-For": "198.51.100.8, 10.0.0.1"}
    )
    assert resp.json() == {"cid": "req-42", "ip": "198.51.100.8"}
    assert resp.headers["X-Request-ID"] == "req-42"
    assert resp.headers["X-Correlation-ID"] == "req-42"


def test_missing_id_is_generated() -> None:
    client = TestClient(_app())
    resp = client.get("/context")
    generated = resp.headers["X-Correlation-ID"]
    assert len(generated) == 32
    assert resp.json()["cid"] == generated
    assert get_log_context("correlation_id") is None


def test_client_ip_falls_back_to_the_socket_peer() -> None:
    resp = TestClient(_app()).get("/context")
    assert resp.json()["ip"] == "testclient"
