"""Smoke tests for the health endpoints and the error envelope."""
from __future__ import annotations

from flask import g

from stylio import create_app
from stylio.config import TestingConfig


def test_health_endpoint() -> None:
    app = create_app(TestingConfig)
    client = app.test_client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json == {"status": "ok"}


def test_database_health_endpoint_ok(client) -> None:
    response = client.get("/db-health")

    assert response.status_code == 200
    assert response.json == {"database": "ok"}


def test_unknown_route_uses_error_envelope(client) -> None:
    response = client.get("/definitely-not-here")

    assert response.status_code == 404
    assert response.json["success"] is False
    assert response.json["message"]


def test_api_version_is_resolved_from_query(app) -> None:
    with app.test_request_context("/health?apiVersion=v0"):
        app.preprocess_request()
        assert g.api_version == "legacy"
