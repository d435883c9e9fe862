"""Tests for application-level error handling and startup checks."""

import pytest
from fastapi.testclient import TestClient

from virl.core.config import Settings
from virl.main import _missing_integrations

pytestmark = pytest.mark.unit


def test_http_errors_carry_debug_id(api_client, login):
    login("owner-1")

    response = api_client.get("/api/usage/missing")

    assert response.status_code == 404
    body = response.json()
    assert body["detail"] == "Workspace not found"
    assert body["debug_id"]


def test_unhandled_errors_hide_the_cause(app):
    @app.get("/api/boom")
    async def boom():
        raise RuntimeError("connection string with secrets")

    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/api/boom")

    assert response.status_code == 500
    body = response.json()
    assert body["detail"] == "Internal server error"
    assert "secrets" not in response.text
    assert body["debug_id"]


def test_fully_configured_settings_report_nothing_missing():
    settings = Settings(payment_key_id="rzp_key", payment_key_secret="s", llm_api_key="k", jwt_secret="j")

    assert _missing_integrations(settings) == {}


def test_payment_needs_both_keys():
    settings = Settings(payment_key_id="", payment_key_secret="s", llm_api_key="k", jwt_secret="j")

    assert list(_missing_integrations(settings)) == ["payment_keys"]
