"""Tests for session JWT authentication and first-login provisioning."""

import time
from unittest.mock import MagicMock, patch

import jwt as pyjwt
import pytest
from fastapi import HTTPException

from virl.core.auth import AuthUser, decode_session_jwt, is_admin_user

pytestmark = pytest.mark.unit

_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


def _mock_settings(secret: str = _SECRET, audience: str = ""):
    s = MagicMock()
    s.jwt_secret = secret
    s.jwt_audience = audience
    return s


def _token(secret: str = _SECRET, **overrides) -> str:
    now = int(time.time())
    payload = {"sub": "user-1", "iat": now, "exp": now + 300, **overrides}
    payload = {k: v for k, v in payload.items() if v is not None}
    return pyjwt.encode(payload, secret, algorithm="HS256")


class TestDecodeSessionJwt:
    def test_valid_token(self):
        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            user = decode_session_jwt(_token())

        assert user.user_id == "user-1"
        assert user.claims["sub"] == "user-1"

    def test_expired_token(self):
        past = int(time.time()) - 3600
        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            with pytest.raises(HTTPException) as exc_info:
                decode_session_jwt(_token(iat=past - 60, exp=past))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    def test_wrong_secret(self):
        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            with pytest.raises(HTTPException) as exc_info:
                decode_session_jwt(_token(secret="another-secret-that-is-long-enough-too"))

        assert exc_info.value.status_code == 401

    def test_missing_sub(self):
        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            with pytest.raises(HTTPException) as exc_info:
                decode_session_jwt(_token(sub=None))

        assert exc_info.value.status_code == 401

    def test_audience_enforced_when_configured(self):
        with patch("virl.core.auth.get_settings", return_value=_mock_settings(audience="authenticated")):
            assert decode_session_jwt(_token(aud="authenticated")).user_id == "user-1"
            with pytest.raises(HTTPException) as exc_info:
                decode_session_jwt(_token(aud="someone-else"))

        assert exc_info.value.status_code == 401

    def test_missing_secret_is_server_error(self):
        with patch("virl.core.auth.get_settings", return_value=_mock_settings(secret="")):
            with pytest.raises(HTTPException) as exc_info:
                decode_session_jwt(_token())

        assert exc_info.value.status_code == 500


def test_is_admin_user():
    assert is_admin_user(AuthUser("a", {"app_metadata": {"role": "admin"}}))
    assert not is_admin_user(AuthUser("b", {"app_metadata": {"role": "member"}}))
    assert not is_admin_user(AuthUser("c", {}))


class TestRequireAuthRoute:
    def test_first_request_provisions_workspace(self, api_client, store):
        token = _token(sub="fresh-user")

        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            response = api_client.get("/api/workspaces", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert body[0]["name"] == "My Workspace"
        assert body[0]["plan_tier"] == "basic"

    def test_repeat_requests_do_not_duplicate(self, api_client, store):
        token = _token(sub="fresh-user")

        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            api_client.get("/api/workspaces", headers={"Authorization": f"Bearer {token}"})
            api_client.get("/api/workspaces", headers={"Authorization": f"Bearer {token}"})

        assert len(store.workspaces) == 1

    def test_admin_route_rejects_plain_user(self, api_client, store):
        token = _token(sub="plain-user")

        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            response = api_client.get("/api/admin/accounts/plain-user", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_admin_claim_grants_access(self, api_client, store):
        store.add_workspace("owner-1")
        token = _token(sub="admin-1", app_metadata={"role": "admin"})

        with patch("virl.core.auth.get_settings", return_value=_mock_settings()):
            response = api_client.get("/api/admin/accounts/owner-1", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
