"""API-specific test fixtures.

Routes run against the in-memory store; authentication is swapped for a
fixed user unless a test exercises the real JWT dependency.
"""

import pytest
from fastapi.testclient import TestClient

from virl.core.auth import AuthUser, _provisioned_cache, require_auth
from virl.core.dependencies import get_usage_store


@pytest.fixture
def app(store):
    from virl.main import create_app

    app = create_app()
    app.dependency_overrides[get_usage_store] = lambda: store
    yield app
    app.dependency_overrides.clear()
    _provisioned_cache.clear()


@pytest.fixture
def api_client(app) -> TestClient:
    """TestClient without lifespan: no database is opened."""
    return TestClient(app)


@pytest.fixture
def login(app):
    """Authenticate every request as the given account."""

    def _login(user_id: str, admin: bool = False) -> AuthUser:
        claims = {"sub": user_id}
        if admin:
            claims["app_metadata"] = {"role": "admin"}
        user = AuthUser(user_id=user_id, claims=claims)

        async def _override():
            return user

        app.dependency_overrides[require_auth] = _override
        return user

    return _login
