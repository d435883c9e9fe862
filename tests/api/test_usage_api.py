"""Tests for the usage summary and quota check endpoints."""

import pytest

from virl.quota.store import current_month_key

pytestmark = pytest.mark.unit


def test_summary_for_member(api_client, store, login):
    ws = store.add_workspace("owner-1", plan_tier="pro")
    other = store.add_workspace("owner-1", plan_tier="pro")
    store.set_sparks(ws.id, current_month_key(), 12)
    store.set_sparks(other.id, current_month_key(), 8)
    login("owner-1")

    response = api_client.get(f"/api/usage/{ws.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["plan_tier"] == "pro"
    assert body["spark_count"] == 20
    assert body["used_by_workspace"] == 12
    assert body["limit"] == 300
    assert body["remaining"] == 280
    assert body["usage_month"] == current_month_key()


def test_unlimited_is_minus_one_on_the_wire(api_client, store, login):
    ws = store.add_workspace("owner-1", plan_tier="custom")
    login("owner-1")

    body = api_client.get(f"/api/usage/{ws.id}").json()

    assert body["limit"] == -1
    assert body["remaining"] == -1


def test_non_member_gets_404(api_client, store, login):
    ws = store.add_workspace("owner-1")
    login("stranger")

    assert api_client.get(f"/api/usage/{ws.id}").status_code == 404
    assert api_client.get(f"/api/usage/{ws.id}/check").status_code == 404


def test_check_allowed(api_client, store, login):
    ws = store.add_workspace("owner-1")
    store.set_sparks(ws.id, current_month_key(), 29)
    login("owner-1")

    body = api_client.get(f"/api/usage/{ws.id}/check").json()

    assert body == {"allowed": True, "current_usage": 29, "limit": 30, "message": None}


def test_check_denied_returns_message(api_client, store, login):
    ws = store.add_workspace("owner-1")
    store.set_sparks(ws.id, current_month_key(), 30)
    login("owner-1")

    body = api_client.get(f"/api/usage/{ws.id}/check").json()

    assert body["allowed"] is False
    assert body["message"].startswith("Account limit reached.")


def test_member_sees_owner_pool(api_client, store, login):
    ws = store.add_workspace("owner-1")
    store.members[ws.id]["guest-1"] = "member"
    store.set_sparks(ws.id, current_month_key(), 5)
    login("guest-1")

    body = api_client.get(f"/api/usage/{ws.id}").json()

    assert body["spark_count"] == 5
    assert body["limit"] == 30


def test_requires_authentication(api_client, store):
    ws = store.add_workspace("owner-1")

    response = api_client.get(f"/api/usage/{ws.id}")

    assert response.status_code == 401
    assert "debug_id" in response.json()
