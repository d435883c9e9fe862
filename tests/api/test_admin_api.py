"""Tests for admin account plan and limit override endpoints."""

from datetime import UTC, datetime, timedelta

import pytest

from virl.quota.limits import LimitOverrides

pytestmark = pytest.mark.unit


def test_non_admin_forbidden(api_client, store, login):
    store.add_workspace("owner-1")
    login("owner-1")

    response = api_client.get("/api/admin/accounts/owner-1")

    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


def test_get_account_detail(api_client, store, login):
    store.add_workspace("owner-1", plan_tier="pro", overrides=LimitOverrides(sparks_per_month=1000), name="Main")
    store.add_workspace("owner-1", name="Side")
    login("admin-1", admin=True)

    body = api_client.get("/api/admin/accounts/owner-1").json()

    assert body["owner_id"] == "owner-1"
    main, side = body["workspaces"]
    assert main["name"] == "Main"
    assert main["plan_tier"] == "pro"
    assert main["overrides"] == {"storage_bytes": None, "members": None, "workspaces": None, "sparks_per_month": 1000}
    assert main["effective_limits"]["sparks_per_month"] == 1000
    assert main["effective_limits"]["members"] == 10
    assert side["effective_limits"]["sparks_per_month"] == 30
    assert body["global_spark_limit"] == 1000
    assert body["global_spark_usage"] == 0


def test_get_unknown_account(api_client, login):
    login("admin-1", admin=True)
    assert api_client.get("/api/admin/accounts/ghost").status_code == 404


class TestSetPlan:
    def test_upgrade_sets_thirty_day_window(self, api_client, store, login):
        ws = store.add_workspace("owner-1")
        login("admin-1", admin=True)

        before = datetime.now(UTC)
        response = api_client.put("/api/admin/accounts/owner-1/plan", json={"plan_tier": "pro"})

        assert response.status_code == 200
        assert response.json()["workspaces"][0]["plan_tier"] == "pro"
        end = store.workspaces[ws.id].subscription_end_date
        assert before + timedelta(days=30) <= end <= datetime.now(UTC) + timedelta(days=30)
        assert store.history[-1]["change_type"] == "manual_adjustment"

    def test_downgrade_clears_end_date(self, api_client, store, login):
        ws = store.add_workspace("owner-1", plan_tier="custom", subscription_end_date=datetime.now(UTC) + timedelta(days=5))
        login("admin-1", admin=True)

        api_client.put("/api/admin/accounts/owner-1/plan", json={"plan_tier": "basic"})

        assert store.workspaces[ws.id].plan_tier == "basic"
        assert store.workspaces[ws.id].subscription_end_date is None

    def test_unknown_tier_rejected(self, api_client, store, login):
        store.add_workspace("owner-1")
        login("admin-1", admin=True)

        response = api_client.put("/api/admin/accounts/owner-1/plan", json={"plan_tier": "enterprise"})

        assert response.status_code == 422

    def test_account_without_workspaces(self, api_client, login):
        login("admin-1", admin=True)

        response = api_client.put("/api/admin/accounts/ghost/plan", json={"plan_tier": "pro"})

        assert response.status_code == 404


class TestSetLimits:
    def test_omitted_fields_untouched(self, api_client, store, login):
        ws = store.add_workspace("owner-1", overrides=LimitOverrides(members=7))
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={"sparks_per_month": 1000})

        assert response.status_code == 200
        assert store.workspaces[ws.id].overrides == LimitOverrides(members=7, sparks_per_month=1000)
        limits = response.json()["workspaces"][0]["effective_limits"]
        assert limits["members"] == 7
        assert limits["sparks_per_month"] == 1000

    def test_null_resets_to_default(self, api_client, store, login):
        ws = store.add_workspace("owner-1", overrides=LimitOverrides(members=7))
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={"members": None})

        assert store.workspaces[ws.id].overrides == LimitOverrides()
        assert response.json()["workspaces"][0]["effective_limits"]["members"] == 3

    def test_zero_accepted(self, api_client, store, login):
        ws = store.add_workspace("owner-1")
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={"sparks_per_month": 0})

        assert response.status_code == 200
        assert store.workspaces[ws.id].overrides.sparks_per_month == 0

    def test_negative_rejected(self, api_client, store, login):
        ws = store.add_workspace("owner-1")
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={"members": -1})

        assert response.status_code == 400
        assert "members" in response.json()["detail"]
        assert store.workspaces[ws.id].overrides == LimitOverrides()

    @pytest.mark.parametrize("field", ["members", "workspaces", "sparks_per_month"])
    def test_value_wider_than_integer_column_rejected(self, api_client, store, login, field):
        ws = store.add_workspace("owner-1")
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={field: 3_000_000_000})

        assert response.status_code == 422
        assert store.workspaces[ws.id].overrides == LimitOverrides()

    def test_storage_accepts_bigint_byte_counts(self, api_client, store, login):
        ws = store.add_workspace("owner-1")
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={"storage_bytes": 10 * 1024**3})

        assert response.status_code == 200
        assert store.workspaces[ws.id].overrides.storage_bytes == 10 * 1024**3

    def test_storage_beyond_bigint_rejected(self, api_client, store, login):
        store.add_workspace("owner-1")
        login("admin-1", admin=True)

        response = api_client.patch("/api/admin/accounts/owner-1/limits", json={"storage_bytes": 2**63})

        assert response.status_code == 422
