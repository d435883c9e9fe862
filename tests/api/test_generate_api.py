"""Tests for the metered generation endpoint."""

import pytest

from virl.api.routes.generation import get_llm_client
from virl.core.exceptions import GenerationFailedError
from virl.quota.store import current_month_key

pytestmark = pytest.mark.unit

BODY = {"messages": [{"role": "user", "content": "Write a caption"}]}


class FakeGateway:
    def __init__(self, content: str = "caption", fail: bool = False):
        self.content = content
        self.fail = fail
        self.calls = []

    async def complete(self, messages, context=None):
        self.calls.append((messages, context))
        if self.fail:
            raise GenerationFailedError("LLM gateway returned 500: boom")
        return self.content


@pytest.fixture
def gateway(app):
    fake = FakeGateway()
    app.dependency_overrides[get_llm_client] = lambda: fake
    return fake


def test_generation_spends_one_spark(api_client, store, login, gateway):
    ws = store.add_workspace("owner-1")
    login("owner-1")

    response = api_client.post("/api/generate", json={**BODY, "context": {"platform": "youtube"}})

    assert response.status_code == 200
    assert response.json() == {"content": "caption", "workspace_id": ws.id, "spark_count": 1, "limit": 30}
    assert store.usage[(ws.id, current_month_key())] == 1
    assert gateway.calls[0][1] == {"platform": "youtube"}


def test_denied_at_limit(api_client, store, login, gateway):
    ws = store.add_workspace("owner-1")
    store.set_sparks(ws.id, current_month_key(), 30)
    login("owner-1")

    response = api_client.post("/api/generate", json=BODY)

    assert response.status_code == 403
    assert response.json()["detail"].startswith("Account limit reached. You've used all 30 Vixi Sparks")
    assert gateway.calls == []
    assert store.usage[(ws.id, current_month_key())] == 30


def test_gateway_failure_is_502_and_not_recorded(api_client, store, login, gateway):
    store.add_workspace("owner-1")
    gateway.fail = True
    login("owner-1")

    response = api_client.post("/api/generate", json=BODY)

    assert response.status_code == 502
    assert store.usage == {}


def test_no_workspace_is_403(api_client, login, gateway):
    login("nobody")

    response = api_client.post("/api/generate", json=BODY)

    assert response.status_code == 403
    assert gateway.calls == []


def test_member_spends_from_owner_pool(api_client, store, login, gateway):
    ws = store.add_workspace("owner-1", plan_tier="pro")
    store.members[ws.id]["guest-1"] = "member"
    login("guest-1")

    body = api_client.post("/api/generate", json=BODY).json()

    assert body["workspace_id"] == ws.id
    assert body["limit"] == 300
    assert store.usage[(ws.id, current_month_key())] == 1


def test_empty_messages_rejected(api_client, login, gateway):
    login("owner-1")
    assert api_client.post("/api/generate", json={"messages": []}).status_code == 422
