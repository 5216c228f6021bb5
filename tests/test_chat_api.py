"""End-to-end checks for the chat and admin HTTP surfaces."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from chatmeter.api.main import create_app
from chatmeter.core.errors import UpstreamError
from chatmeter.services.snapshot import InMemorySnapshotStore

from conftest import ADMIN_SECRET, seed_snapshot

ADMIN = {"X-Admin-Secret": ADMIN_SECRET}


@pytest.fixture
def app_context(settings, upstream):
    store = InMemorySnapshotStore(seed_snapshot())
    app = create_app(settings, store=store, upstream=upstream)
    return {"app": app, "client": TestClient(app), "store": store, "upstream": upstream}


@pytest.fixture
def client(app_context) -> TestClient:
    return app_context["client"]


def chat(client: TestClient, token: str | None, message: str = "Quanto custa um piso?"):
    headers = {"X-Client-Token": token} if token is not None else {}
    return client.post("/chat", json={"message": message}, headers=headers)


def test_chat_quota_scenario(client, app_context):
    for expected in (1, 2, 3):
        response = chat(client, "A")
        assert response.status_code == 200
        body = response.json()
        assert body["reply"] == "Olá!"
        assert body["usage"]["used"] == expected
        assert body["usage"]["limit"] == 3

    denied = chat(client, "A")
    assert denied.status_code == 402
    assert denied.json()["error"] == "quota_exceeded"
    assert (denied.json()["used"], denied.json()["limit"]) == (3, 3)
    assert len(app_context["upstream"].prompts) == 3

    usage = client.get("/usage", headers={"X-Client-Token": "A"}).json()
    assert (usage["used"], usage["remaining"], usage["plan"]) == (3, 0, "free")

    raised = client.put("/admin/plans/free", json={"monthlyMessages": 10, "price": "R$ 0,00"}, headers=ADMIN)
    assert raised.status_code == 200
    assert chat(client, "A").json()["usage"]["used"] == 4


def test_chat_authentication(client):
    assert chat(client, None).status_code == 401
    assert chat(client, "unknown").status_code == 403
    bearer = client.post("/chat", json={"message": "oi"}, headers={"Authorization": "Bearer X"})
    assert bearer.status_code == 200


def test_empty_message_is_rejected_without_usage(client, app_context):
    response = chat(client, "A", message="   ")
    assert response.status_code == 400
    assert response.json()["detail"] == "Empty message"
    assert app_context["app"].state.registry.usage("A")[1] == 0


def test_upstream_failure_is_not_counted(client, app_context):
    app_context["upstream"].error = UpstreamError("Upstream completion failed", details="boom")
    response = chat(client, "A")
    assert response.status_code == 502
    assert response.json()["details"] == "boom"
    assert app_context["app"].state.registry.usage("A")[1] == 0


def test_admin_requires_secret(client):
    assert client.get("/admin/plans").status_code == 401
    assert client.get("/admin/plans", headers={"X-Admin-Secret": "nope"}).status_code == 403
    plans = client.get("/admin/plans", headers=ADMIN).json()
    assert plans == [
        {"name": "free", "monthlyMessages": 3, "price": "R$ 0,00"},
        {"name": "pro", "monthlyMessages": 100, "price": "R$ 29,90"},
    ]


def test_admin_disabled_without_configured_secret(settings, upstream):
    settings.admin_secret = ""
    client = TestClient(create_app(settings, store=InMemorySnapshotStore(seed_snapshot()), upstream=upstream))
    assert client.get("/admin/users", headers={"X-Admin-Secret": ""}).status_code in (401, 403)
    response = client.put("/admin/users/B", json={"plan": "free"}, headers={"X-Admin-Secret": "anything"})
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access disabled"


def test_remove_referenced_plan_conflicts(client, app_context):
    response = client.delete("/admin/plans/pro", headers=ADMIN)
    assert response.status_code == 409
    assert response.json()["tokens"] == ["X"]
    assert app_context["store"].saves == 0


def test_user_lifecycle(client, app_context):
    assert client.put("/admin/users/B", json={"plan": "ghost"}, headers=ADMIN).status_code == 404
    assigned = client.put("/admin/users/B", json={"plan": "free"}, headers=ADMIN)
    assert assigned.json() == {"op": "assign", "persisted": True, "token": "B", "plan": "free", "used": None}

    chat(client, "B")
    chat(client, "B")
    renamed = client.post("/admin/users/B/rename", json={"newToken": "B2"}, headers=ADMIN)
    assert renamed.status_code == 200
    assert renamed.json()["used"] == 2

    assert chat(client, "B").status_code == 403
    assert chat(client, "B2").json()["usage"]["used"] == 3

    conflict = client.post("/admin/users/B2/rename", json={"newToken": "X"}, headers=ADMIN)
    assert conflict.status_code == 409

    assert client.get("/admin/usage", headers=ADMIN).json()["usage"] == {"B2": 3}

    assert client.delete("/admin/users/B2", headers=ADMIN).status_code == 200
    assert client.delete("/admin/users/B2", headers=ADMIN).status_code == 404
    assert client.get("/admin/usage", headers=ADMIN).json()["usage"] == {}

    snapshot = client.get("/admin/snapshot", headers=ADMIN).json()
    assert snapshot == app_context["store"].load().to_dict()
    assert snapshot["users"] == {"A": "free", "X": "pro"}
    assert app_context["store"].saves == 3


def test_invalid_plan_payload(client):
    response = client.put("/admin/plans/free", json={"monthlyMessages": 0, "price": "R$ 1"}, headers=ADMIN)
    assert response.status_code == 400
    response = client.put("/admin/plans/free", json={"monthlyMessages": 5, "price": ""}, headers=ADMIN)
    assert response.status_code == 400


@pytest.mark.parametrize("limit", [True, 2.0, "10"])
def test_plan_limit_must_be_a_json_integer(client, app_context, limit):
    response = client.put("/admin/plans/p", json={"monthlyMessages": limit, "price": "R$ 1"}, headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert "p" not in app_context["store"].load().plans


@pytest.mark.parametrize(
    "path, body",
    [
        ("/admin/plans/p", {"monthlyMessages": "abc", "price": "R$ 1"}),
        ("/admin/plans/p", {"monthlyMessages": 3}),
        ("/admin/users/A/rename", {}),
        ("/admin/users/B", {"plan": 7}),
    ],
)
def test_malformed_admin_body_is_a_validation_error(client, app_context, path, body):
    method = client.post if path.endswith("/rename") else client.put
    response = method(path, json=body, headers=ADMIN)
    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == "validation_error"
    assert isinstance(payload["detail"], str) and payload["detail"]
    assert app_context["store"].saves == 0


def test_chat_without_body_is_a_validation_error(client, app_context):
    response = client.post("/chat", headers={"X-Client-Token": "A"})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert app_context["app"].state.registry.usage("A")[1] == 0


def test_padded_path_tokens_are_normalized(client, app_context):
    assert client.put("/admin/users/%20B", json={"plan": "free"}, headers=ADMIN).json()["token"] == "B"

    renamed = client.post("/admin/users/%20B%20/rename", json={"newToken": "B2"}, headers=ADMIN)
    assert renamed.status_code == 200
    assert renamed.json()["token"] == "B2"

    removed = client.delete("/admin/users/%20B2", headers=ADMIN)
    assert removed.status_code == 200
    assert removed.json()["token"] == "B2"
    assert app_context["store"].load().users == {"A": "free", "X": "pro"}
