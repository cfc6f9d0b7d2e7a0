"""Integration tests for the workflow API endpoints."""
import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from flowrunner.api.main import app
from flowrunner.service import get_service, reset_service

REQUEST = "flowrunner.node_sdk.http.requests.request"


@pytest.fixture(autouse=True)
def fresh_service():
    """Each test gets its own service singleton."""
    reset_service()
    yield
    reset_service()


@pytest.fixture
def client():
    return TestClient(app)


def wait_for_runs(workflow_id, count, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if get_service().ledger.count(workflow_id) >= count:
            return
        time.sleep(0.01)
    raise AssertionError(f"expected {count} runs for {workflow_id}")


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "flowrunner"}


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["service"] == "flowrunner"


def test_activate_webhook_and_run(client, linear_workflow):
    """Activate, send an event, read status, history and data."""
    response = client.post(
        "/api/workflows/wf1/activate",
        json={"workflow": linear_workflow, "triggerNode": "start"},
    )
    assert response.status_code == 200
    webhook_url = response.json()["webhookUrl"]
    assert webhook_url == "http://flow.test/api/webhooks/webhook/wf1"

    response = client.post("/api/webhooks/webhook/wf1", json={"name": "Ada"})
    assert response.status_code == 200
    assert response.text == "OK"
    wait_for_runs("wf1", 1)

    status = client.get("/api/workflows/wf1/status").json()
    assert status["workflowId"] == "wf1"
    assert status["isRegistered"] is True
    assert status["isActive"] is True
    assert status["totalExecutions"] == 1
    assert status["lastExecutionStatus"] == "success"

    runs = client.get("/api/workflows/wf1/executions").json()
    assert len(runs) == 1
    assert runs[0]["final_output"] == [{"greeting": "hi Ada", "done": True}]

    data = client.get("/api/workflows/wf1/data").json()
    assert data["run_id"] == runs[0]["run_id"]


def test_activate_flow_json(client):
    """Flow-editor JSON (data.type / sourceHandle) is accepted."""
    workflow = {
        "id": "flow-1",
        "nodes": [
            {"id": "t", "data": {"type": "trigger", "label": "Start"}},
            {"id": "c", "data": {"type": "if", "config": {
                "conditions": [{"value1": "ok", "operator": "is_equal_to", "value2": "yes"}],
            }}},
            {"id": "y", "data": {"type": "action", "config": {"values": {"path": "yes"}}}},
        ],
        "edges": [
            {"source": "t", "target": "c"},
            {"source": "c", "sourceHandle": "true", "target": "y"},
        ],
    }

    response = client.post("/api/workflows/flow-1/activate", json={"workflow": workflow})
    assert response.status_code == 200

    run = client.post("/api/workflows/flow-1/execute", json={"payload": {"ok": "yes"}}).json()
    assert run["status"] == "success"
    assert run["final_output"] == {"ok": "yes", "path": "yes"}


def test_activate_invalid_graph(client, workflow_factory):
    workflow = workflow_factory(
        nodes=[("start", "trigger", {}), ("other", "trigger", {})],
        edges=[],
    )

    response = client.post("/api/workflows/wf1/activate", json={"workflow": workflow})

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert any("more than one trigger" in p for p in detail["problems"])
    assert client.get("/api/workflows/wf1/status").json()["isRegistered"] is False


def test_activate_missing_credentials(client, workflow_factory):
    workflow = workflow_factory(
        nodes=[("start", "trigger", {"adapter": "telegram"})],
        edges=[],
    )

    response = client.post("/api/workflows/wf1/activate", json={"workflow": workflow})

    assert response.status_code == 400
    assert "token" in response.json()["detail"]


def test_activate_subscription_failure(client, telegram_workflow, mock_response):
    body = {"ok": False, "description": "Unauthorized"}
    with patch(REQUEST, return_value=mock_response(body)):
        response = client.post(
            "/api/workflows/wf-telegram/activate",
            json={"workflow": telegram_workflow},
        )

    assert response.status_code == 502
    assert "Unauthorized" in response.json()["detail"]


def test_telegram_round_trip(client, telegram_workflow, mock_response):
    """setWebhook on activate, update via webhook, deleteWebhook on deactivate."""
    with patch(REQUEST, return_value=mock_response({"ok": True})) as request:
        response = client.post(
            "/api/workflows/wf-telegram/activate",
            json={"workflow": telegram_workflow},
        )
        assert response.status_code == 200
        assert request.call_args.kwargs["url"] == "https://telegram.test/bot123:ABC/setWebhook"

        response = client.post(
            "/api/webhooks/telegram/wf-telegram",
            json={"update_id": 1, "message": {"text": "hi"}},
        )
        assert response.text == "OK"
        wait_for_runs("wf-telegram", 1)

        response = client.post("/api/workflows/wf-telegram/deactivate")
        assert response.status_code == 200
        assert response.json() == {"workflowId": "wf-telegram", "deactivated": True}
        assert request.call_args.kwargs["url"].endswith("/deleteWebhook")

    run = client.get("/api/workflows/wf-telegram/executions").json()[0]
    assert run["trigger_payload"]["json"]["message"]["message_type"] == "text"
    assert client.get("/api/workflows/wf-telegram/status").json()["isActive"] is False


def test_webhook_for_unknown_workflow_still_ok(client):
    response = client.post("/api/webhooks/webhook/ghost", json={"a": 1})

    assert response.status_code == 200
    assert response.text == "OK"


def test_webhook_plain_text_body(client, linear_workflow):
    client.post("/api/workflows/wf1/activate", json={"workflow": linear_workflow})

    response = client.post("/api/webhooks/webhook/wf1", content=b"ping")

    assert response.status_code == 200
    wait_for_runs("wf1", 1)
    run = get_service().history("wf1")[0]
    assert run.trigger_payload == {"json": "ping"}


def test_status_for_unknown_workflow(client):
    response = client.get("/api/workflows/nobody/status")

    assert response.status_code == 200
    body = response.json()
    assert body["isRegistered"] is False
    assert body["totalExecutions"] == 0


def test_deactivate_unknown(client):
    assert client.post("/api/workflows/nobody/deactivate").status_code == 404


def test_data_before_any_event(client, linear_workflow):
    client.post("/api/workflows/wf1/activate", json={"workflow": linear_workflow})

    assert client.get("/api/workflows/wf1/data").status_code == 404


def test_execute_unknown(client):
    assert client.post("/api/workflows/nobody/execute", json={}).status_code == 404


def test_executions_limit(client, linear_workflow):
    client.post("/api/workflows/wf1/activate", json={"workflow": linear_workflow})
    for i in range(7):
        client.post("/api/workflows/wf1/execute", json={"payload": {"json": {"name": str(i)}}})

    runs = client.get("/api/workflows/wf1/executions").json()
    assert len(runs) == 5
    assert runs[0]["trigger_payload"] == {"json": {"name": "6"}}

    assert len(client.get("/api/workflows/wf1/executions?limit=2").json()) == 2


def test_validate_endpoint(client, linear_workflow, workflow_factory):
    response = client.post("/api/workflows/validate", json={"workflow": linear_workflow})
    assert response.json() == {"valid": True, "triggerNode": "start", "nodes": 3}

    cyclic = workflow_factory(
        nodes=[("t", "trigger", {}), ("a", "action", {}), ("b", "action", {})],
        edges=[("t", "main", "a"), ("a", "main", "b"), ("b", "main", "a")],
    )
    response = client.post("/api/workflows/validate", json={"workflow": cyclic})
    assert response.status_code == 400
    assert any("Cycle detected" in p for p in response.json()["detail"]["problems"])


def test_list_nodes(client):
    kinds = {d["kind"] for d in client.get("/api/nodes").json()}

    assert {"trigger", "action", "if", "switch", "merge", "loop", "wait", "stopAndError"} <= kinds
