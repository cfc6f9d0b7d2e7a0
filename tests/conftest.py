"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["FLOWRUNNER_ENV"] = "test"
os.environ["FLOWRUNNER_BASE_URL"] = "http://flow.test"
os.environ["FLOWRUNNER_TELEGRAM_API_BASE"] = "https://telegram.test"
os.environ["FLOWRUNNER_MAX_CONCURRENT_RUNS"] = "4"


def make_workflow(nodes, edges, workflow_id="wf-test", name="Test Workflow"):
    """Build a canonical workflow definition dict."""
    return {
        "id": workflow_id,
        "name": name,
        "nodes": [
            {"id": node_id, "kind": kind, "config": config}
            for node_id, kind, config in nodes
        ],
        "edges": [
            {"source": source, "source_port": port, "target": target}
            for source, port, target in edges
        ],
    }


@pytest.fixture
def linear_workflow():
    """trigger -> setData -> action."""
    return make_workflow(
        nodes=[
            ("start", "trigger", {}),
            ("greet", "setData", {"fields": [{"key": "greeting", "value": "hi {{json.name}}"}]}),
            ("finish", "action", {"values": {"done": True}}),
        ],
        edges=[
            ("start", "main", "greet"),
            ("greet", "main", "finish"),
        ],
    )


@pytest.fixture
def telegram_workflow():
    """Telegram trigger -> action, bot token in the trigger config."""
    return make_workflow(
        nodes=[
            ("start", "trigger", {"adapter": "telegram", "token": "123:ABC"}),
            ("reply", "action", {}),
        ],
        edges=[("start", "main", "reply")],
        workflow_id="wf-telegram",
    )


@pytest.fixture
def registry():
    """Empty workflow registry with a small ledger."""
    from flowrunner.workflow_runtime import ExecutionLedger, WorkflowRegistry

    return WorkflowRegistry(ExecutionLedger(capacity=10))


@pytest.fixture
def executor(registry):
    """Executor bound to the registry fixture; shut down after the test."""
    from flowrunner.workflow_runtime import WorkflowExecutor

    executor = WorkflowExecutor(registry, max_workers=4)
    yield executor
    executor.shutdown()


@pytest.fixture
def mock_response():
    """Factory for fake requests.Response objects."""
    from unittest.mock import Mock

    def _make(json_body=None, status_code=200):
        response = Mock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        response.reason = "OK" if response.ok else "Error"
        response.headers = {"Content-Type": "application/json"}
        response.text = "" if json_body is None else str(json_body)
        response.url = "https://telegram.test"
        response.json.return_value = json_body
        return response

    return _make


@pytest.fixture
def workflow_factory():
    """The make_workflow helper as a fixture."""
    return make_workflow
