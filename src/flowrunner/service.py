"""Workflow service - activation lifecycle and inbound event handling."""
import threading
from concurrent.futures import Future
from typing import Any

from flowrunner.config import Settings, get_settings
from flowrunner.errors import FlowrunnerError, InvalidGraph, NotFound, WorkflowNotFoundError
from flowrunner.observability import get_logger, with_run_context
from flowrunner.triggers import TriggerAdapter, get_adapter
from flowrunner.workflow_runtime import (
    ExecutionLedger,
    Run,
    StatusReport,
    WorkflowExecutor,
    WorkflowGraph,
    WorkflowRegistry,
)

logger = get_logger(__name__)

DEFAULT_ADAPTER = "webhook"


def _trigger_node_id(trigger_node: str | dict[str, Any] | None) -> str | None:
    if isinstance(trigger_node, dict):
        return trigger_node.get("id")
    return trigger_node


class WorkflowService:
    """
    Facade over the registry, executor and trigger adapters.

    Activation validates the graph, checks adapter credentials, creates the
    external subscription and only then registers the workflow, so a failure
    at any step leaves nothing registered.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: WorkflowRegistry | None = None,
        executor: WorkflowExecutor | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or WorkflowRegistry(
            ExecutionLedger(capacity=self.settings.history_capacity)
        )
        self.executor = executor or WorkflowExecutor(
            self.registry,
            max_workers=self.settings.max_concurrent_runs,
            max_steps=self.settings.max_steps,
            http_timeout=self.settings.http_timeout_s,
        )
        self._last_payloads: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def ledger(self) -> ExecutionLedger:
        return self.registry.ledger

    def webhook_url(self, adapter: str, workflow_id: str) -> str:
        """Public callback URL for a workflow's trigger adapter."""
        return f"{self.settings.base_url}/api/webhooks/{adapter}/{workflow_id}"

    # ==== Activation lifecycle ====

    def activate(
        self,
        workflow_id: str,
        definition: Any,
        trigger_node: str | dict[str, Any] | None = None,
        credentials: dict[str, str] | None = None,
    ) -> dict[str, str]:
        """
        Validate, subscribe and register a workflow.

        Args:
            workflow_id: Workflow ID
            definition: Workflow definition (canonical or flow JSON)
            trigger_node: Trigger node id (or node object) named by the caller
            credentials: Per-workflow credentials; a trigger "token" config
                value is used when no "token" credential is given

        Returns:
            {"webhookUrl": ...}

        Raises:
            InvalidGraph: If the graph is invalid or trigger_node is wrong
            MissingCredentials: If the adapter's credentials are absent
            SubscriptionError: If the external subscription fails
        """
        if not workflow_id:
            raise InvalidGraph("Workflow id is required")

        graph = self.registry.compile(workflow_id, definition)
        expected = _trigger_node_id(trigger_node)
        if expected and graph.trigger_node.id != expected:
            raise InvalidGraph(f"Node {expected} is not the workflow trigger")

        try:
            adapter = self._adapter_for(graph)
        except NotFound as e:
            raise InvalidGraph(str(e)) from e
        creds = self._credentials_for(graph, credentials)
        adapter.check_credentials(creds)

        url = self.webhook_url(adapter.name, workflow_id)
        adapter.create_subscription(creds, url)

        self.registry.register(workflow_id, graph.definition, credentials=creds)
        logger.info(
            "Workflow activated",
            extra=with_run_context(workflow_id=workflow_id, adapter=adapter.name),
        )
        return {"webhookUrl": url}

    def deactivate(self, workflow_id: str) -> bool:
        """
        Remove the subscription and mark the workflow inactive.

        Returns:
            False if the workflow was never registered
        """
        try:
            record = self.registry.get(workflow_id)
        except WorkflowNotFoundError:
            return False

        adapter = self._adapter_for(record.graph)
        if not adapter.remove_subscription(record.credentials):
            logger.warning(
                "Subscription removal failed; deactivating anyway",
                extra=with_run_context(workflow_id=workflow_id, adapter=adapter.name),
            )

        return self.registry.deactivate(workflow_id)

    def status(self, workflow_id: str) -> StatusReport:
        return self.registry.status(workflow_id)

    # ==== Execution data ====

    def execution_data(self, workflow_id: str) -> Any:
        """
        Latest run (as a dict), or the latest trigger payload if no run
        has completed yet.

        Raises:
            NotFound: If there is neither
        """
        latest = self.ledger.latest(workflow_id)
        if latest is not None:
            return latest.to_dict()
        with self._lock:
            if workflow_id in self._last_payloads:
                return self._last_payloads[workflow_id]
        raise NotFound(f"No execution data found for workflow {workflow_id}")

    def history(self, workflow_id: str, limit: int = 5) -> list[Run]:
        return self.ledger.recent(workflow_id, limit)

    # ==== Runs ====

    def handle_event(
        self,
        adapter_name: str,
        workflow_id: str,
        body: Any,
        wait: bool = False,
    ) -> dict[str, Any]:
        """
        Accept an inbound trigger event and start a run.

        Always returns an acknowledgement; problems are logged and reported
        in the ack, never raised.
        """
        extra = with_run_context(workflow_id=workflow_id, adapter=adapter_name)
        try:
            record = self.registry.get(workflow_id)
            if not record.is_active:
                logger.warning("Event for inactive workflow ignored", extra=extra)
                return {"ok": True, "accepted": False, "reason": "inactive"}

            adapter = get_adapter(adapter_name, self.settings)
            if adapter.name != self._adapter_for(record.graph).name:
                logger.warning("Event for a different trigger adapter ignored", extra=extra)
                return {"ok": True, "accepted": False, "reason": "adapter mismatch"}

            payload = adapter.normalize(body, record.credentials)
            with self._lock:
                self._last_payloads[workflow_id] = payload

            future = self.executor.submit(workflow_id, payload)
        except FlowrunnerError as e:
            logger.warning(f"Event rejected: {e}", extra=extra)
            return {"ok": True, "accepted": False, "reason": str(e)}
        except Exception:
            logger.exception("Event handling failed", extra=extra)
            return {"ok": True, "accepted": False, "reason": "internal error"}

        def log_failure(done: Future) -> None:
            if not done.cancelled() and done.exception() is not None:
                logger.error(f"Run failed: {done.exception()}", extra=extra)

        future.add_done_callback(log_failure)

        if wait:
            try:
                run = future.result()
            except FlowrunnerError as e:
                return {"ok": True, "accepted": False, "reason": str(e)}
            except Exception:
                return {"ok": True, "accepted": False, "reason": "internal error"}
            return {"ok": True, "accepted": True, "runId": run.run_id, "status": run.status.value}
        return {"ok": True, "accepted": True}

    def execute_manual(self, workflow_id: str, payload: Any = None) -> Run:
        """
        Run a registered workflow now, active or not.

        Raises:
            WorkflowNotFoundError: If the workflow is not registered
        """
        return self.executor.run(workflow_id, payload, manual=True)

    def execute_definition(
        self,
        definition: Any,
        payload: Any = None,
        credentials: dict[str, str] | None = None,
    ) -> Run:
        """Run an unregistered definition once."""
        return self.executor.execute(definition, payload, credentials)

    def shutdown(self) -> None:
        self.executor.shutdown()

    # ==== Helpers ====

    def _adapter_for(self, graph: WorkflowGraph) -> TriggerAdapter:
        return get_adapter(
            graph.trigger_node.config.get("adapter") or DEFAULT_ADAPTER,
            self.settings,
        )

    def _credentials_for(
        self,
        graph: WorkflowGraph,
        credentials: dict[str, str] | None,
    ) -> dict[str, str]:
        creds = dict(credentials or {})
        token = graph.trigger_node.config.get("token")
        if token and not creds.get("token"):
            creds["token"] = token
        return creds


# Global service instance
_service: WorkflowService | None = None
_service_lock = threading.Lock()


def get_service() -> WorkflowService:
    """Get or create the global workflow service."""
    global _service
    with _service_lock:
        if _service is None:
            _service = WorkflowService()
    return _service


def reset_service() -> None:
    """Shut down and drop the global service (useful for testing)."""
    global _service
    with _service_lock:
        if _service is not None:
            _service.shutdown()
        _service = None
