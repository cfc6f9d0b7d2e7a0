"""
Workflow Executor - Queue-driven graph execution engine.

Each run walks the graph from its trigger using an explicit FIFO work
queue. Nodes execute synchronously in the run's own worker thread, so a
blocking node (wait, httpRequest) only ever stalls its own run.

Scheduling rules:
- Every emission of a node is delivered along the edges leaving its port.
- When a node emits more than once (loop batches, multi-port outputs),
  the downstream work of each emission is drained completely before the
  next emission is dispatched; the last emission joins the enclosing
  queue. Loop batches therefore run in order and "Done" comes last.
- Deliveries to a merge node are buffered per incoming edge. A waiting
  merge fires once nothing queued can reach it, no pending emission of a
  node still dispatching can reach it, and no other waiting merge can.
  A merge first buffered while one emission drains ignores later
  emissions on that same port, so a merge inside a loop body fires per
  batch. It receives the buffered payloads in edge-declaration order.
- Loop-back edges are never followed.
- The first node error halts the run; nothing further is dequeued.
"""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple

from flowrunner.config import get_settings
from flowrunner.errors import (
    NodeExecutionError,
    StopWorkflowError,
    WorkflowInactiveError,
)
from flowrunner.node_sdk import (
    Emission,
    NodeExecutionContext,
    normalize_result,
    recorded_output,
)
from flowrunner.observability import get_logger, with_run_context
from .graph import WorkflowGraph
from .ledger import ExecutionLedger
from .registry import WorkflowRegistry, utcnow


logger = get_logger(__name__)

WorkItem = Tuple[str, Any]


class RunStatus(str, Enum):
    """Overall run status."""
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StepResult:
    """
    Record of a single node execution.
    """
    node_id: str
    kind: str
    input: Any = None
    output: Any = None
    fired_ports: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    duration_ms: float = 0
    error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.error is None and self.finished_at is not None


@dataclass
class Run:
    """
    One execution of a workflow, from trigger to completion or first error.
    """
    run_id: str
    workflow_id: str
    trigger_payload: Any = None
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    status: RunStatus = RunStatus.RUNNING
    steps: List[StepResult] = field(default_factory=list)
    final_output: Any = None
    error: Optional[str] = None
    error_node: Optional[str] = None
    manual: bool = False
    duration_ms: float = 0

    @property
    def is_success(self) -> bool:
        return self.status == RunStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == RunStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view of the run."""
        data = asdict(self)
        data["status"] = self.status.value
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        for step in data["steps"]:
            step["started_at"] = step["started_at"].isoformat()
            if step["finished_at"] is not None:
                step["finished_at"] = step["finished_at"].isoformat()
        return data


@dataclass
class _EmitterFrame:
    """A node part-way through dispatching its emissions."""
    node_id: str
    port: str
    remaining_ports: List[str]


class _RunState:
    """Mutable scheduling state of one run."""

    def __init__(self, graph: WorkflowGraph, run: Run, credentials: Dict[str, str]):
        self.graph = graph
        self.run = run
        self.credentials = credentials
        # Active queues, outermost first
        self.stack: List[Deque[WorkItem]] = []
        # emitters[i] is draining one emission into stack[i + 1]
        self.emitters: List[_EmitterFrame] = []
        # merge node id -> incoming edge position -> payloads in arrival order
        self.merge_buffers: Dict[str, Dict[int, List[Any]]] = {}
        # merge node id -> stack depth of its first buffered delivery
        self.merge_depth: Dict[str, int] = {}

    def buffer(self, merge_id: str, edge_position: int, payload: Any) -> None:
        edges = self.merge_buffers.setdefault(merge_id, {})
        edges.setdefault(edge_position, []).append(payload)
        self.merge_depth.setdefault(merge_id, len(self.stack) - 1)

    def take_merge_inputs(self, merge_id: str) -> List[Any]:
        edges = self.merge_buffers.pop(merge_id)
        self.merge_depth.pop(merge_id, None)
        return [payload for position in sorted(edges) for payload in edges[position]]


class WorkflowExecutor:
    """
    Runs registered workflows and records them in the ledger.

    Usage:
        executor = WorkflowExecutor(registry)
        run = executor.run("wf1", {"json": {...}})       # blocking
        future = executor.submit("wf1", {"json": {...}})  # background
        executor.shutdown()
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        ledger: Optional[ExecutionLedger] = None,
        max_workers: Optional[int] = None,
        max_steps: Optional[int] = None,
        http_timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.registry = registry
        self.ledger = ledger or registry.ledger
        self.max_steps = max_steps or settings.max_steps
        self.http_timeout = http_timeout or settings.http_timeout_s
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or settings.max_concurrent_runs,
            thread_name_prefix="flowrunner-run",
        )
        self._cancel = threading.Event()

    # ==== Entry points ====

    def run(self, workflow_id: str, trigger_payload: Any = None, manual: bool = False) -> Run:
        """
        Execute a registered workflow and append the run to the ledger.

        Raises:
            WorkflowNotFoundError: If the workflow is not registered
            WorkflowInactiveError: If the workflow is inactive (non-manual runs)
        """
        record = self.registry.get(workflow_id)
        if not manual and not record.is_active:
            raise WorkflowInactiveError(workflow_id)

        run = self._execute_graph(
            record.graph, workflow_id, trigger_payload, record.credentials, manual
        )
        self.ledger.append(workflow_id, run)
        return run

    def submit(self, workflow_id: str, trigger_payload: Any = None, manual: bool = False) -> "Future[Run]":
        """Schedule run() on the worker pool."""
        return self._pool.submit(self.run, workflow_id, trigger_payload, manual)

    def execute(
        self,
        definition: Any,
        trigger_payload: Any = None,
        credentials: Optional[Dict[str, str]] = None,
    ) -> Run:
        """
        Run a definition without registering it. Not recorded in the ledger.

        Raises:
            InvalidGraph: If the definition is invalid
        """
        graph = WorkflowGraph(definition)
        return self._execute_graph(
            graph, graph.workflow_id, trigger_payload, dict(credentials or {}), True
        )

    def shutdown(self, wait: bool = True) -> None:
        """Interrupt waiting nodes and stop the worker pool."""
        self._cancel.set()
        self._pool.shutdown(wait=wait)

    # ==== Run lifecycle ====

    def _execute_graph(
        self,
        graph: WorkflowGraph,
        workflow_id: str,
        trigger_payload: Any,
        credentials: Dict[str, str],
        manual: bool,
    ) -> Run:
        run = Run(
            run_id=uuid.uuid4().hex,
            workflow_id=workflow_id,
            trigger_payload=trigger_payload,
            manual=manual,
        )
        extra = with_run_context(workflow_id=workflow_id, run_id=run.run_id)
        logger.info("Run started", extra=with_run_context(
            workflow_id=workflow_id, run_id=run.run_id, manual=manual
        ))

        state = _RunState(graph, run, credentials)
        start = time.perf_counter()
        try:
            root: Deque[WorkItem] = deque([(graph.trigger_node.id, trigger_payload)])
            state.stack.append(root)
            self._drain(state, root)
            run.status = RunStatus.SUCCESS
        except NodeExecutionError as e:
            run.status = RunStatus.ERROR
            run.error = e.message
            run.error_node = e.node_id
            level = "Run stopped" if isinstance(e, StopWorkflowError) else "Run failed"
            logger.warning(f"{level}: {e.message}", extra=with_run_context(
                workflow_id=workflow_id, run_id=run.run_id, node_id=e.node_id
            ))
        finally:
            run.finished_at = utcnow()
            run.duration_ms = (time.perf_counter() - start) * 1000

        successful = [s for s in run.steps if s.is_success]
        run.final_output = successful[-1].output if successful else None

        logger.info(
            f"Run finished with status {run.status.value} "
            f"({len(run.steps)} steps, {run.duration_ms:.1f}ms)",
            extra=extra,
        )
        return run

    # ==== Scheduling ====

    def _drain(self, state: _RunState, queue: Deque[WorkItem]) -> None:
        """Run queued work (and any merges that become ready) until idle."""
        while True:
            while queue:
                node_id, payload = queue.popleft()
                emissions = self._run_step(state, node_id, payload)
                self._dispatch(state, node_id, emissions, queue)

            merge_id = self._next_ready_merge(state)
            if merge_id is None:
                return
            inputs = state.take_merge_inputs(merge_id)
            emissions = self._run_step(state, merge_id, inputs)
            self._dispatch(state, merge_id, emissions, queue)

    def _dispatch(
        self,
        state: _RunState,
        node_id: str,
        emissions: List[Emission],
        queue: Deque[WorkItem],
    ) -> None:
        last = len(emissions) - 1
        for position, emission in enumerate(emissions):
            if position == last:
                self._deliver(state, node_id, emission, queue)
                continue

            local: Deque[WorkItem] = deque()
            state.stack.append(local)
            state.emitters.append(_EmitterFrame(
                node_id=node_id,
                port=emission.port,
                remaining_ports=[e.port for e in emissions[position + 1:]],
            ))
            try:
                self._deliver(state, node_id, emission, local)
                self._drain(state, local)
            finally:
                state.emitters.pop()
                state.stack.pop()

    def _deliver(
        self,
        state: _RunState,
        node_id: str,
        emission: Emission,
        queue: Deque[WorkItem],
    ) -> None:
        graph = state.graph
        for edge in graph.outgoing_edges(node_id, emission.port):
            if graph.node_class(edge.target).collects_inputs:
                state.buffer(edge.target, graph.edge_index(edge), emission.payload)
            else:
                queue.append((edge.target, emission.payload))

    def _next_ready_merge(self, state: _RunState) -> Optional[str]:
        graph = state.graph
        waiting = list(state.merge_buffers)
        for merge_id in waiting:
            queued = any(
                item_id == merge_id or graph.can_reach(item_id, merge_id)
                for queue in state.stack
                for item_id, _ in queue
            )
            if queued:
                continue
            if self._blocked_by_emitters(state, merge_id):
                continue
            upstream_merge = any(
                other != merge_id and graph.can_reach(other, merge_id)
                for other in waiting
            )
            if not upstream_merge:
                return merge_id
        return None

    def _blocked_by_emitters(self, state: _RunState, merge_id: str) -> bool:
        """
        True while a node still dispatching emissions can deliver to the merge.

        A merge first buffered inside the drain of an emission belongs to that
        emission: later emissions on the same port (the next loop batch) do
        not hold it back, so it fires once per batch.
        """
        graph = state.graph
        depth = state.merge_depth[merge_id]
        for index, frame in enumerate(state.emitters):
            ports = set(frame.remaining_ports)
            if index < depth:
                ports.discard(frame.port)
            for port in ports:
                for edge in graph.outgoing_edges(frame.node_id, port):
                    if edge.target == merge_id or graph.can_reach(edge.target, merge_id):
                        return True
        return False

    # ==== Node execution ====

    def _run_step(self, state: _RunState, node_id: str, input_data: Any) -> List[Emission]:
        run = state.run
        if self._cancel.is_set():
            raise NodeExecutionError("Run cancelled: executor is shutting down", node_id=node_id)
        if len(run.steps) >= self.max_steps:
            raise NodeExecutionError(
                f"Run exceeded the limit of {self.max_steps} steps", node_id=node_id
            )

        spec = state.graph.get_node(node_id)
        node = state.graph.create_node(node_id)
        node.set_context(
            NodeExecutionContext(
                workflow_id=run.workflow_id,
                node_id=node_id,
                run_id=run.run_id,
                credentials=state.credentials,
                cancel_event=self._cancel,
                http_timeout=self.http_timeout,
            )
        )

        step = StepResult(node_id=node_id, kind=spec.kind, input=input_data)
        run.steps.append(step)
        logger.debug(
            f"Executing {spec.kind} node {spec.label}",
            extra=with_run_context(
                workflow_id=run.workflow_id, run_id=run.run_id, node_id=node_id
            ),
        )

        start = time.perf_counter()
        error: Optional[NodeExecutionError] = None
        result: Any = None
        try:
            result = node.execute(dict(spec.config), input_data)
        except NodeExecutionError as e:
            if e.node_id is None:
                e.node_id = node_id
            error = e
        except Exception as e:
            error = NodeExecutionError(f"{type(e).__name__}: {e}", node_id=node_id)
            error.__cause__ = e
        finally:
            step.finished_at = utcnow()
            step.duration_ms = (time.perf_counter() - start) * 1000

        if error is not None:
            step.error = error.message
            raise error

        emissions = normalize_result(result)
        step.output = recorded_output(result)
        step.fired_ports = list(dict.fromkeys(e.port for e in emissions))
        return emissions


__all__ = [
    "RunStatus",
    "StepResult",
    "Run",
    "WorkflowExecutor",
]
