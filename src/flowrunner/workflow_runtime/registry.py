"""
Workflow Registry - Registration and activation state per workflow.

Lifecycle per workflow id:

    unregistered -> registered-active        (register)
    registered-active -> registered-inactive (deactivate)
    registered-inactive -> registered-active (register again)

register() is atomic: the graph is compiled and validated before any
state is touched, so a failed registration leaves the previous state
(or absence) intact. Credentials are stored per workflow id and only
ever written by register().
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from flowrunner.errors import InvalidGraph, WorkflowNotFoundError
from flowrunner.node_registry import NodeRegistry
from .graph import WorkflowGraph
from .ledger import ExecutionLedger


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowState(str, Enum):
    """Activation state of a workflow id."""
    UNREGISTERED = "unregistered"
    INACTIVE = "registered-inactive"
    ACTIVE = "registered-active"


@dataclass
class WorkflowRecord:
    """
    Registry-owned state of one workflow.
    """
    workflow_id: str
    graph: WorkflowGraph
    state: WorkflowState = WorkflowState.ACTIVE
    credentials: Dict[str, str] = field(default_factory=dict)
    registered_at: datetime = field(default_factory=utcnow)
    deactivated_at: Optional[datetime] = None

    @property
    def trigger_node_id(self) -> str:
        return self.graph.trigger_node.id

    @property
    def is_active(self) -> bool:
        return self.state == WorkflowState.ACTIVE


class StatusReport(BaseModel):
    """Snapshot of a workflow's registration and execution state."""
    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str
    is_registered: bool = Field(False, alias="isRegistered")
    is_active: bool = Field(False, alias="isActive")
    registered_at: Optional[datetime] = Field(None, alias="registeredAt")
    deactivated_at: Optional[datetime] = Field(None, alias="deactivatedAt")
    total_executions: int = Field(0, alias="totalExecutions")
    last_execution: Optional[datetime] = Field(None, alias="lastExecution")
    last_execution_status: Optional[str] = Field(None, alias="lastExecutionStatus")


class WorkflowRegistry:
    """
    Thread-safe store of workflow registrations.

    Usage:
        registry = WorkflowRegistry(ledger)
        registry.register("wf1", definition, credentials={"token": "..."})
        registry.is_active("wf1")
        registry.deactivate("wf1")
    """

    def __init__(
        self,
        ledger: Optional[ExecutionLedger] = None,
        node_registry: Optional[NodeRegistry] = None,
    ):
        self.ledger = ledger or ExecutionLedger()
        self._node_registry = node_registry
        self._records: Dict[str, WorkflowRecord] = {}
        self._lock = threading.Lock()

    def compile(self, workflow_id: str, definition: Any) -> WorkflowGraph:
        """
        Validate a definition without registering it.

        Raises:
            InvalidGraph: On any structural problem
        """
        graph = WorkflowGraph(definition, node_registry=self._node_registry)
        graph.workflow_id = workflow_id
        return graph

    def register(
        self,
        workflow_id: str,
        definition: Any,
        credentials: Optional[Dict[str, str]] = None,
        trigger_node: Optional[str] = None,
    ) -> WorkflowRecord:
        """
        Register (or replace) a workflow and mark it active.

        Args:
            workflow_id: Workflow identifier
            definition: WorkflowDefinition or its JSON
            credentials: Per-workflow credentials (e.g., {"token": ...})
            trigger_node: Expected trigger node id, if the caller names one

        Raises:
            InvalidGraph: If the graph is invalid; nothing is stored
        """
        if not workflow_id:
            raise InvalidGraph("Workflow id is required")

        graph = self.compile(workflow_id, definition)
        if trigger_node and graph.trigger_node.id != trigger_node:
            raise InvalidGraph(
                f"Node {trigger_node} is not the workflow trigger "
                f"(trigger is {graph.trigger_node.id})"
            )

        record = WorkflowRecord(
            workflow_id=workflow_id,
            graph=graph,
            credentials=dict(credentials or {}),
        )
        with self._lock:
            self._records[workflow_id] = record

        logger.info(f"Registered workflow {workflow_id} ({len(graph.node_ids)} nodes)")
        return record

    def deactivate(self, workflow_id: str) -> bool:
        """
        Mark a workflow inactive.

        Returns:
            False if the workflow was never registered
        """
        with self._lock:
            record = self._records.get(workflow_id)
            if record is None:
                return False
            record.state = WorkflowState.INACTIVE
            record.deactivated_at = utcnow()

        logger.info(f"Deactivated workflow {workflow_id}")
        return True

    def get(self, workflow_id: str) -> WorkflowRecord:
        """
        Snapshot of a workflow's record.

        Raises:
            WorkflowNotFoundError: If the workflow was never registered
        """
        with self._lock:
            record = self._records.get(workflow_id)
            if record is None:
                raise WorkflowNotFoundError(workflow_id)
            return replace(record, credentials=dict(record.credentials))

    def state(self, workflow_id: str) -> WorkflowState:
        with self._lock:
            record = self._records.get(workflow_id)
        return record.state if record else WorkflowState.UNREGISTERED

    def is_active(self, workflow_id: str) -> bool:
        return self.state(workflow_id) == WorkflowState.ACTIVE

    def credentials(self, workflow_id: str) -> Dict[str, str]:
        """Copy of the workflow's credentials."""
        return self.get(workflow_id).credentials

    def list_workflows(self) -> List[WorkflowRecord]:
        with self._lock:
            return [
                replace(r, credentials=dict(r.credentials))
                for r in self._records.values()
            ]

    def status(self, workflow_id: str) -> StatusReport:
        """Registration state plus execution totals; never raises for unknown ids."""
        with self._lock:
            record = self._records.get(workflow_id)

        if record is None:
            return StatusReport(workflow_id=workflow_id)

        latest = self.ledger.latest(workflow_id)
        return StatusReport(
            workflow_id=workflow_id,
            is_registered=True,
            is_active=record.is_active,
            registered_at=record.registered_at,
            deactivated_at=record.deactivated_at,
            total_executions=self.ledger.count(workflow_id),
            last_execution=latest.started_at if latest else None,
            last_execution_status=latest.status.value if latest else None,
        )


__all__ = [
    "WorkflowState",
    "WorkflowRecord",
    "StatusReport",
    "WorkflowRegistry",
]
