"""
Workflow Runtime - Graph model, registry, execution and history.

This package provides:
- WorkflowDefinition / parse_workflow: Workflow JSON structures
- WorkflowGraph: Validated, traversable graph
- WorkflowRegistry: Registration and activation state
- WorkflowExecutor: Queue-driven run engine
- ExecutionLedger: Bounded per-workflow run history
"""

from .models import EdgeSpec, NodeSpec, WorkflowDefinition, parse_workflow
from .graph import GraphEdge, WorkflowGraph
from .ledger import ExecutionLedger
from .registry import StatusReport, WorkflowRecord, WorkflowRegistry, WorkflowState
from .executor import Run, RunStatus, StepResult, WorkflowExecutor

__all__ = [
    "EdgeSpec",
    "NodeSpec",
    "WorkflowDefinition",
    "parse_workflow",
    "GraphEdge",
    "WorkflowGraph",
    "ExecutionLedger",
    "StatusReport",
    "WorkflowRecord",
    "WorkflowRegistry",
    "WorkflowState",
    "Run",
    "RunStatus",
    "StepResult",
    "WorkflowExecutor",
]
