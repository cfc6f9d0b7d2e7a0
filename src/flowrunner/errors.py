"""
Errors - Exception taxonomy for registration, activation and execution.

Registration and activation errors are raised synchronously to the caller.
Node errors are caught by the executor, recorded on the step and the run,
and never escape a run.
"""

from __future__ import annotations

from typing import Any, List, Optional


class FlowrunnerError(Exception):
    """Base class for all flowrunner errors."""


# ==============================================================================
# Registration / activation
# ==============================================================================

class InvalidGraph(FlowrunnerError):
    """Workflow graph violates a structural invariant."""

    def __init__(self, message: str, problems: Optional[List[str]] = None) -> None:
        self.problems = problems or [message]
        super().__init__(message)


class NotFound(FlowrunnerError):
    """Requested item does not exist."""


class WorkflowNotFoundError(NotFound):
    """No registration exists for the workflow id."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} is not registered")


class WorkflowInactiveError(FlowrunnerError):
    """Workflow is registered but not active."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} is not active")


class MissingCredentials(FlowrunnerError):
    """A credential required by the trigger adapter is absent."""

    def __init__(self, names: List[str], adapter: str = "") -> None:
        self.names = names
        self.adapter = adapter
        label = f" for {adapter}" if adapter else ""
        super().__init__(f"Missing credentials{label}: {', '.join(names)}")


class SubscriptionError(FlowrunnerError):
    """Trigger adapter could not create its external subscription."""


# ==============================================================================
# Node execution
# ==============================================================================

class NodeExecutionError(FlowrunnerError):
    """Error raised by a node's execute()."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        data: Any = None,
    ) -> None:
        self.message = message
        self.node_id = node_id
        self.data = data
        super().__init__(message)


class StopWorkflowError(NodeExecutionError):
    """Raised by a stopAndError node to terminate the run."""


__all__ = [
    "FlowrunnerError",
    "InvalidGraph",
    "NotFound",
    "WorkflowNotFoundError",
    "WorkflowInactiveError",
    "MissingCredentials",
    "SubscriptionError",
    "NodeExecutionError",
    "StopWorkflowError",
]
