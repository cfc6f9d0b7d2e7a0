"""
BaseNode - Abstract base class for every node kind.

The node contract is two calls:

    describe(config) -> {"kind", "displayName", "outputPorts"}
    execute(config, input_data) -> NodeResult

execute() is synchronous from the executor's viewpoint. A node may block on
I/O or sleep; it only ever blocks the thread of its own run. Failures are
raised as NodeExecutionError and are never retried by the executor.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from flowrunner.errors import NodeExecutionError
from .http import DEFAULT_TIMEOUT, HttpClient, HttpResponse
from .items import MAIN_PORT, NodeResult


logger = logging.getLogger(__name__)


# ==============================================================================
# NodeParameter - Parameter metadata exposed by describe()/definitions
# ==============================================================================

NodeParameterType = Literal[
    "string", "number", "boolean", "options", "collection",
    "json", "dateTime",
]


class NodeParameter(BaseModel):
    """
    A single parameter in the node's properties.

    Can be used both as Pydantic model and as dict in properties.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Parameter key (internal name)")
    display_name: str = Field(..., alias="displayName", description="Human-readable label")
    type: NodeParameterType = Field(..., description="Parameter type")
    default: Any = Field(None, description="Default value")
    required: bool = Field(False, description="Is parameter required?")
    description: Optional[str] = Field(None, description="Help text")
    options: Optional[List[Dict[str, Any]]] = Field(
        None,
        description="Options for options type"
    )


# ==============================================================================
# NodeExecutionContext - Runtime context for node execution
# ==============================================================================

class NodeExecutionContext:
    """
    Runtime context provided to nodes during execution.

    Provides access to:
    - Workflow, run and node identity
    - Per-workflow credentials
    - HTTP helpers
    - A cancellable sleep
    """

    def __init__(
        self,
        workflow_id: str,
        node_id: str,
        run_id: Optional[str] = None,
        credentials: Optional[Dict[str, str]] = None,
        cancel_event: Optional[threading.Event] = None,
        http_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.workflow_id = workflow_id
        self.node_id = node_id
        self.run_id = run_id
        self._credentials = dict(credentials or {})
        self._cancel_event = cancel_event or threading.Event()
        self._http_timeout = http_timeout

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def get_credential(self, name: str) -> str:
        """Get a credential value by name."""
        if name not in self._credentials:
            raise NodeExecutionError(f"Credential '{name}' not found", node_id=self.node_id)
        return self._credentials[name]

    def sleep(self, seconds: float) -> None:
        """
        Block this run for `seconds`.

        Raises:
            NodeExecutionError: If the executor is shut down while sleeping
        """
        if seconds <= 0:
            return
        if self._cancel_event.wait(seconds):
            raise NodeExecutionError("Run cancelled while waiting", node_id=self.node_id)

    def helpers_request(
        self,
        method: str,
        url: str,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> HttpResponse:
        """Make HTTP request with the context's default timeout."""
        client = HttpClient(timeout=timeout or self._http_timeout)
        return client.request(method, url, **kwargs)


# ==============================================================================
# BaseNode - Abstract base class
# ==============================================================================

class BaseNode(ABC):
    """
    Abstract base class for all node kinds.

    Nodes define:
    - kind: Unique identifier used in workflow definitions (e.g., "if")
    - description: Node metadata dict (displayName, outputs, ...)
    - properties: Parameters the node reads from its config

    And implement execute() which turns (config, input) into a NodeResult.

    Example:

        class UppercaseNode(BaseNode):
            kind = "uppercase"

            description = {
                "displayName": "Uppercase",
                "name": "uppercase",
                "group": ["transform"],
                "outputs": ["main"],
            }

            def execute(self, config, input_data):
                field = config.get("field", "text")
                return {**input_data, field: str(input_data[field]).upper()}
    """

    kind: str = "base"
    version: int = 1

    # Scheduling hints read by the executor
    collects_inputs: bool = False
    accepts_loop_back: bool = False

    description: Dict[str, Any] = {
        "displayName": "Base Node",
        "name": "base",
        "description": "",
        "group": [],
        "inputs": ["main"],
        "outputs": [MAIN_PORT],
    }

    properties: Dict[str, Any] = {
        "parameters": [],
    }

    def __init__(self) -> None:
        """Initialize node instance."""
        self.logger = logging.getLogger(f"node.{self.kind}")
        self._context: Optional[NodeExecutionContext] = None

    def describe(self, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Kind, display name and output ports for this node."""
        return {
            "kind": self.kind,
            "displayName": self.description.get("displayName", self.kind),
            "outputPorts": self.output_ports(config or {}),
        }

    def output_ports(self, config: Dict[str, Any]) -> List[str]:
        """Ports this node can emit on. Override for config-dependent ports."""
        return list(self.description.get("outputs", [MAIN_PORT]))

    @abstractmethod
    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        """
        Execute node operation.

        Returns:
            A payload (emitted on "main"), PortOutputs or Emissions.

        Raises:
            NodeExecutionError: On operation failure
        """
        raise NotImplementedError

    # ==== Context Management ====

    def set_context(self, context: NodeExecutionContext) -> None:
        """Set the execution context."""
        self._context = context

    @property
    def context(self) -> NodeExecutionContext:
        if self._context is None:
            raise NodeExecutionError("No context set")
        return self._context

    # ==== Helper methods for subclasses ====

    def fail(self, message: str, data: Any = None) -> NodeExecutionError:
        """Build a NodeExecutionError tagged with this node's id."""
        node_id = self._context.node_id if self._context else None
        return NodeExecutionError(message, node_id=node_id, data=data)

    @classmethod
    def get_definition(cls) -> Dict[str, Any]:
        """Get full node definition for listings."""
        return {
            "kind": cls.kind,
            "version": cls.version,
            "description": cls.description,
            "properties": cls.properties,
        }


def get_parameter(config: Dict[str, Any], name: str, default: Any = None) -> Any:
    """
    Read a config value, allowing dotted paths ("options.reset").
    """
    current: Any = config
    for part in name.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current if current is not None else default


__all__ = [
    "BaseNode",
    "NodeExecutionContext",
    "NodeParameter",
    "NodeParameterType",
    "get_parameter",
]
