"""
Workflow Models - JSON structures for workflow definitions.

Two input shapes are accepted by parse_workflow():

Canonical:
    {"id": "wf1", "nodes": [{"id": "t", "kind": "trigger", "config": {}}],
     "edges": [{"source": "t", "source_port": "main", "target": "a"}]}

Editor flow JSON (node kind and settings under "data", handles on edges):
    {"nodes": [{"id": "t", "data": {"type": "trigger", "label": "Start"}}],
     "edges": [{"source": "t", "target": "a", "sourceHandle": "true"}]}
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from flowrunner.errors import InvalidGraph
from flowrunner.node_sdk import MAIN_PORT


class NodeSpec(BaseModel):
    """
    A node in a workflow.

    Example: {"id": "check", "kind": "if", "config": {"conditions": [...]}}
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Node id (unique within workflow)")
    kind: str = Field(..., description="Node kind (e.g., 'if')")
    config: Dict[str, Any] = Field(default_factory=dict)
    name: Optional[str] = Field(None, description="Display label")

    @property
    def label(self) -> str:
        return self.name or self.id


class EdgeSpec(BaseModel):
    """
    Directed edge from a node's output port to another node's input.

    Example: {"source": "check", "source_port": "true", "target": "notify"}
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    source: str = Field(..., description="Source node id")
    source_port: str = Field(MAIN_PORT, alias="sourcePort")
    target: str = Field(..., description="Target node id")
    target_port: str = Field(MAIN_PORT, alias="targetPort")


class WorkflowDefinition(BaseModel):
    """
    Complete workflow definition.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(None, description="Workflow ID")
    name: str = Field("Unnamed Workflow", description="Workflow name")

    nodes: List[NodeSpec] = Field(default_factory=list)
    edges: List[EdgeSpec] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[NodeSpec]:
        """Get node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


# ==============================================================================
# Parsing
# ==============================================================================

_DATA_META_KEYS = ("type", "label", "config", "parameters")


def _normalize_flow_node(node: Dict[str, Any]) -> Dict[str, Any]:
    """Flow-JSON node -> canonical node dict (no-op for canonical nodes)."""
    if "kind" in node or not isinstance(node.get("data"), dict):
        return node

    data = node["data"]
    if isinstance(data.get("config"), dict):
        config = dict(data["config"])
    elif isinstance(data.get("parameters"), dict):
        config = dict(data["parameters"])
    else:
        config = {k: v for k, v in data.items() if k not in _DATA_META_KEYS}

    return {
        "id": node.get("id"),
        "kind": data.get("type") or node.get("type"),
        "config": config,
        "name": data.get("label"),
    }


def _normalize_flow_edge(edge: Dict[str, Any]) -> Dict[str, Any]:
    """Flow-JSON edge -> canonical edge dict (no-op for canonical edges)."""
    out = {k: v for k, v in edge.items() if k not in ("sourceHandle", "targetHandle")}
    if edge.get("sourceHandle") and "source_port" not in edge:
        out["source_port"] = edge["sourceHandle"]
    if edge.get("targetHandle") and "target_port" not in edge:
        out["target_port"] = edge["targetHandle"]
    return out


def parse_workflow(data: Any) -> WorkflowDefinition:
    """
    Parse workflow JSON into WorkflowDefinition.

    Raises:
        InvalidGraph: If the document does not have the workflow shape
    """
    if isinstance(data, WorkflowDefinition):
        return data
    if not isinstance(data, dict):
        raise InvalidGraph("Workflow definition must be an object")

    normalized = dict(data)
    normalized["nodes"] = [
        _normalize_flow_node(n) if isinstance(n, dict) else n
        for n in data.get("nodes") or []
    ]
    normalized["edges"] = [
        _normalize_flow_edge(e) if isinstance(e, dict) else e
        for e in data.get("edges") or []
    ]

    try:
        return WorkflowDefinition.model_validate(normalized)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidGraph("Malformed workflow definition", problems=problems) from e


__all__ = [
    "NodeSpec",
    "EdgeSpec",
    "WorkflowDefinition",
    "parse_workflow",
]
