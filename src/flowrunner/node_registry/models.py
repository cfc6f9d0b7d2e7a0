"""
Node Registry Models - Metadata structures for nodes and node packs.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class NodeDefinition(BaseModel):
    """
    Metadata about a registered node kind.

    Used for listings (CLI `nodes`, API) and never for execution.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    kind: str = Field(..., description="Unique node kind identifier")
    version: int = Field(1, description="Node version")

    # Display
    display_name: str = Field(..., description="Human-readable name")
    description: str = Field("", description="Node description")
    icon: str = Field("fa:cube", description="Node icon")
    group: List[str] = Field(default_factory=list, description="Categories")

    # Technical
    node_class: Optional[str] = Field(None, description="Fully qualified class name")
    node_pack: Optional[str] = Field(None, description="Source node pack")

    # Runtime
    inputs: List[str] = Field(default_factory=lambda: ["main"])
    outputs: List[str] = Field(default_factory=lambda: ["main"])
    parameters: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_node_class(cls, node_class: Type) -> "NodeDefinition":
        """Create definition from a BaseNode class."""
        kind = getattr(node_class, "kind", node_class.__name__.lower())
        description = getattr(node_class, "description", {}) or {}
        properties = getattr(node_class, "properties", {}) or {}

        inputs = description.get("inputs", ["main"])
        outputs = description.get("outputs", ["main"])
        parameters = properties.get("parameters", []) if isinstance(properties, dict) else []

        return cls(
            kind=kind,
            version=getattr(node_class, "version", 1),
            display_name=description.get("displayName", kind),
            description=description.get("description", ""),
            icon=description.get("icon", "fa:cube"),
            group=description.get("group", []),
            node_class=f"{node_class.__module__}.{node_class.__name__}",
            inputs=inputs if isinstance(inputs, list) else ["main"],
            outputs=outputs if isinstance(outputs, list) else ["main"],
            parameters=parameters if isinstance(parameters, list) else [],
        )


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of node kinds).
    """
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Pack name (e.g., 'builtin')")
    version: str = Field("1.0.0", description="Pack version")
    description: str = Field("", description="Pack description")

    nodes: List[str] = Field(
        default_factory=list,
        description="List of node kinds in this pack"
    )


__all__ = [
    "NodeDefinition",
    "NodePackManifest",
]
