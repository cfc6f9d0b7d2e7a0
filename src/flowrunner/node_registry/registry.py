"""
Node Registry - The table of node kinds a workflow may reference.

The table is closed: a workflow using a kind that is not registered is
rejected when it is registered, never when it runs.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Type, TYPE_CHECKING

from flowrunner.errors import NotFound
from .models import NodeDefinition, NodePackManifest


if TYPE_CHECKING:
    from flowrunner.node_sdk.basenode import BaseNode


logger = logging.getLogger(__name__)


class NodeRegistry:
    """
    Registry for looking up and instantiating node kinds.

    Usage:
        registry = NodeRegistry()
        registry.register_pack(*register_nodes())

        node = registry.create_node("if")
        node.describe({})
    """

    def __init__(self):
        """Initialize empty registry."""
        self._nodes: Dict[str, NodeDefinition] = {}
        self._node_classes: Dict[str, Type["BaseNode"]] = {}
        self._packs: Dict[str, NodePackManifest] = {}

    def register_node(
        self,
        node_class: Type["BaseNode"],
        kind: Optional[str] = None,
    ) -> NodeDefinition:
        """
        Register a node class.

        Args:
            node_class: BaseNode subclass
            kind: Override node kind (uses class.kind if not provided)

        Returns:
            NodeDefinition for the registered node
        """
        if kind is None:
            kind = getattr(node_class, "kind", node_class.__name__.lower())

        definition = NodeDefinition.from_node_class(node_class)
        definition.kind = kind

        self._nodes[kind] = definition
        self._node_classes[kind] = node_class

        logger.debug(f"Registered node: {kind}")
        return definition

    def register_pack(
        self,
        manifest: NodePackManifest,
        node_classes: Dict[str, Type["BaseNode"]],
    ) -> None:
        """
        Register a node pack with its nodes.

        Args:
            manifest: Pack manifest
            node_classes: Map of kind -> node class
        """
        self._packs[manifest.name] = manifest

        for kind, node_class in node_classes.items():
            definition = self.register_node(node_class, kind)
            definition.node_pack = manifest.name

        logger.info(f"Registered pack '{manifest.name}' with {len(node_classes)} nodes")

    def get_node(self, kind: str) -> Optional[NodeDefinition]:
        """Get node definition by kind."""
        return self._nodes.get(kind)

    def get_node_class(self, kind: str) -> Type["BaseNode"]:
        """
        Get node class by kind.

        Raises:
            NotFound: If the kind is not registered
        """
        node_class = self._node_classes.get(kind)
        if node_class is None:
            raise NotFound(f"Unknown node kind: {kind}")
        return node_class

    def create_node(self, kind: str) -> "BaseNode":
        """Create a fresh node instance (one per step)."""
        return self.get_node_class(kind)()

    def has_node(self, kind: str) -> bool:
        """Check if a node kind is registered."""
        return kind in self._node_classes

    def list_nodes(self) -> List[NodeDefinition]:
        """List all registered nodes."""
        return list(self._nodes.values())

    def list_packs(self) -> List[NodePackManifest]:
        """List all registered packs."""
        return list(self._packs.values())

    @property
    def kinds(self) -> List[str]:
        return list(self._node_classes)


# ==============================================================================
# Default registry (built-in kinds)
# ==============================================================================

_default_registry: Optional[NodeRegistry] = None
_default_lock = threading.Lock()


def get_default_registry() -> NodeRegistry:
    """Get the registry preloaded with the built-in node kinds."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            from flowrunner.nodes.manifest import register_nodes

            registry = NodeRegistry()
            registry.register_pack(*register_nodes())
            _default_registry = registry
    return _default_registry


__all__ = [
    "NodeRegistry",
    "get_default_registry",
]
