"""
Node Registry - Lookup and registration of node kinds.

This package provides:
- NodeDefinition: Metadata about a registered node
- NodePackManifest: Package metadata for a node pack
- NodeRegistry: The table of known kinds
"""

from .models import NodeDefinition, NodePackManifest
from .registry import NodeRegistry, get_default_registry

__all__ = [
    "NodeDefinition",
    "NodePackManifest",
    "NodeRegistry",
    "get_default_registry",
]
