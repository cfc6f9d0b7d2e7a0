"""
Built-in Node Pack Manifest - The closed table of node kinds.
"""

from flowrunner.node_registry.models import NodePackManifest
from .core import (
    ActionNode,
    DataStorageNode,
    FilterNode,
    HttpRequestNode,
    SetDataNode,
    TriggerNode,
)
from .logic import (
    IfNode,
    LoopNode,
    MergeNode,
    StopAndErrorNode,
    SwitchNode,
    WaitNode,
)


# Node classes by kind
NODE_CLASSES = {
    node_class.kind: node_class
    for node_class in (
        TriggerNode,
        ActionNode,
        SetDataNode,
        FilterNode,
        HttpRequestNode,
        DataStorageNode,
        IfNode,
        SwitchNode,
        MergeNode,
        LoopNode,
        WaitNode,
        StopAndErrorNode,
    )
}


MANIFEST = NodePackManifest(
    name="builtin",
    version="1.0.0",
    description="Trigger, data and control-flow nodes",
    nodes=list(NODE_CLASSES),
)


def register_nodes():
    """
    Return the built-in pack as (manifest, node_classes).
    """
    return MANIFEST, NODE_CLASSES


__all__ = [
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
