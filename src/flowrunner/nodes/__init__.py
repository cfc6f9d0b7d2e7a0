"""
Built-in Nodes - Every node kind a workflow may use.

- trigger, action, setData, filter, httpRequest, dataStorage
- if, switch, merge, loop, wait, stopAndError
"""

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
from .manifest import MANIFEST, NODE_CLASSES, register_nodes

__all__ = [
    "TriggerNode",
    "ActionNode",
    "SetDataNode",
    "FilterNode",
    "HttpRequestNode",
    "DataStorageNode",
    "IfNode",
    "SwitchNode",
    "MergeNode",
    "LoopNode",
    "WaitNode",
    "StopAndErrorNode",
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
