"""
Workflow Graph - Validated, traversable form of a WorkflowDefinition.

Construction validates every structural invariant and raises InvalidGraph
listing all problems found. The executor only ever sees a valid graph.

Loop-back edges (edges into a loop node from a node that loop node can
reach) close the loop body; they are accepted here and never followed.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Type

from flowrunner.errors import InvalidGraph
from flowrunner.node_registry import NodeRegistry, get_default_registry
from flowrunner.node_sdk import BaseNode
from .models import NodeSpec, WorkflowDefinition, parse_workflow


logger = logging.getLogger(__name__)

TRIGGER_KIND = "trigger"


@dataclass(frozen=True)
class GraphEdge:
    """An edge with its declaration index."""
    index: int
    source: str
    source_port: str
    target: str
    target_port: str
    loop_back: bool = False


class WorkflowGraph:
    """
    Compiled workflow ready for execution.

    Contains:
    - Frozen node specs and their node classes
    - Edges in declaration order, loop-back edges flagged
    - Traversal helpers used by the executor
    """

    def __init__(
        self,
        definition: Any,
        node_registry: Optional[NodeRegistry] = None,
    ):
        """
        Compile and validate a workflow definition.

        Raises:
            InvalidGraph: On any structural problem
        """
        definition = parse_workflow(definition).model_copy(deep=True)
        self._registry = node_registry or get_default_registry()
        self.workflow_id = definition.id or "unnamed"
        self.name = definition.name
        self.definition = definition

        self._nodes: Dict[str, NodeSpec] = {}
        self._classes: Dict[str, Type[BaseNode]] = {}
        self._edges: List[GraphEdge] = []
        self._outgoing: Dict[str, List[GraphEdge]] = {}
        self._incoming: Dict[str, List[GraphEdge]] = {}
        self._reach_cache: Dict[str, Set[str]] = {}

        problems: List[str] = []
        self._build_nodes(definition, problems)
        self._build_edges(definition, problems)
        if problems:
            raise InvalidGraph(problems[0], problems=problems)

        self._trigger_id = self._find_trigger(problems)
        if problems:
            raise InvalidGraph(problems[0], problems=problems)

        self._mark_loop_backs()
        self._check_cycles(problems)
        if problems:
            raise InvalidGraph(problems[0], problems=problems)

        logger.debug(
            f"Compiled workflow {self.workflow_id}: "
            f"{len(self._nodes)} nodes, {len(self._edges)} edges"
        )

    # ==== Compilation ====

    def _build_nodes(self, definition: WorkflowDefinition, problems: List[str]) -> None:
        for node in definition.nodes:
            if node.id in self._nodes:
                problems.append(f"Duplicate node id: {node.id}")
                continue
            if not self._registry.has_node(node.kind):
                problems.append(f"Unknown node kind '{node.kind}' on node {node.id}")
                continue
            self._nodes[node.id] = node
            self._classes[node.id] = self._registry.get_node_class(node.kind)
            self._outgoing[node.id] = []
            self._incoming[node.id] = []

    def _build_edges(self, definition: WorkflowDefinition, problems: List[str]) -> None:
        ports: Dict[str, List[str]] = {}
        known = {node.id for node in definition.nodes}

        for index, edge in enumerate(definition.edges):
            dangling = [end for end in (edge.source, edge.target) if end not in known]
            if dangling:
                problems.append(
                    f"Edge {edge.source} -> {edge.target} references unknown node "
                    f"{', '.join(dangling)}"
                )
                continue
            if edge.source not in self._nodes or edge.target not in self._nodes:
                # Endpoint already reported (duplicate id or unknown kind)
                continue

            if edge.source not in ports:
                ports[edge.source] = self.create_node(edge.source).describe(
                    self._nodes[edge.source].config
                )["outputPorts"]
            if edge.source_port not in ports[edge.source]:
                problems.append(
                    f"Node {edge.source} has no output port '{edge.source_port}' "
                    f"(ports: {', '.join(ports[edge.source]) or 'none'})"
                )
                continue

            compiled = GraphEdge(
                index=index,
                source=edge.source,
                source_port=edge.source_port,
                target=edge.target,
                target_port=edge.target_port,
            )
            self._edges.append(compiled)

    def _find_trigger(self, problems: List[str]) -> Optional[str]:
        triggers = [nid for nid, node in self._nodes.items() if node.kind == TRIGGER_KIND]
        if not triggers:
            problems.append("Workflow has no trigger node")
            return None
        if len(triggers) > 1:
            problems.append(f"Workflow has more than one trigger node: {', '.join(triggers)}")
            return None
        return triggers[0]

    def _mark_loop_backs(self) -> None:
        # Reachability over every edge, loop-backs not yet known
        adjacency: Dict[str, List[str]] = {nid: [] for nid in self._nodes}
        for edge in self._edges:
            adjacency[edge.source].append(edge.target)

        def reachable(start: str) -> Set[str]:
            seen: Set[str] = set()
            queue = deque([start])
            while queue:
                for nxt in adjacency[queue.popleft()]:
                    if nxt not in seen:
                        seen.add(nxt)
                        queue.append(nxt)
            return seen

        marked: List[GraphEdge] = []
        loop_reach: Dict[str, Set[str]] = {}
        for edge in self._edges:
            target_class = self._classes[edge.target]
            is_loop_back = False
            if target_class.accepts_loop_back:
                if edge.target not in loop_reach:
                    loop_reach[edge.target] = reachable(edge.target)
                is_loop_back = edge.source in loop_reach[edge.target]
            marked.append(
                GraphEdge(
                    index=edge.index,
                    source=edge.source,
                    source_port=edge.source_port,
                    target=edge.target,
                    target_port=edge.target_port,
                    loop_back=is_loop_back,
                )
            )

        self._edges = marked
        for edge in marked:
            self._outgoing[edge.source].append(edge)
            self._incoming[edge.target].append(edge)

    def _check_cycles(self, problems: List[str]) -> None:
        """Depth-first search from the trigger over forward edges."""
        WHITE, GREY, BLACK = 0, 1, 2
        color = {nid: WHITE for nid in self._nodes}
        stack = [(self._trigger_id, iter(self.outgoing_edges(self._trigger_id)))]
        color[self._trigger_id] = GREY

        while stack:
            node_id, edges = stack[-1]
            edge = next(edges, None)
            if edge is None:
                color[node_id] = BLACK
                stack.pop()
                continue
            if color[edge.target] == GREY:
                problems.append(f"Cycle detected through {edge.source} -> {edge.target}")
                return
            if color[edge.target] == WHITE:
                color[edge.target] = GREY
                stack.append((edge.target, iter(self.outgoing_edges(edge.target))))

    # ==== Accessors ====

    @property
    def trigger_node(self) -> NodeSpec:
        return self._nodes[self._trigger_id]

    @property
    def node_ids(self) -> List[str]:
        return list(self._nodes)

    @property
    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    def get_node(self, node_id: str) -> NodeSpec:
        return self._nodes[node_id]

    def node_class(self, node_id: str) -> Type[BaseNode]:
        return self._classes[node_id]

    def create_node(self, node_id: str) -> BaseNode:
        """Fresh node instance for one step."""
        return self._classes[node_id]()

    # ==== Traversal ====

    def outgoing_edges(self, node_id: str, port: Optional[str] = None) -> List[GraphEdge]:
        """Forward edges leaving a node (optionally on one port), in declaration order."""
        return [
            e for e in self._outgoing.get(node_id, [])
            if not e.loop_back and (port is None or e.source_port == port)
        ]

    def incoming_edges(self, node_id: str) -> List[GraphEdge]:
        """Forward edges entering a node, in declaration order."""
        return [e for e in self._incoming.get(node_id, []) if not e.loop_back]

    def edge_index(self, edge: GraphEdge) -> int:
        """Position of the edge among the target's incoming forward edges."""
        return self.incoming_edges(edge.target).index(edge)

    def is_loop_back(self, edge: GraphEdge) -> bool:
        return edge.loop_back

    def can_reach(self, source: str, target: str) -> bool:
        """True if target is downstream of source via forward edges."""
        if source not in self._reach_cache:
            seen: Set[str] = set()
            queue = deque([source])
            while queue:
                for edge in self.outgoing_edges(queue.popleft()):
                    if edge.target not in seen:
                        seen.add(edge.target)
                        queue.append(edge.target)
            self._reach_cache[source] = seen
        return target in self._reach_cache[source]

    def reachable_from_trigger(self) -> Set[str]:
        """Node ids reachable from the trigger, trigger included."""
        return {self._trigger_id} | {
            nid for nid in self._nodes if self.can_reach(self._trigger_id, nid)
        }


__all__ = [
    "TRIGGER_KIND",
    "GraphEdge",
    "WorkflowGraph",
]
