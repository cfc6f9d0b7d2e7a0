"""Tests for workflow parsing and graph validation."""
import pytest

from flowrunner.errors import InvalidGraph
from flowrunner.workflow_runtime import WorkflowGraph, parse_workflow


class TestParseWorkflow:
    """Test definition parsing."""

    def test_canonical_shape(self, linear_workflow):
        definition = parse_workflow(linear_workflow)

        assert definition.id == "wf-test"
        assert [n.kind for n in definition.nodes] == ["trigger", "setData", "action"]
        assert definition.edges[0].source_port == "main"
        assert definition.edges[0].target_port == "main"

    def test_flow_json_shape(self):
        flow = {
            "nodes": [
                {"id": "1", "type": "custom", "data": {"type": "trigger", "label": "Start", "token": "t"}},
                {"id": "2", "data": {"type": "if", "label": "Check", "conditions": []}},
                {"id": "3", "data": {"type": "action", "config": {"values": {"x": 1}}}},
            ],
            "edges": [
                {"id": "e1", "source": "1", "target": "2"},
                {"id": "e2", "source": "2", "target": "3", "sourceHandle": "true"},
            ],
        }
        definition = parse_workflow(flow)

        assert definition.get_node("1").kind == "trigger"
        assert definition.get_node("1").name == "Start"
        assert definition.get_node("1").config == {"token": "t"}
        assert definition.get_node("3").config == {"values": {"x": 1}}
        assert definition.edges[1].source_port == "true"

    def test_camel_case_ports(self):
        definition = parse_workflow({
            "nodes": [],
            "edges": [{"source": "a", "sourcePort": "Loop", "target": "b"}],
        })
        assert definition.edges[0].source_port == "Loop"

    def test_malformed_document(self):
        with pytest.raises(InvalidGraph) as exc:
            parse_workflow({"nodes": [{"kind": "trigger"}]})
        assert any("id" in p for p in exc.value.problems)

        with pytest.raises(InvalidGraph):
            parse_workflow(["not", "an", "object"])


class TestGraphValidation:
    """Test structural invariants."""

    def test_valid_graph(self, linear_workflow):
        graph = WorkflowGraph(linear_workflow)

        assert graph.trigger_node.id == "start"
        assert graph.node_ids == ["start", "greet", "finish"]
        assert [e.target for e in graph.outgoing_edges("start")] == ["greet"]

    def test_no_trigger(self, workflow_factory):
        with pytest.raises(InvalidGraph, match="no trigger"):
            WorkflowGraph(workflow_factory([("a", "action", {})], []))

    def test_two_triggers(self, workflow_factory):
        with pytest.raises(InvalidGraph, match="more than one trigger"):
            WorkflowGraph(workflow_factory([("t1", "trigger", {}), ("t2", "trigger", {})], []))

    def test_duplicate_ids(self, workflow_factory):
        with pytest.raises(InvalidGraph, match="Duplicate node id"):
            WorkflowGraph(workflow_factory([("t", "trigger", {}), ("t", "action", {})], []))

    def test_dangling_edge(self, workflow_factory):
        with pytest.raises(InvalidGraph, match="unknown node ghost"):
            WorkflowGraph(workflow_factory([("t", "trigger", {})], [("t", "main", "ghost")]))

    def test_unknown_kind(self, workflow_factory):
        with pytest.raises(InvalidGraph, match="Unknown node kind 'teleport'"):
            WorkflowGraph(workflow_factory([("t", "trigger", {}), ("x", "teleport", {})], []))

    def test_undeclared_source_port(self, workflow_factory):
        nodes = [("t", "trigger", {}), ("check", "if", {}), ("a", "action", {})]
        edges = [("t", "main", "check"), ("check", "maybe", "a")]
        with pytest.raises(InvalidGraph, match="no output port 'maybe'"):
            WorkflowGraph(workflow_factory(nodes, edges))

    def test_switch_case_ports_accepted(self, workflow_factory):
        nodes = [("t", "trigger", {}), ("sw", "switch", {"cases": ["a"]}), ("x", "action", {})]
        edges = [("t", "main", "sw"), ("sw", "a", "x"), ("sw", "default", "x")]
        graph = WorkflowGraph(workflow_factory(nodes, edges))

        assert [e.source_port for e in graph.incoming_edges("x")] == ["a", "default"]

    def test_all_problems_reported(self, workflow_factory):
        nodes = [("t", "trigger", {}), ("t", "action", {}), ("x", "teleport", {})]
        with pytest.raises(InvalidGraph) as exc:
            WorkflowGraph(workflow_factory(nodes, []))
        assert len(exc.value.problems) == 2

    def test_cycle_rejected(self, workflow_factory):
        nodes = [("t", "trigger", {}), ("a", "action", {}), ("b", "action", {})]
        edges = [("t", "main", "a"), ("a", "main", "b"), ("b", "main", "a")]
        with pytest.raises(InvalidGraph, match="Cycle"):
            WorkflowGraph(workflow_factory(nodes, edges))

    def test_cycle_unreachable_from_trigger_ignored(self, workflow_factory):
        nodes = [("t", "trigger", {}), ("a", "action", {}), ("b", "action", {})]
        edges = [("a", "main", "b"), ("b", "main", "a")]
        graph = WorkflowGraph(workflow_factory(nodes, edges))

        assert graph.reachable_from_trigger() == {"t"}


class TestLoopBackEdges:
    """Test loop-back edge handling."""

    @pytest.fixture
    def loop_graph(self, workflow_factory):
        nodes = [
            ("t", "trigger", {}),
            ("loop", "loop", {"batchSize": 2}),
            ("body", "action", {}),
            ("done", "action", {}),
        ]
        edges = [
            ("t", "main", "loop"),
            ("loop", "Loop", "body"),
            ("body", "main", "loop"),
            ("loop", "Done", "done"),
        ]
        return WorkflowGraph(workflow_factory(nodes, edges))

    def test_loop_back_edge_flagged(self, loop_graph):
        back = [e for e in loop_graph.edges if e.source == "body"][0]

        assert loop_graph.is_loop_back(back)
        assert loop_graph.outgoing_edges("body") == []
        assert [e.source for e in loop_graph.incoming_edges("loop")] == ["t"]

    def test_reachability_ignores_loop_back(self, loop_graph):
        assert loop_graph.can_reach("t", "done")
        assert loop_graph.can_reach("loop", "body")
        assert not loop_graph.can_reach("body", "loop")
        assert loop_graph.reachable_from_trigger() == {"t", "loop", "body", "done"}

    def test_outgoing_edges_by_port(self, loop_graph):
        assert [e.target for e in loop_graph.outgoing_edges("loop", "Done")] == ["done"]
        assert [e.target for e in loop_graph.outgoing_edges("loop")] == ["body", "done"]

    def test_edge_into_non_loop_node_is_not_loop_back(self, workflow_factory):
        nodes = [("t", "trigger", {}), ("a", "action", {}), ("m", "merge", {})]
        edges = [("t", "main", "a"), ("a", "main", "m"), ("t", "main", "m")]
        graph = WorkflowGraph(workflow_factory(nodes, edges))

        incoming = graph.incoming_edges("m")
        assert [graph.edge_index(e) for e in incoming] == [0, 1]
        assert [e.source for e in incoming] == ["a", "t"]
        assert not any(e.loop_back for e in graph.edges)

    def test_graph_holds_frozen_copy(self, linear_workflow):
        graph = WorkflowGraph(linear_workflow)
        linear_workflow["nodes"][1]["config"]["fields"] = []

        assert graph.get_node("greet").config["fields"] != []
