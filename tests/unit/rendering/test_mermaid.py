"""Tests for Mermaid flowchart text generation."""

from __future__ import annotations

from mesflow.engine.compiler import compile_graph
from mesflow.models.graph import CompiledGraph, EdgeStyle, GraphEdge, GraphNode, NodeClass, StageGroup
from mesflow.rendering.mermaid import (
    assign_mermaid_ids,
    edge_line,
    mermaid_id,
    node_shape,
    subgraph_id,
    to_mermaid,
)
from tests.fakes import answers


def _node(node_id, node_class, label="x"):
    return GraphNode(id=node_id, label=label, node_class=node_class)


class TestIds:
    def test_dashes_become_underscores(self):
        assert mermaid_id("DISP-L-001") == "DISP_L_001"

    def test_subgraph_id_from_stage_name(self):
        assert subgraph_id("Weighing & Dispensing") == "Weighing_and_Dispensing"

    def test_colliding_ids_get_suffixes(self):
        assert assign_mermaid_ids(["A-1", "A_1", "A.1", "B"]) == {
            "A-1": "A_1", "A_1": "A_1_2", "A.1": "A_1_3", "B": "B",
        }

    def test_repeated_id_keeps_first_assignment(self):
        assert assign_mermaid_ids(["A-1", "A-1"]) == {"A-1": "A_1"}


class TestNodeShape:
    def test_shapes_per_class(self):
        assert node_shape(_node("M-1", NodeClass.MACRO)) == 'M_1[["x"]]'
        assert node_shape(_node("L-1", NodeClass.LOOP)) == 'L_1(("x"))'
        assert node_shape(_node("D-1", NodeClass.DECISION)) == 'D_1{"x"}'
        assert node_shape(_node("START", NodeClass.TERMINAL)) == 'START(["x"])'
        assert node_shape(_node("T-1", NodeClass.MICRO)) == 'T_1["x"]'
        assert node_shape(_node("E-1", NodeClass.EXCEPTION)) == 'E_1["x"]'

    def test_quotes_escaped(self):
        assert node_shape(_node("T", NodeClass.MICRO, 'Say "hi"')) == 'T["Say #quot;hi#quot;"]'


class TestEdgeLine:
    def test_plain_solid(self):
        assert edge_line(GraphEdge(source="A-1", target="B-1")) == "A_1 --> B_1"

    def test_labeled_dashed(self):
        edge = GraphEdge(source="A", target="B", label="Target not reached", style=EdgeStyle.DASHED)
        assert edge_line(edge) == 'A -.->|"Target not reached"| B'


class TestToMermaid:
    def test_document_layout(self):
        graph = CompiledGraph(
            stage="All",
            nodes=[_node("A", NodeClass.MACRO, "A: Prep"), _node("DEC_C-1", NodeClass.DECISION, "Ok?")],
            edges=[GraphEdge(source="A", target="DEC_C-1")],
            groups=[StageGroup(name="Prep", title="1. Prep", node_ids=["A"])],
        )
        text = to_mermaid(graph)
        lines = text.splitlines()
        assert lines[0] == "graph TD"
        assert '  subgraph Prep["1. Prep"]' in lines
        assert '    A[["A: Prep"]]' in lines
        assert '  DEC_C_1{"Ok?"}' in lines
        assert "  A --> DEC_C_1" in lines
        assert "  class A macroStyle" in lines
        assert "  class DEC_C_1 decisionStyle" in lines
        assert text.endswith("\n")

    def test_ids_that_sanitize_alike_stay_distinct(self):
        graph = CompiledGraph(
            stage="All",
            nodes=[_node("A-1", NodeClass.MICRO), _node("A_1", NodeClass.MICRO)],
            edges=[GraphEdge(source="A-1", target="A_1")],
        )
        lines = to_mermaid(graph).splitlines()
        assert '  A_1["x"]' in lines
        assert '  A_1_2["x"]' in lines
        assert "  A_1 --> A_1_2" in lines
        assert "  class A_1,A_1_2 microStyle" in lines

    def test_class_defs_for_every_node_class(self):
        text = to_mermaid(CompiledGraph(stage="All"))
        for node_class in NodeClass:
            assert f"classDef {node_class.value}Style" in text

    def test_shipped_workflow_renders_routing(self, shipped_library):
        graph = compile_graph(
            shipped_library, answers({"Q-SEC-01": "Both (material-dependent)"}), "Dispensing Area",
        )
        text = to_mermaid(graph)
        assert 'ROUTE_Q_SEC_01{"Is container sealed?"}' in text
        assert 'ROUTE_Q_SEC_01 -->|"Yes → Sealed"| DISP_SL_001' in text
        assert 'DISP_L_002 -.->|"Target not reached"| DISP_018' in text
