"""Tests for the graph compiler."""

from __future__ import annotations

import pytest

from mesflow.engine.compiler import compile_graph, decision_node_id, guard_label, routing_node_id
from mesflow.models.graph import EdgeStyle, NodeClass
from mesflow.models.library import EdgeKind, Library, RoutingBranch, RoutingOverride, TaskKind
from tests.fakes import answers, decision, task

BOTH = "Both (material-dependent)"


def _edges(graph):
    return {(e.source, e.target) for e in graph.edges}


def _edge(graph, source, target):
    matches = [e for e in graph.edges if e.source == source and e.target == target]
    assert len(matches) == 1, f"expected one edge {source}->{target}, got {matches}"
    return matches[0]


@pytest.fixture
def guarded_library():
    return Library(tasks=[
        task("A"),
        task("B", "A", gating_decision_id="C-TOL-01", required_outcome="Yes",
             guard_condition="Within tolerance?"),
        task("C", "A", gating_decision_id="C-TOL-01", required_outcome="No",
             guard_condition="Within tolerance?", edge_kind=EdgeKind.EXCEPTION),
    ])


@pytest.fixture
def routing_library():
    gated = "Weighing only, " + BOTH
    sealed = "Sealed only, " + BOTH
    return Library(
        tasks=[
            task("J"),
            task("W", "J", kind=TaskKind.LOOP_START, gating_decision_id="Q-SEC", required_outcome=gated),
            task("S", "J", kind=TaskKind.LOOP_START, gating_decision_id="Q-SEC", required_outcome=sealed),
        ],
        decisions=[decision("Q-SEC", "Weighing only", "Sealed only", BOTH)],
        routing=[RoutingOverride(
            decision_id="Q-SEC",
            outcome=BOTH,
            junction_task_id="J",
            label="Is container sealed?",
            branches=[
                RoutingBranch(task_id="S", label="Yes → Sealed"),
                RoutingBranch(task_id="W", label="No → Weighing"),
            ],
        )],
    )


class TestNodes:
    def test_one_node_per_included_task(self):
        lib = Library(tasks=[
            task("M", kind=TaskKind.MACRO, name="Prep"),
            task("A", "M"),
            task("B", "A", gating_decision_id="Q-1", required_outcome="X"),
        ])
        graph = compile_graph(lib, {})
        assert graph.task_ids() == ["M", "A"]
        assert graph.node("M").label == "M: Prep"

    def test_node_classes(self):
        lib = Library(tasks=[
            task("M", kind=TaskKind.MACRO),
            task("L1", "M", kind=TaskKind.LOOP_START),
            task("X", "L1", edge_kind=EdgeKind.EXCEPTION),
            task("U", "L1"),
        ])
        graph = compile_graph(lib, {})
        assert graph.node("M").node_class == NodeClass.MACRO
        assert graph.node("L1").node_class == NodeClass.LOOP
        assert graph.node("X").node_class == NodeClass.EXCEPTION
        assert graph.node("U").node_class == NodeClass.MICRO

    def test_empty_library_compiles(self):
        graph = compile_graph(Library(), {})
        assert graph.nodes == []
        assert graph.edges == []


class TestEdges:
    def test_direct_predecessor_edge(self):
        lib = Library(tasks=[task("A"), task("B", "A")])
        assert _edges(compile_graph(lib, {})) == {("A", "B")}

    def test_or_predecessors_keep_only_included(self):
        lib = Library(tasks=[
            task("A"),
            task("P1", "A", gating_decision_id="Q-1", required_outcome="X"),
            task("P2", "A", gating_decision_id="Q-1", required_outcome="Y"),
            task("J", "P1", "P2"),
        ])
        graph = compile_graph(lib, answers({"Q-1": "Y"}))
        assert _edges(graph) == {("A", "P2"), ("P2", "J")}

    def test_distant_ancestor_edge(self):
        lib = Library(tasks=[
            task("A"),
            task("B", "A", gating_decision_id="Q-1", required_outcome="X"),
            task("C", "B"),
        ])
        graph = compile_graph(lib, answers({"Q-1": "Y"}))
        assert _edges(graph) == {("A", "C")}

    def test_orphan_gets_no_incoming_edge(self):
        lib = Library(tasks=[
            task("A", gating_decision_id="Q-1", required_outcome="X"),
            task("B", "A"),
        ])
        graph = compile_graph(lib, {})
        assert graph.task_ids() == ["B"]
        assert graph.incoming("B") == []

    def test_duplicate_predecessor_emits_one_edge(self):
        lib = Library(tasks=[task("A"), task("B", "A", "A")])
        assert len(compile_graph(lib, {}).edges) == 1

    def test_exception_edge_without_guard(self):
        lib = Library(tasks=[task("A"), task("X", "A", edge_kind=EdgeKind.EXCEPTION)])
        edge = _edge(compile_graph(lib, {}), "A", "X")
        assert edge.style == EdgeStyle.DASHED
        assert edge.label == "exception"


class TestRuntimeDecisionNodes:
    def test_single_decision_node_per_condition(self, guarded_library):
        graph = compile_graph(guarded_library, {})
        dec = decision_node_id("C-TOL-01")
        decision_nodes = [n for n in graph.nodes if n.node_class == NodeClass.DECISION]
        assert [n.id for n in decision_nodes] == [dec]
        assert decision_nodes[0].label == "Within tolerance?"
        assert len([e for e in graph.edges if e.target == dec]) == 1

    def test_branch_edges_labeled_with_outcome(self, guarded_library):
        graph = compile_graph(guarded_library, {})
        dec = decision_node_id("C-TOL-01")
        yes = _edge(graph, dec, "B")
        no = _edge(graph, dec, "C")
        assert (yes.label, yes.style) == ("Yes", EdgeStyle.SOLID)
        assert (no.label, no.style) == ("No", EdgeStyle.DASHED)
        assert ("A", "B") not in _edges(graph)

    def test_default_branch_label(self):
        lib = Library(tasks=[
            task("A"),
            task("B", "A", gating_decision_id="C-1", guard_condition="Ready?"),
        ])
        graph = compile_graph(lib, {})
        assert _edge(graph, decision_node_id("C-1"), "B").label == "Yes"

    def test_runtime_gate_without_guard_is_plain_edge(self):
        lib = Library(tasks=[task("A"), task("B", "A", gating_decision_id="C-1", required_outcome="Yes")])
        assert _edges(compile_graph(lib, {})) == {("A", "B")}


class TestGuardLabel:
    def test_short_guard_kept(self):
        t = task("B", gating_decision_id="C-1", guard_condition="x" * 40)
        assert guard_label(t) == "x" * 40

    def test_long_guard_falls_back_to_decision_id(self):
        t = task("B", gating_decision_id="C-1", guard_condition="x" * 41)
        assert guard_label(t) == "C-1"


class TestLoopBackEdges:
    def _loop(self, **start_fields):
        return Library(tasks=[
            task("L1", kind=TaskKind.LOOP_START, **start_fields),
            task("B", "L1"),
            task("C", "B"),
            task("L2", "C", kind=TaskKind.LOOP_END, paired_loop_start_id="L1",
                 loop_exit_condition="RunningTotal >= Target"),
        ])

    def test_back_edge_to_first_body_task(self):
        graph = compile_graph(self._loop(), {})
        edge = _edge(graph, "L2", "B")
        assert edge.style == EdgeStyle.DASHED
        assert edge.label == "Target not reached"

    def test_no_back_edge_when_start_excluded(self):
        graph = compile_graph(self._loop(gating_decision_id="Q-1", required_outcome="X"), {})
        assert graph.outgoing("L2") == []

    def test_no_back_edge_without_exit_condition(self):
        lib = Library(tasks=[
            task("L1", kind=TaskKind.LOOP_START),
            task("B", "L1"),
            task("L2", "B", kind=TaskKind.LOOP_END, paired_loop_start_id="L1"),
        ])
        assert compile_graph(lib, {}).outgoing("L2") == []


class TestRoutingOverrides:
    def test_both_outcome_adds_routing_node(self, routing_library):
        graph = compile_graph(routing_library, answers({"Q-SEC": BOTH}))
        route = routing_node_id("Q-SEC")
        assert graph.node(route).node_class == NodeClass.DECISION
        assert graph.node(route).label == "Is container sealed?"
        assert _edge(graph, "J", route).label is None
        assert _edge(graph, route, "S").label == "Yes → Sealed"
        assert _edge(graph, route, "W").label == "No → Weighing"

    def test_default_edges_suppressed_for_heads(self, routing_library):
        graph = compile_graph(routing_library, answers({"Q-SEC": BOTH}))
        assert ("J", "S") not in _edges(graph)
        assert ("J", "W") not in _edges(graph)

    def test_other_outcome_uses_default_wiring(self, routing_library):
        graph = compile_graph(routing_library, answers({"Q-SEC": "Weighing only"}))
        assert graph.node(routing_node_id("Q-SEC")) is None
        assert _edges(graph) == {("J", "W")}

    def test_excluded_junction_disables_override(self, routing_library):
        lib = Library(
            tasks=[
                task("J", gating_decision_id="Q-OTHER", required_outcome="X"),
                *routing_library.tasks[1:],
            ],
            decisions=routing_library.decisions,
            routing=routing_library.routing,
        )
        graph = compile_graph(lib, answers({"Q-SEC": BOTH}))
        assert graph.node(routing_node_id("Q-SEC")) is None
        assert graph.task_ids() == ["W", "S"]


class TestStageScope:
    @pytest.fixture
    def staged(self):
        return Library(
            tasks=[
                task("A", stage="Prep"),
                task("B", "A", stage="Weigh"),
                task("C", "B", stage="Granulate"),
                task("D", "C", stage="Extra"),
            ],
            stages=["Prep", "Weigh", "Granulate"],
            process_areas={"Dispensing": ["Prep", "Weigh"]},
        )

    def test_all_keeps_everything(self, staged):
        assert compile_graph(staged, {}, "All").task_ids() == ["A", "B", "C", "D"]
        assert compile_graph(staged, {}).stage == "All"

    def test_process_area_expands_to_stages(self, staged):
        graph = compile_graph(staged, {}, "Dispensing")
        assert graph.task_ids() == ["A", "B"]
        assert graph.stage == "Dispensing"

    def test_exact_stage(self, staged):
        graph = compile_graph(staged, {}, "Granulate")
        assert graph.task_ids() == ["C"]
        assert graph.edges == []

    def test_stage_name_matched_before_area_of_same_name(self, staged):
        shadowed = Library(
            tasks=staged.tasks, stages=staged.stages,
            process_areas={"Granulate": ["Granulate", "Extra"]},
        )
        assert compile_graph(shadowed, {}, "Granulate").task_ids() == ["C"]

    def test_groups_follow_stage_order(self, staged):
        groups = compile_graph(staged, {}).groups
        assert [g.name for g in groups] == ["Prep", "Weigh", "Granulate", "Extra"]
        assert groups[0].node_ids == ["A"]


class TestDeterminism:
    def test_recompile_is_identical(self, routing_library):
        selected = answers({"Q-SEC": BOTH})
        first = compile_graph(routing_library, selected)
        second = compile_graph(routing_library, selected)
        assert first.model_dump() == second.model_dump()


class TestShippedLibrary:
    def test_granulation_stage_alone(self, shipped_library):
        graph = compile_graph(shipped_library, {}, "Granulation")
        assert [g.name for g in graph.groups] == ["Granulation"]

    def test_scenario_unanswered_gate_excludes_tasks(self, shipped_library):
        graph = compile_graph(shipped_library, {}, "Dispensing Area")
        assert "DISP-014" not in graph.task_ids()
        assert "DISP-015" not in graph.task_ids()

    def test_scenario_weighing_only(self, shipped_library):
        graph = compile_graph(shipped_library, answers({"Q-SEC-01": "Weighing only"}), "Dispensing Area")
        ids = set(graph.task_ids())
        assert {"DISP-L-001", "DISP-L-002"} <= ids
        assert not {t for t in ids if t.startswith("DISP-SL-")}
        assert _edge(graph, "DISP-L-002", "DISP-018").label == "Target not reached"

    def test_scenario_both_routes_at_junction(self, shipped_library):
        graph = compile_graph(shipped_library, answers({"Q-SEC-01": BOTH}), "Dispensing Area")
        route = routing_node_id("Q-SEC-01")
        assert _edge(graph, "DISP-017", route)
        assert _edge(graph, route, "DISP-SL-001").label == "Yes → Sealed"
        assert _edge(graph, route, "DISP-L-001").label == "No → Weighing"
        assert ("DISP-017", "DISP-L-001") not in _edges(graph)
        assert ("DISP-017", "DISP-SL-001") not in _edges(graph)

    def test_scenario_distant_ancestor(self, shipped_library):
        graph = compile_graph(shipped_library, answers({"Q-RET-01": "Hold in dispensary"}), "Post-Dispensing")
        assert "DISP-041" not in graph.task_ids()
        assert ("DISP-040", "DISP-042") in _edges(graph)
