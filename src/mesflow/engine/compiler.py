"""Graph compiler: turns the surviving task set into a connected workflow graph.

Compilation never fails on structural gaps. A task whose predecessors and
ancestors were all filtered out simply has no incoming edge; the validator
reports it.
"""

from __future__ import annotations

from collections.abc import Mapping

from mesflow.engine.ancestry import nearest_included_ancestor
from mesflow.engine.inclusion import filter_tasks, is_runtime_condition
from mesflow.engine.loops import exit_condition_label, first_body_task, loop_start_of
from mesflow.models.answers import ClientAnswer
from mesflow.models.graph import CompiledGraph, EdgeStyle, GraphEdge, GraphNode, NodeClass, StageGroup
from mesflow.models.library import ALL_STAGES, Library, RoutingOverride, TaskDefinition, TaskKind

DECISION_LABEL_LIMIT = 40
DEFAULT_BRANCH_LABEL = "Yes"
EXCEPTION_LABEL = "exception"


def decision_node_id(decision_id: str) -> str:
    return f"DEC_{decision_id}"


def routing_node_id(decision_id: str) -> str:
    return f"ROUTE_{decision_id}"


def node_class_for(task: TaskDefinition) -> NodeClass:
    if task.kind == TaskKind.MACRO:
        return NodeClass.MACRO
    if task.is_loop:
        return NodeClass.LOOP
    return NodeClass.EXCEPTION if task.is_exception else NodeClass.MICRO


def guard_label(task: TaskDefinition) -> str:
    """Guard text for a decision node, or the decision id when the text is too long."""
    text = task.guard_condition or ""
    if not text or len(text) > DECISION_LABEL_LIMIT:
        return task.gating_decision_id or text
    return text


def compile_graph(
    library: Library,
    answers: Mapping[str, ClientAnswer],
    stage: str | None = None,
) -> CompiledGraph:
    """Compile the client's workflow for ``stage`` (a stage, a process area, or All)."""
    included = filter_tasks(library.tasks_in_scope(stage), answers)
    builder = _GraphBuilder(library, answers, included)
    return builder.build(stage or ALL_STAGES)


class _GraphBuilder:
    """Accumulates nodes and deduplicated edges for a single compile call."""

    def __init__(
        self,
        library: Library,
        answers: Mapping[str, ClientAnswer],
        included: list[TaskDefinition],
    ) -> None:
        self._library = library
        self._answers = answers
        self._included = included
        self._included_ids = {t.id for t in included}
        self._nodes: dict[str, GraphNode] = {}
        self._edges: list[GraphEdge] = []
        self._edge_keys: set[tuple[str, str, str | None, str]] = set()

    def build(self, stage: str) -> CompiledGraph:
        for task in self._included:
            self._nodes[task.id] = GraphNode(
                id=task.id,
                label=f"{task.id}: {task.name}",
                node_class=node_class_for(task),
                stage=task.stage,
                task_id=task.id,
            )

        suppressed: set[str] = set()
        for override in self._library.routing:
            if self._routing_applies(override):
                self._add_routing(override)
                suppressed.update(override.suppressed_heads)

        for task in self._included:
            if task.id not in suppressed:
                self._wire_predecessors(task)
            self._wire_loop_back_edge(task)

        return CompiledGraph(
            stage=stage,
            title=self._library.skin.title,
            nodes=list(self._nodes.values()),
            edges=self._edges,
            groups=self._groups(),
        )

    # ---- edges ----

    def _add_edge(
        self,
        source: str,
        target: str,
        label: str | None = None,
        style: EdgeStyle = EdgeStyle.SOLID,
    ) -> None:
        edge = GraphEdge(source=source, target=target, label=label, style=style)
        if edge.key() in self._edge_keys:
            return
        self._edge_keys.add(edge.key())
        self._edges.append(edge)

    def _resolved_predecessors(self, task: TaskDefinition) -> list[str]:
        valid = [p for p in task.predecessors if p in self._included_ids]
        if valid:
            return valid
        ancestor = nearest_included_ancestor(task, self._library, self._included_ids)
        return [ancestor] if ancestor else []

    def _wire_predecessors(self, task: TaskDefinition) -> None:
        if not task.predecessors:
            return

        guarded = bool(task.guard_condition) and is_runtime_condition(task.gating_decision_id)
        style = EdgeStyle.DASHED if task.is_exception else EdgeStyle.SOLID

        for pred in self._resolved_predecessors(task):
            if guarded:
                node_id = self._decision_node(task)
                self._add_edge(pred, node_id)
                self._add_edge(node_id, task.id, task.required_outcome or DEFAULT_BRANCH_LABEL, style)
            elif task.is_exception:
                self._add_edge(pred, task.id, EXCEPTION_LABEL, EdgeStyle.DASHED)
            else:
                self._add_edge(pred, task.id)

    def _decision_node(self, task: TaskDefinition) -> str:
        # One node per runtime condition; the first guarded task names it.
        node_id = decision_node_id(task.gating_decision_id or task.id)
        if node_id not in self._nodes:
            self._nodes[node_id] = GraphNode(
                id=node_id, label=guard_label(task), node_class=NodeClass.DECISION,
            )
        return node_id

    def _wire_loop_back_edge(self, task: TaskDefinition) -> None:
        if task.kind != TaskKind.LOOP_END or not task.loop_exit_condition:
            return
        start_id = loop_start_of(task)
        if start_id is None:
            return
        body_id = first_body_task(start_id, self._included)
        if body_id is None:
            return
        self._add_edge(
            task.id, body_id, exit_condition_label(task.loop_exit_condition), EdgeStyle.DASHED,
        )

    # ---- manual routing ----

    def _routing_applies(self, override: RoutingOverride) -> bool:
        answer = self._answers.get(override.decision_id)
        if answer is None or answer.selected_outcome != override.outcome:
            return False
        return override.junction_task_id in self._included_ids

    def _add_routing(self, override: RoutingOverride) -> None:
        node_id = routing_node_id(override.decision_id)
        self._nodes[node_id] = GraphNode(
            id=node_id, label=override.label, node_class=NodeClass.DECISION,
        )
        self._add_edge(override.junction_task_id, node_id)
        for branch in override.branches:
            if branch.task_id in self._included_ids:
                self._add_edge(node_id, branch.task_id, branch.label)

    # ---- layout ----

    def _groups(self) -> list[StageGroup]:
        groups = []
        for stage in self._library.stage_order():
            node_ids = [t.id for t in self._included if t.stage == stage]
            if node_ids:
                groups.append(StageGroup(name=stage, title=stage, node_ids=node_ids))
        return groups
