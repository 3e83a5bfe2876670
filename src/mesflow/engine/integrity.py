"""Authoring-time integrity checks for library documents."""

from __future__ import annotations

from mesflow.engine.compiler import decision_node_id, routing_node_id
from mesflow.engine.inclusion import OUTCOME_DELIMITER, is_runtime_condition, split_outcomes
from mesflow.models.library import Library, TaskKind
from mesflow.models.validation import Issue, IssueKind, IssueSeverity
from mesflow.rendering.skin import FINISH_NODE_ID, START_NODE_ID

# Node ids the compiler and skin synthesize next to task nodes.
RESERVED_IDS = (START_NODE_ID, FINISH_NODE_ID)
RESERVED_PREFIXES = (decision_node_id(""), routing_node_id(""))


def _warning(kind: IssueKind, task_id: str | None, message: str, related_id: str | None = None) -> Issue:
    return Issue(
        severity=IssueSeverity.WARNING, kind=kind, task_id=task_id,
        related_id=related_id, message=message,
    )


def check_library(library: Library) -> list[Issue]:
    """Return every referential problem found in the library."""
    issues: list[Issue] = []

    for task in library.tasks:
        if task.id in RESERVED_IDS or task.id.startswith(RESERVED_PREFIXES):
            issues.append(_warning(
                IssueKind.RESERVED_TASK_ID, task.id,
                f"{task.id} collides with a node id reserved for diagram markers",
            ))

        for pred in task.predecessors:
            if library.get_task(pred) is None:
                issues.append(_warning(
                    IssueKind.UNKNOWN_PREDECESSOR, task.id,
                    f"{task.id} names unknown predecessor {pred}", pred,
                ))

        if task.gating_decision_id and not is_runtime_condition(task.gating_decision_id):
            decision = library.get_decision(task.gating_decision_id)
            if decision is None:
                issues.append(_warning(
                    IssueKind.UNKNOWN_DECISION, task.id,
                    f"{task.id} is gated by unknown decision {task.gating_decision_id}",
                    task.gating_decision_id,
                ))
            else:
                required = task.required_outcome or ""
                wanted = split_outcomes(required) if OUTCOME_DELIMITER in required else [required]
                unknown = [o for o in wanted if o not in decision.outcomes]
                if unknown:
                    issues.append(_warning(
                        IssueKind.INVALID_REQUIRED_OUTCOME, task.id,
                        f"{task.id} requires {', '.join(repr(o) for o in unknown)} "
                        f"not offered by {decision.id} ({', '.join(decision.outcomes)})",
                        decision.id,
                    ))

        if task.kind == TaskKind.LOOP_END:
            start = library.get_task(task.paired_loop_start_id) if task.paired_loop_start_id else None
            if start is None or start.kind != TaskKind.LOOP_START:
                issues.append(_warning(
                    IssueKind.LOOP_INCOMPLETE, task.id,
                    f"{task.id} is not paired with a Loop-Start task",
                    task.paired_loop_start_id,
                ))

    for override in library.routing:
        decision = library.get_decision(override.decision_id)
        if decision is None or override.outcome not in decision.outcomes:
            issues.append(_warning(
                IssueKind.INVALID_ROUTING, override.junction_task_id,
                f"Routing for {override.decision_id}={override.outcome!r} names an unknown decision outcome",
                override.decision_id,
            ))
        referenced = [override.junction_task_id, *(b.task_id for b in override.branches)]
        for task_id in referenced:
            if library.get_task(task_id) is None:
                issues.append(_warning(
                    IssueKind.INVALID_ROUTING, task_id,
                    f"Routing for {override.decision_id} names unknown task {task_id}",
                    override.decision_id,
                ))

    known_stages = set(library.stage_order())
    for area in library.process_areas:
        if area in known_stages:
            issues.append(_warning(
                IssueKind.AREA_SHADOWS_STAGE, None,
                f"Process area {area!r} has the same name as a stage",
                area,
            ))

    return issues
