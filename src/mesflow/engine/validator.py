"""Workflow validator: advisory checks for orphaned tasks and broken loop pairs.

Issues are returned as data. Nothing here raises or mutates a compiled graph.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from mesflow.engine.ancestry import nearest_included_ancestor
from mesflow.engine.inclusion import filter_tasks
from mesflow.engine.loops import loop_start_of
from mesflow.models.answers import ClientAnswer
from mesflow.models.library import Library, TaskDefinition, TaskKind
from mesflow.models.validation import Issue, IssueKind, IssueSeverity


def validate_tasks(included: Sequence[TaskDefinition], library: Library) -> list[Issue]:
    """Check an already-filtered task set against the library."""
    included_ids = {t.id for t in included}
    issues: list[Issue] = []

    for task in included:
        if not task.predecessors:
            continue
        if any(p in included_ids for p in task.predecessors):
            continue
        ancestor = nearest_included_ancestor(task, library, included_ids)
        if ancestor is None:
            issues.append(Issue(
                severity=IssueSeverity.WARNING,
                kind=IssueKind.ORPHAN,
                task_id=task.id,
                message=f"{task.id} ({task.name}) has no valid predecessors - orphaned node",
            ))
        else:
            issues.append(Issue(
                severity=IssueSeverity.INFO,
                kind=IssueKind.DISTANT_ANCESTOR,
                task_id=task.id,
                related_id=ancestor,
                message=(
                    f"{task.id} linked to distant ancestor {ancestor} "
                    "(immediate predecessors excluded)"
                ),
            ))

    for task in included:
        if task.kind != TaskKind.LOOP_END:
            continue
        start_id = loop_start_of(task)
        if start_id is None:
            issues.append(Issue(
                severity=IssueSeverity.WARNING,
                kind=IssueKind.LOOP_INCOMPLETE,
                task_id=task.id,
                message=f"{task.id} loop end declares no paired loop start",
            ))
        elif start_id not in included_ids:
            issues.append(Issue(
                severity=IssueSeverity.WARNING,
                kind=IssueKind.LOOP_INCOMPLETE,
                task_id=task.id,
                related_id=start_id,
                message=f"{task.id} loop end exists but {start_id} loop start is missing",
            ))

    return issues


def validate_configuration(
    library: Library,
    answers: Mapping[str, ClientAnswer],
    stage: str | None = None,
) -> list[Issue]:
    """Re-derive the included set from (library, answers) and validate it."""
    included = filter_tasks(library.tasks_in_scope(stage), answers)
    return validate_tasks(included, library)
