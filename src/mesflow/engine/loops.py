"""Loop pairer: links Loop-End tasks back into their loop body."""

from __future__ import annotations

import re
from collections.abc import Iterable

from mesflow.models.library import TaskDefinition, TaskKind

_EXIT_LABEL_REWRITES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"RunningTotal\s*>=\s*Target", re.IGNORECASE), "Target not reached"),
]


def loop_start_of(task: TaskDefinition) -> str | None:
    """Paired Loop-Start id declared on a Loop-End task."""
    if task.kind != TaskKind.LOOP_END:
        return None
    return task.paired_loop_start_id


def first_body_task(loop_start_id: str, tasks: Iterable[TaskDefinition]) -> str | None:
    """First task, in the given order, that names ``loop_start_id`` as a predecessor."""
    for task in tasks:
        if loop_start_id in task.predecessors:
            return task.id
    return None


def exit_condition_label(condition: str) -> str:
    """Render a loop exit condition as the "continue looping" edge label."""
    label = condition
    for pattern, replacement in _EXIT_LABEL_REWRITES:
        label = pattern.sub(replacement, label)
    return label
