"""Inclusion filter: decides which library tasks survive for a client's answers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from mesflow.models.answers import ClientAnswer
from mesflow.models.library import TaskDefinition

RUNTIME_PREFIX = "C-"
OUTCOME_DELIMITER = ","


def is_runtime_condition(decision_id: str | None) -> bool:
    return bool(decision_id) and decision_id.startswith(RUNTIME_PREFIX)


def split_outcomes(required_outcome: str) -> list[str]:
    return [o.strip() for o in required_outcome.split(OUTCOME_DELIMITER)]


def include_task(task: TaskDefinition, answers: Mapping[str, ClientAnswer]) -> bool:
    """Return True if ``task`` belongs in the client's workflow.

    Ungated tasks and runtime-condition branches are always included. A task
    gated by an unanswered decision is excluded. Multi-value outcomes
    ("A, B") are trimmed before the membership test; a single outcome is
    compared exactly, without trimming.
    """
    if not task.gating_decision_id:
        return True
    if is_runtime_condition(task.gating_decision_id):
        return True

    answer = answers.get(task.gating_decision_id)
    if answer is None or not answer.selected_outcome:
        return False

    required = task.required_outcome
    if required and OUTCOME_DELIMITER in required:
        return answer.selected_outcome in split_outcomes(required)
    return answer.selected_outcome == required


def filter_tasks(
    tasks: Iterable[TaskDefinition], answers: Mapping[str, ClientAnswer]
) -> list[TaskDefinition]:
    """Surviving tasks, in input order."""
    return [t for t in tasks if include_task(t, answers)]
