"""Task and decision library models.

The library is the read-only catalogue of process steps ("tasks") and the
configuration questions ("decisions") that gate them, for one process domain.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from mesflow.core.exceptions import DecisionNotFoundError, LibraryError, TaskNotFoundError

ALL_STAGES = "All"


class TaskKind(StrEnum):
    MACRO = "Macro"
    MICRO = "Micro"
    LOOP_START = "Loop-Start"
    LOOP_END = "Loop-End"


class EdgeKind(StrEnum):
    NORMAL = "normal"
    EXCEPTION = "exception"


class DecisionCategory(StrEnum):
    PRACTICE = "Practice"  # configuration-time choice
    RUNTIME = "Runtime"  # always-rendered exception branch


class TaskDefinition(BaseModel):
    """A single process step in the library."""

    model_config = ConfigDict(frozen=True)

    id: str
    parent_id: Optional[str] = None
    name: str
    kind: TaskKind = TaskKind.MICRO
    stage: str
    actor: str = ""
    integration: str = ""
    inputs: str = ""
    outputs: str = ""
    predecessors: list[str] = Field(default_factory=list)  # OR semantics
    edge_kind: EdgeKind = EdgeKind.NORMAL
    guard_condition: Optional[str] = None
    gating_decision_id: Optional[str] = None
    required_outcome: Optional[str] = None  # "A" or "A, B" (any of)
    loop_key: Optional[str] = None
    loop_exit_condition: Optional[str] = None
    paired_loop_start_id: Optional[str] = None  # Loop-End only
    logs: str = ""
    controls: str = ""

    @property
    def is_loop(self) -> bool:
        return self.kind in (TaskKind.LOOP_START, TaskKind.LOOP_END)

    @property
    def is_exception(self) -> bool:
        return self.edge_kind == EdgeKind.EXCEPTION


class DecisionDefinition(BaseModel):
    """A configuration question or runtime condition."""

    model_config = ConfigDict(frozen=True)

    id: str
    category: DecisionCategory
    question: str
    outcomes: list[str]
    stage: str
    affects: str = ""
    notes: str = ""

    @model_validator(mode="after")
    def _check_outcomes(self) -> DecisionDefinition:
        if not self.outcomes:
            raise ValueError(f"Decision {self.id} has no outcomes")
        if len(set(self.outcomes)) != len(self.outcomes):
            raise ValueError(f"Decision {self.id} has duplicate outcomes")
        return self


class RoutingBranch(BaseModel):
    """One labeled exit of a manual routing decision."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    label: str


class RoutingOverride(BaseModel):
    """Manual multi-path wiring activated by one decision outcome.

    When the client's answer to ``decision_id`` equals ``outcome``, a routing
    decision node is placed after ``junction_task_id`` with one labeled edge per
    branch, and the default incoming edges of ``suppressed_heads`` are dropped.
    """

    model_config = ConfigDict(frozen=True)

    decision_id: str
    outcome: str
    junction_task_id: str
    label: str
    branches: list[RoutingBranch]
    suppressed_heads: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_heads(self) -> RoutingOverride:
        if not self.suppressed_heads:
            object.__setattr__(self, "suppressed_heads", [b.task_id for b in self.branches])
        return self


class NarrativeSkin(BaseModel):
    """Presentation overlay for annotated diagrams."""

    title: str = "Workflow"
    start_label: str = "START"
    finish_label: str = "COMPLETE"
    stage_titles: dict[str, str] = Field(default_factory=dict)
    label_overrides: dict[str, str] = Field(default_factory=dict)


class Library(BaseModel):
    """In-memory view of every task and decision for one process domain."""

    tasks: list[TaskDefinition] = Field(default_factory=list)
    decisions: list[DecisionDefinition] = Field(default_factory=list)
    stages: list[str] = Field(default_factory=list)
    process_areas: dict[str, list[str]] = Field(default_factory=dict)
    routing: list[RoutingOverride] = Field(default_factory=list)
    skin: NarrativeSkin = Field(default_factory=NarrativeSkin)

    _tasks_by_id: dict[str, TaskDefinition] = PrivateAttr(default_factory=dict)
    _decisions_by_id: dict[str, DecisionDefinition] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        for task in self.tasks:
            if task.id in self._tasks_by_id:
                raise LibraryError(f"Duplicate task id {task.id}")
            self._tasks_by_id[task.id] = task
        for decision in self.decisions:
            if decision.id in self._decisions_by_id:
                raise LibraryError(f"Duplicate decision id {decision.id}")
            self._decisions_by_id[decision.id] = decision

    # ---- lookups ----

    def get_task(self, task_id: str) -> TaskDefinition | None:
        return self._tasks_by_id.get(task_id)

    def task(self, task_id: str) -> TaskDefinition:
        task = self._tasks_by_id.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def get_decision(self, decision_id: str) -> DecisionDefinition | None:
        return self._decisions_by_id.get(decision_id)

    def decision(self, decision_id: str) -> DecisionDefinition:
        decision = self._decisions_by_id.get(decision_id)
        if decision is None:
            raise DecisionNotFoundError(decision_id)
        return decision

    def tasks_gated_by(self, decision_id: str) -> list[TaskDefinition]:
        return [t for t in self.tasks if t.gating_decision_id == decision_id]

    # ---- stage scoping ----

    def stages_for(self, scope: str | None) -> set[str] | None:
        """Resolve a stage filter to a set of stage names (None means every stage).

        ``scope`` may be ``None``/``"All"``, a stage name, or a process area name.
        A known stage name is matched before an area of the same name.
        """
        if scope is None or scope == ALL_STAGES:
            return None
        if scope in self.stage_order():
            return {scope}
        if scope in self.process_areas:
            return set(self.process_areas[scope])
        return {scope}

    def tasks_in_scope(self, scope: str | None) -> list[TaskDefinition]:
        stages = self.stages_for(scope)
        if stages is None:
            return list(self.tasks)
        return [t for t in self.tasks if t.stage in stages]

    def stage_order(self) -> list[str]:
        """Declared stage order, followed by any undeclared stages in first-seen order."""
        order = list(self.stages)
        for task in self.tasks:
            if task.stage not in order:
                order.append(task.stage)
        return order
