"""Saved workflow and export models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from mesflow.models.graph import CompiledGraph
from mesflow.models.library import DecisionDefinition, TaskDefinition


class WorkflowMetadata(BaseModel):
    task_count: int = 0
    decision_count: int = 0
    macro_count: int = 0
    loop_count: int = 0

    @property
    def micro_count(self) -> int:
        return self.task_count - self.macro_count - self.loop_count


class SavedWorkflow(BaseModel):
    """Most recently generated workflow for a client."""

    client: str
    stage: str
    version: int = 0
    last_generated: datetime
    graph: CompiledGraph
    mermaid: str
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)


class ExportRecord(BaseModel):
    """Metadata for a rendered workflow export."""

    client: str
    filename: str
    path: str
    source_path: str
    stage: str
    version: int
    fmt: str
    size_bytes: int


class DecisionDetail(BaseModel):
    decision: DecisionDefinition
    affected_tasks: list[TaskDefinition] = Field(default_factory=list)
