"""Structural issues reported by the workflow and library validators."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class IssueSeverity(StrEnum):
    INFO = "info"
    WARNING = "warning"


class IssueKind(StrEnum):
    DISTANT_ANCESTOR = "distant_ancestor"
    ORPHAN = "orphan"
    LOOP_INCOMPLETE = "loop_incomplete"
    # Library authoring checks
    UNKNOWN_DECISION = "unknown_decision"
    UNKNOWN_PREDECESSOR = "unknown_predecessor"
    INVALID_REQUIRED_OUTCOME = "invalid_required_outcome"
    INVALID_ROUTING = "invalid_routing"
    RESERVED_TASK_ID = "reserved_task_id"
    AREA_SHADOWS_STAGE = "area_shadows_stage"


class Issue(BaseModel):
    severity: IssueSeverity
    kind: IssueKind
    task_id: Optional[str] = None
    related_id: Optional[str] = None
    message: str


class ValidationReport(BaseModel):
    client: str
    stage: str
    issues: list[Issue] = Field(default_factory=list)

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    @property
    def infos(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == IssueSeverity.INFO]

    @property
    def passed(self) -> bool:
        return not self.issues
