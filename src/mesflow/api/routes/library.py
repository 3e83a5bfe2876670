"""Read-only library endpoints: decisions and the tasks they gate."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mesflow.api.routes.deps import get_service
from mesflow.models.library import DecisionDefinition
from mesflow.models.workflow import DecisionDetail
from mesflow.services.workflow_service import WorkflowService

router = APIRouter(tags=["library"])


@router.get("/decisions")
def list_decisions(
    stage: str | None = None,
    category: str | None = None,
    service: WorkflowService = Depends(get_service),
) -> list[DecisionDefinition]:
    return service.list_decisions(stage, category)


@router.get("/decisions/{decision_id}")
def get_decision(decision_id: str, service: WorkflowService = Depends(get_service)) -> DecisionDetail:
    return service.get_decision_detail(decision_id)
