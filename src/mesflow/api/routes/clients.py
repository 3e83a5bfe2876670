"""Client configuration endpoints: answers, workflows, validation, exports."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from mesflow.api.routes.deps import get_service
from mesflow.models.answers import ClientAnswerSet
from mesflow.models.graph import CompiledGraph
from mesflow.models.library import ALL_STAGES, DecisionDefinition
from mesflow.models.validation import ValidationReport
from mesflow.models.workflow import ExportRecord, SavedWorkflow
from mesflow.services.workflow_service import WorkflowService, content_type_for

router = APIRouter(tags=["clients"])


class AnswerRequest(BaseModel):
    selected_outcome: str
    rationale: str | None = None
    expected_version: int | None = None


@router.get("")
def list_clients(service: WorkflowService = Depends(get_service)) -> dict[str, int]:
    return service.list_clients()


@router.get("/{client}/answers")
def get_answers(client: str, service: WorkflowService = Depends(get_service)) -> ClientAnswerSet:
    return service.list_answers(client)


@router.put("/{client}/answers/{decision_id}")
def save_answer(
    client: str,
    decision_id: str,
    body: AnswerRequest,
    service: WorkflowService = Depends(get_service),
) -> ClientAnswerSet:
    return service.save_answer(
        client, decision_id, body.selected_outcome, body.rationale, body.expected_version,
    )


@router.get("/{client}/unanswered")
def get_unanswered(
    client: str, stage: str | None = None, service: WorkflowService = Depends(get_service)
) -> list[DecisionDefinition]:
    return service.list_unanswered(client, stage)


@router.get("/{client}/graph")
def compile_graph(
    client: str,
    stage: str = ALL_STAGES,
    annotated: bool = False,
    service: WorkflowService = Depends(get_service),
) -> CompiledGraph:
    return service.compile_workflow(client, stage, annotated)


@router.post("/{client}/workflow")
def generate_workflow(
    client: str, stage: str = ALL_STAGES, service: WorkflowService = Depends(get_service)
) -> SavedWorkflow:
    return service.generate_workflow(client, stage)


@router.get("/{client}/workflow")
def get_saved_workflow(client: str, service: WorkflowService = Depends(get_service)) -> SavedWorkflow:
    return service.get_saved_workflow(client)


@router.get("/{client}/validation")
def validate_workflow(
    client: str, stage: str = ALL_STAGES, service: WorkflowService = Depends(get_service)
) -> ValidationReport:
    return service.validate_workflow(client, stage)


@router.post("/{client}/exports")
def export_workflow(
    client: str, fmt: str = "png", service: WorkflowService = Depends(get_service)
) -> ExportRecord:
    return service.export_workflow(client, fmt)


@router.get("/{client}/exports")
def list_exports(client: str, service: WorkflowService = Depends(get_service)) -> list[str]:
    return service.list_exports(client)


@router.get("/{client}/exports/{filename}")
def read_export(client: str, filename: str, service: WorkflowService = Depends(get_service)) -> Response:
    return Response(content=service.read_export(client, filename), media_type=content_type_for(filename))
