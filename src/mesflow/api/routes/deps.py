"""Request-scoped dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from mesflow.services.workflow_service import WorkflowService


def get_service(request: Request) -> WorkflowService:
    return request.app.state.service
