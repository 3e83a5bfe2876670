"""Shared fixtures: the shipped library and a memory-backed WorkflowService."""

from __future__ import annotations

from pathlib import Path

import pytest

from mesflow.models.library import Library
from mesflow.persistence.file_backend import JsonLibraryStore
from mesflow.services.workflow_service import WorkflowService
from tests.fakes import (
    MemoryAnswerStore,
    MemoryFileStore,
    MemoryLibraryStore,
    MemoryWorkflowStore,
    StaticRenderer,
)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@pytest.fixture(scope="session")
def shipped_library() -> Library:
    return JsonLibraryStore(DATA_DIR).get_library()


@pytest.fixture
def renderer() -> StaticRenderer:
    return StaticRenderer()


@pytest.fixture
def file_store() -> MemoryFileStore:
    return MemoryFileStore()


@pytest.fixture
def service(shipped_library, renderer, file_store) -> WorkflowService:
    return WorkflowService(
        library_store=MemoryLibraryStore(shipped_library),
        answer_store=MemoryAnswerStore(),
        workflow_store=MemoryWorkflowStore(),
        file_store=file_store,
        renderer=renderer,
    )


@pytest.fixture
def configured(service) -> WorkflowService:
    """Service with client ACME fully answered for the Dispensing area."""
    service.save_answer("ACME", "Q-ERP-01", "SAP")
    service.save_answer("ACME", "Q-SEC-01", "Weighing only")
    service.save_answer("ACME", "Q-4EYE-01", "Yes")
    service.save_answer("ACME", "Q-RET-01", "Return to warehouse")
    return service
