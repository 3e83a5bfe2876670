"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mesflow.api.routes import clients, health, library
from mesflow.core.config import AppSettings
from mesflow.core.exceptions import (
    InvalidOutcomeError,
    NotFoundError,
    RenderError,
    StaleAnswerSetError,
    StorageError,
    UnconfiguredClientError,
    UnsupportedFormatError,
)
from mesflow.services.workflow_service import WorkflowService, create_service

logger = logging.getLogger(__name__)

_STATUS_CODES: tuple[tuple[type[Exception], int], ...] = (
    (NotFoundError, 404),
    (InvalidOutcomeError, 422),
    (UnsupportedFormatError, 422),
    (StaleAnswerSetError, 409),
    (UnconfiguredClientError, 409),
    (RenderError, 502),
    (StorageError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    settings = AppSettings()
    logging.basicConfig(level=settings.log_level)
    app.state.settings = settings
    if getattr(app.state, "service", None) is None:
        app.state.service = create_service(settings)
    logger.info("mesflow API started (backend=%s)", settings.backend)
    yield


def _register_error_handlers(app: FastAPI) -> None:
    for exc_type, status_code in _STATUS_CODES:

        async def handler(request: Request, exc: Exception, _status: int = status_code) -> JSONResponse:
            logger.warning("%s %s -> %d: %s", request.method, request.url.path, _status, exc)
            return JSONResponse(status_code=_status, content={"detail": str(exc)})

        app.add_exception_handler(exc_type, handler)


def create_app(service: WorkflowService | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Passing ``service`` skips backend construction in the lifespan (tests).
    """
    app = FastAPI(
        title="MES Workflow Configuration Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.service = service
    _register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(library.router, prefix="/library")
    app.include_router(clients.router, prefix="/clients")
    return app
