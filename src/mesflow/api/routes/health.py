"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
def ready(request: Request) -> dict[str, str | int]:
    library = request.app.state.service.library
    return {"status": "ready", "tasks": len(library.tasks), "decisions": len(library.decisions)}
