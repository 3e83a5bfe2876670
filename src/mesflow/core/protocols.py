"""Protocol interfaces for all mesflow abstractions.

Backends and test fakes satisfy these structurally and need no common base
class; the Protocols are runtime-checkable for isinstance() checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mesflow.models.answers import ClientAnswer, ClientAnswerSet
    from mesflow.models.library import Library
    from mesflow.models.workflow import SavedWorkflow


# ---------------------------------------------------------------------------
# Persistence: Library Store
# ---------------------------------------------------------------------------

@runtime_checkable
class ILibraryStore(Protocol):
    """Read-only task/decision library for one process domain."""

    def get_library(self) -> Library: ...


# ---------------------------------------------------------------------------
# Persistence: Answer Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IAnswerStore(Protocol):
    """Per-client decision answers with versioned saves."""

    def get_answers(self, client: str) -> ClientAnswerSet: ...

    def save_answer(
        self,
        client: str,
        decision_id: str,
        answer: ClientAnswer,
        expected_version: int | None = None,
    ) -> ClientAnswerSet: ...

    def list_clients(self) -> dict[str, int]: ...


# ---------------------------------------------------------------------------
# Persistence: Workflow Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IWorkflowStore(Protocol):
    """Most recently generated workflow per client."""

    def get_workflow(self, client: str) -> SavedWorkflow | None: ...

    def save_workflow(self, workflow: SavedWorkflow) -> SavedWorkflow: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: File Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IFileStore(Protocol):
    """Export file storage (local directory or S3)."""

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...

    def list_files(self, prefix: str) -> list[str]: ...


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

@runtime_checkable
class IRenderer(Protocol):
    """External diagram renderer."""

    def render(self, source: str, fmt: str = "png") -> bytes: ...
