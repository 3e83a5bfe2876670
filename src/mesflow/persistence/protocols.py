"""Re-export persistence protocols from core for convenience."""

from __future__ import annotations

from mesflow.core.protocols import (
    IAnswerStore,
    ICacheBackend,
    IFileStore,
    ILibraryStore,
    IWorkflowStore,
)

__all__ = ["IAnswerStore", "ICacheBackend", "IFileStore", "ILibraryStore", "IWorkflowStore"]
