"""Shared test doubles: memory backends and library builders."""

from __future__ import annotations

from mesflow.persistence.memory_backend import (
    MemoryAnswerStore,
    MemoryCacheBackend,
    MemoryFileStore,
    MemoryLibraryStore,
    MemoryWorkflowStore,
    StaticRenderer,
)
from tests.fakes.builders import answers, decision, task

__all__ = [
    "MemoryAnswerStore",
    "MemoryCacheBackend",
    "MemoryFileStore",
    "MemoryLibraryStore",
    "MemoryWorkflowStore",
    "StaticRenderer",
    "answers",
    "decision",
    "task",
]
