"""In-memory backends for unit tests (dict-backed fakes)."""

from __future__ import annotations

import threading

from mesflow.core.exceptions import RenderError, StaleAnswerSetError
from mesflow.models.answers import ClientAnswer, ClientAnswerSet
from mesflow.models.library import Library
from mesflow.models.workflow import SavedWorkflow


class MemoryLibraryStore:
    """ILibraryStore wrapping an already-built Library."""

    def __init__(self, library: Library | None = None) -> None:
        self._library = library or Library()

    def get_library(self) -> Library:
        return self._library


class MemoryAnswerStore:
    """Dict-backed IAnswerStore; saves are serialized per client."""

    def __init__(self) -> None:
        self._sets: dict[str, ClientAnswerSet] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, client: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(client, threading.Lock())

    def get_answers(self, client: str) -> ClientAnswerSet:
        current = self._sets.get(client)
        if current is None:
            return ClientAnswerSet(client=client)
        return current.model_copy(deep=True)

    def save_answer(
        self,
        client: str,
        decision_id: str,
        answer: ClientAnswer,
        expected_version: int | None = None,
    ) -> ClientAnswerSet:
        with self._lock_for(client):
            current = self._sets.get(client) or ClientAnswerSet(client=client)
            if expected_version is not None and expected_version != current.version:
                raise StaleAnswerSetError(client, expected_version, current.version)
            updated = current.model_copy(deep=True)
            updated.answers[decision_id] = answer
            updated.version += 1
            self._sets[client] = updated
            return updated.model_copy(deep=True)

    def list_clients(self) -> dict[str, int]:
        return {name: len(s.answers) for name, s in self._sets.items()}


class MemoryWorkflowStore:
    """Dict-backed IWorkflowStore."""

    def __init__(self) -> None:
        self._workflows: dict[str, SavedWorkflow] = {}

    def get_workflow(self, client: str) -> SavedWorkflow | None:
        return self._workflows.get(client)

    def save_workflow(self, workflow: SavedWorkflow) -> SavedWorkflow:
        previous = self._workflows.get(workflow.client)
        stored = workflow.model_copy(update={"version": (previous.version if previous else 0) + 1})
        self._workflows[workflow.client] = stored
        return stored


class MemoryCacheBackend:
    """Dict-backed ICacheBackend for unit tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class MemoryFileStore:
    """Dict-backed IFileStore for unit tests."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    def read(self, path: str) -> bytes:
        return self._files[path]

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._files[path] = data
        return path

    def list_files(self, prefix: str) -> list[str]:
        return [k for k in self._files if k.startswith(prefix)]


class StaticRenderer:
    """IRenderer returning canned bytes; records every source it was given."""

    def __init__(self, output: bytes = b"\x89PNG fake", error: str | None = None) -> None:
        self._output = output
        self._error = error
        self.calls: list[tuple[str, str]] = []

    def render(self, source: str, fmt: str = "png") -> bytes:
        self.calls.append((source, fmt))
        if self._error is not None:
            raise RenderError(self._error)
        return self._output
