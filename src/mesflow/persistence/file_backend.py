"""Local JSON-document backends for single-host deployments.

Library documents are read once and validated with pydantic. Client answers
and saved workflows are whole documents rewritten atomically (temp file +
rename) while holding an exclusive lock on a sidecar file, so saves from
several processes sharing one state directory serialize. Answer versions are
checked under the same lock before every write.
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mesflow.core.exceptions import LibraryError, StaleAnswerSetError, StorageError
from mesflow.engine.integrity import check_library
from mesflow.models.answers import ClientAnswer, ClientAnswerSet
from mesflow.models.library import Library
from mesflow.models.workflow import SavedWorkflow

logger = logging.getLogger(__name__)

ANSWERS_FILE = "client_decisions.json"
WORKFLOWS_FILE = "client_workflows.json"
LOCK_SUFFIX = ".lock"


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise StorageError(f"Failed to read {path}: {exc}") from exc


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise StorageError(f"Failed to write {path}: {exc}") from exc
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    except BaseException as exc:
        Path(tmp).unlink(missing_ok=True)
        if isinstance(exc, OSError):
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        raise


@contextmanager
def _locked(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on ``<path>.lock`` across processes.

    The sidecar keeps the lock stable while ``path`` itself is replaced.
    """
    lock_path = path.with_name(path.name + LOCK_SUFFIX)
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = lock_path.open("a+", encoding="utf-8")
    except OSError as exc:
        raise StorageError(f"Failed to lock {path}: {exc}") from exc
    with handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class JsonLibraryStore:
    """ILibraryStore reading tasks/decisions/stages/routing/skin JSON from a directory."""

    def __init__(self, data_dir: str | Path) -> None:
        self._data_dir = Path(data_dir)
        self._library: Library | None = None

    def get_library(self) -> Library:
        if self._library is None:
            self._library = self._load()
        return self._library

    def _load(self) -> Library:
        tasks_path = self._data_dir / "tasks.json"
        decisions_path = self._data_dir / "decisions.json"
        if not tasks_path.exists() or not decisions_path.exists():
            raise LibraryError(f"Library documents missing under {self._data_dir}")

        layout = _read_json(self._data_dir / "stages.json", {})
        try:
            library = Library(
                tasks=_read_json(tasks_path, []),
                decisions=_read_json(decisions_path, []),
                stages=layout.get("stages", []),
                process_areas=layout.get("process_areas", {}),
                routing=_read_json(self._data_dir / "routing.json", []),
                skin=_read_json(self._data_dir / "skin.json", {}),
            )
        except ValidationError as exc:
            raise LibraryError(f"Invalid library under {self._data_dir}: {exc}") from exc

        for issue in check_library(library):
            logger.warning("Library integrity: %s", issue.message)
        logger.info(
            "Loaded library from %s: %d tasks, %d decisions",
            self._data_dir, len(library.tasks), len(library.decisions),
        )
        return library


class JsonAnswerStore:
    """IAnswerStore backed by a single client_decisions.json document.

    Also reads the unversioned layout ``{client: {decision_id: answer}}``,
    treating it as version 0.
    """

    def __init__(self, state_dir: str | Path) -> None:
        self._path = Path(state_dir) / ANSWERS_FILE

    def _load_all(self) -> dict[str, ClientAnswerSet]:
        raw = _read_json(self._path, {})
        sets: dict[str, ClientAnswerSet] = {}
        for client, record in raw.items():
            if "answers" in record:
                sets[client] = ClientAnswerSet(client=client, **record)
            else:
                sets[client] = ClientAnswerSet(client=client, answers=record)
        return sets

    def get_answers(self, client: str) -> ClientAnswerSet:
        return self._load_all().get(client) or ClientAnswerSet(client=client)

    def save_answer(
        self,
        client: str,
        decision_id: str,
        answer: ClientAnswer,
        expected_version: int | None = None,
    ) -> ClientAnswerSet:
        with _locked(self._path):
            sets = self._load_all()
            current = sets.get(client) or ClientAnswerSet(client=client)
            if expected_version is not None and expected_version != current.version:
                raise StaleAnswerSetError(client, expected_version, current.version)
            current.answers[decision_id] = answer
            current.version += 1
            sets[client] = current
            _write_json(self._path, {
                name: s.model_dump(mode="json", exclude={"client"}) for name, s in sets.items()
            })
            return current

    def list_clients(self) -> dict[str, int]:
        return {name: len(s.answers) for name, s in self._load_all().items()}


class JsonWorkflowStore:
    """IWorkflowStore backed by a single client_workflows.json document."""

    def __init__(self, state_dir: str | Path) -> None:
        self._path = Path(state_dir) / WORKFLOWS_FILE

    def get_workflow(self, client: str) -> SavedWorkflow | None:
        record = _read_json(self._path, {}).get(client)
        return SavedWorkflow.model_validate(record) if record else None

    def save_workflow(self, workflow: SavedWorkflow) -> SavedWorkflow:
        with _locked(self._path):
            raw = _read_json(self._path, {})
            previous = raw.get(workflow.client, {}).get("version", 0)
            stored = workflow.model_copy(update={"version": previous + 1})
            raw[workflow.client] = stored.model_dump(mode="json")
            _write_json(self._path, raw)
            return stored


class LocalFileStore:
    """IFileStore rooted at a local directory."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def read(self, path: str) -> bytes:
        try:
            return (self._root / path).read_bytes()
        except OSError as exc:
            raise StorageError(f"Local read failed for {path!r}: {exc}") from exc

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        target = self._root / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Local write failed for {path!r}: {exc}") from exc
        return str(target)

    def list_files(self, prefix: str) -> list[str]:
        if not self._root.exists():
            return []
        return sorted(
            p.relative_to(self._root).as_posix()
            for p in self._root.rglob("*")
            if p.is_file() and p.relative_to(self._root).as_posix().startswith(prefix)
        )
