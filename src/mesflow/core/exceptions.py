"""mesflow exception hierarchy."""

from __future__ import annotations

from collections.abc import Sequence


class MesFlowError(Exception):
    """Base exception for all mesflow errors."""


class NotFoundError(MesFlowError):
    """A referenced library record or client artifact does not exist."""


class DecisionNotFoundError(NotFoundError):
    """Decision id is not in the library."""

    def __init__(self, decision_id: str) -> None:
        self.decision_id = decision_id
        super().__init__(f"Decision {decision_id} not found")


class TaskNotFoundError(NotFoundError):
    """Task id is not in the library."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class WorkflowNotFoundError(NotFoundError):
    """No saved workflow exists for the client."""

    def __init__(self, client: str) -> None:
        self.client = client
        super().__init__(
            f"No saved workflow found for {client}. Generate a workflow first."
        )


class ExportNotFoundError(NotFoundError):
    """The client has no stored export with that file name."""

    def __init__(self, client: str, filename: str) -> None:
        self.client = client
        self.filename = filename
        super().__init__(f"No export {filename!r} found for {client}")


class InvalidOutcomeError(MesFlowError):
    """Selected outcome is not one of the decision's allowed outcomes."""

    def __init__(self, decision_id: str, outcome: str, allowed: Sequence[str]) -> None:
        self.decision_id = decision_id
        self.outcome = outcome
        self.allowed = list(allowed)
        super().__init__(
            f"Invalid outcome {outcome!r} for {decision_id}. "
            f"Valid options are: {', '.join(self.allowed)}"
        )


class UnconfiguredClientError(MesFlowError):
    """Workflow requested before the client answered any decision."""

    def __init__(self, client: str) -> None:
        self.client = client
        super().__init__(
            f"Cannot generate workflow: no decisions configured for {client}"
        )


class StaleAnswerSetError(MesFlowError):
    """Answer save was based on an outdated version of the client's answers."""

    def __init__(self, client: str, expected_version: int, actual_version: int) -> None:
        self.client = client
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Answers for {client} changed since version {expected_version} "
            f"(now {actual_version}); reload and retry"
        )


class LibraryError(MesFlowError):
    """Task/decision library documents are malformed."""


class UnsupportedFormatError(MesFlowError):
    """Export format is not supported by the renderer."""

    def __init__(self, fmt: str, supported: Sequence[str]) -> None:
        self.fmt = fmt
        self.supported = list(supported)
        super().__init__(
            f"Unsupported export format {fmt!r}; expected one of {', '.join(self.supported)}"
        )


class CacheError(MesFlowError):
    """Redis cache operation failed."""


class StorageError(MesFlowError):
    """Persistence backend operation failed."""


class RenderError(MesFlowError):
    """External diagram renderer failed."""
