"""WorkflowService: the operations exposed to the MCP server and HTTP API."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from mesflow.core.config import AppSettings
from mesflow.core.exceptions import (
    ExportNotFoundError,
    InvalidOutcomeError,
    RenderError,
    UnconfiguredClientError,
    UnsupportedFormatError,
    WorkflowNotFoundError,
)
from mesflow.core.protocols import IAnswerStore, IFileStore, ILibraryStore, IRenderer, IWorkflowStore
from mesflow.engine.compiler import compile_graph
from mesflow.engine.validator import validate_configuration
from mesflow.models.answers import ClientAnswer, ClientAnswerSet
from mesflow.models.graph import CompiledGraph
from mesflow.models.library import ALL_STAGES, DecisionCategory, DecisionDefinition, Library, TaskKind
from mesflow.models.validation import ValidationReport
from mesflow.models.workflow import DecisionDetail, ExportRecord, SavedWorkflow, WorkflowMetadata
from mesflow.persistence import create_persistence
from mesflow.rendering.mermaid import to_mermaid
from mesflow.rendering.renderer import SUPPORTED_FORMATS, MermaidCliRenderer
from mesflow.rendering.skin import annotate

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "mmd": "text/plain",
}


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(filename.rsplit(".", 1)[-1], "application/octet-stream")


def _path_segment(value: str) -> str:
    return re.sub(r"[^\w.\- ]", "_", value).strip() or "_"


class WorkflowService:
    """Configures client workflows against the task/decision library."""

    def __init__(
        self,
        *,
        library_store: ILibraryStore,
        answer_store: IAnswerStore,
        workflow_store: IWorkflowStore,
        file_store: IFileStore,
        renderer: IRenderer,
    ) -> None:
        self._library_store = library_store
        self._answers = answer_store
        self._workflows = workflow_store
        self._files = file_store
        self._renderer = renderer

    @property
    def library(self) -> Library:
        return self._library_store.get_library()

    # ---- decisions ----

    def list_decisions(
        self, stage: str | None = None, category: str | None = None
    ) -> list[DecisionDefinition]:
        library = self.library
        stages = library.stages_for(stage)
        return [
            d for d in library.decisions
            if (stages is None or d.stage in stages)
            and (category is None or d.category == category)
        ]

    def get_decision_detail(self, decision_id: str) -> DecisionDetail:
        library = self.library
        return DecisionDetail(
            decision=library.decision(decision_id),
            affected_tasks=library.tasks_gated_by(decision_id),
        )

    # ---- answers ----

    def save_answer(
        self,
        client: str,
        decision_id: str,
        outcome: str,
        rationale: str | None = None,
        expected_version: int | None = None,
    ) -> ClientAnswerSet:
        decision = self.library.decision(decision_id)
        if outcome not in decision.outcomes:
            raise InvalidOutcomeError(decision_id, outcome, decision.outcomes)

        saved = self._answers.save_answer(
            client,
            decision_id,
            ClientAnswer(selected_outcome=outcome, rationale=rationale or ""),
            expected_version=expected_version,
        )
        logger.info("Saved %s=%r for %s (version %d)", decision_id, outcome, client, saved.version)
        return saved

    def list_answers(self, client: str) -> ClientAnswerSet:
        return self._answers.get_answers(client)

    def list_clients(self) -> dict[str, int]:
        return self._answers.list_clients()

    def list_unanswered(self, client: str, stage: str | None = None) -> list[DecisionDefinition]:
        answered = self._answers.get_answers(client).answers
        return [
            d for d in self.list_decisions(stage, DecisionCategory.PRACTICE)
            if d.id not in answered
        ]

    # ---- workflows ----

    def _configured_answers(self, client: str) -> ClientAnswerSet:
        answer_set = self._answers.get_answers(client)
        if not answer_set.answers:
            raise UnconfiguredClientError(client)
        return answer_set

    def compile_workflow(
        self, client: str, stage: str = ALL_STAGES, annotated: bool = False
    ) -> CompiledGraph:
        answer_set = self._configured_answers(client)
        library = self.library
        graph = compile_graph(library, answer_set.answers, stage)
        return annotate(graph, library) if annotated else graph

    def generate_workflow(self, client: str, stage: str = ALL_STAGES) -> SavedWorkflow:
        """Compile, annotate, and save the client's workflow with the next version."""
        answer_set = self._configured_answers(client)
        library = self.library
        canonical = compile_graph(library, answer_set.answers, stage)
        presented = annotate(canonical, library)

        included = [library.task(task_id) for task_id in canonical.task_ids()]
        metadata = WorkflowMetadata(
            task_count=len(included),
            decision_count=len(answer_set.answers),
            macro_count=sum(1 for t in included if t.kind == TaskKind.MACRO),
            loop_count=sum(1 for t in included if t.is_loop),
        )
        saved = self._workflows.save_workflow(SavedWorkflow(
            client=client,
            stage=stage,
            last_generated=datetime.now(timezone.utc),
            graph=presented,
            mermaid=to_mermaid(presented),
            metadata=metadata,
        ))
        logger.info(
            "Generated workflow v%d for %s (%s): %d tasks, %d edges",
            saved.version, client, stage, metadata.task_count, len(canonical.edges),
        )
        return saved

    def validate_workflow(self, client: str, stage: str = ALL_STAGES) -> ValidationReport:
        answers = self._answers.get_answers(client).answers
        return ValidationReport(
            client=client,
            stage=stage,
            issues=validate_configuration(self.library, answers, stage),
        )

    def get_saved_workflow(self, client: str) -> SavedWorkflow:
        workflow = self._workflows.get_workflow(client)
        if workflow is None:
            raise WorkflowNotFoundError(client)
        return workflow

    # ---- exports ----

    def export_workflow(self, client: str, fmt: str = "png") -> ExportRecord:
        if fmt not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(fmt, SUPPORTED_FORMATS)
        workflow = self.get_saved_workflow(client)

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        stage_slug = _path_segment(re.sub(r"\s+", "-", workflow.stage))
        stem = f"{_path_segment(client)}/workflow_{stage_slug}_{timestamp}"

        source_path = self._files.write(f"{stem}.mmd", workflow.mermaid.encode("utf-8"), CONTENT_TYPES["mmd"])
        try:
            data = self._renderer.render(workflow.mermaid, fmt)
        except RenderError:
            logger.exception("Export of %s workflow v%d failed", client, workflow.version)
            raise
        path = self._files.write(f"{stem}.{fmt}", data, CONTENT_TYPES[fmt])

        logger.info("Exported %s workflow v%d to %s", client, workflow.version, path)
        return ExportRecord(
            client=client,
            filename=f"{stem.rsplit('/', 1)[-1]}.{fmt}",
            path=path,
            source_path=source_path,
            stage=workflow.stage,
            version=workflow.version,
            fmt=fmt,
            size_bytes=len(data),
        )

    def list_exports(self, client: str, fmt: str = "png") -> list[str]:
        """Export keys for the client, newest first."""
        keys = self._files.list_files(f"{_path_segment(client)}/")
        return sorted((k for k in keys if k.endswith(f".{fmt}")), reverse=True)

    def read_export(self, client: str, filename: str) -> bytes:
        """Stored bytes of one export (image or ``.mmd`` source) by file name."""
        key = f"{_path_segment(client)}/{filename}"
        if key not in self._files.list_files(key):
            raise ExportNotFoundError(client, filename)
        return self._files.read(key)


def create_service(settings: AppSettings | None = None) -> WorkflowService:
    """Wire a WorkflowService from application settings."""
    if settings is None:
        settings = AppSettings()
    library_store, answer_store, workflow_store, file_store = create_persistence(settings)
    renderer = MermaidCliRenderer(
        command=settings.renderer.command,
        width=settings.renderer.width,
        height=settings.renderer.height,
        background=settings.renderer.background,
        timeout=settings.renderer.timeout,
    )
    return WorkflowService(
        library_store=library_store,
        answer_store=answer_store,
        workflow_store=workflow_store,
        file_store=file_store,
        renderer=renderer,
    )
