"""FastMCP server: MES workflow configuration tools.

Each tool wraps one WorkflowService operation and returns readable text.
Service errors (unknown decision, invalid outcome, unconfigured client, ...)
propagate and are reported by the MCP layer as tool errors.
"""

from __future__ import annotations

import logging
import sys

from mcp.server.fastmcp import FastMCP

from mesflow.core.config import AppSettings
from mesflow.models.library import ALL_STAGES
from mesflow.services.workflow_service import WorkflowService, create_service

logger = logging.getLogger(__name__)

SERVER_NAME = "mes-workflow-server"


class WorkflowTools:
    """Text-formatting tool handlers bound to a WorkflowService."""

    def __init__(self, service: WorkflowService) -> None:
        self._service = service

    def get_decisions(self, stage: str = ALL_STAGES, category: str | None = None) -> str:
        """Get decision questions for a stage, process area, or "All".

        Category may be "Practice" (configuration decisions) or "Runtime"
        (exception conditions).
        """
        decisions = self._service.list_decisions(stage, category)
        if not decisions:
            return f"No decisions found for stage {stage!r}"
        lines = [f"Found {len(decisions)} decision(s):", ""]
        for d in decisions:
            lines.append(f"**{d.id}** ({d.category}) - {d.question}")
            lines.append(f"  Outcomes: {', '.join(d.outcomes)}")
            lines.append(f"  Stage: {d.stage}")
        return "\n".join(lines)

    def get_decision_details(self, decision_id: str) -> str:
        """Get a decision's question, outcomes, and the tasks it gates."""
        detail = self._service.get_decision_detail(decision_id)
        d = detail.decision
        lines = [
            f"**{d.id}** - {d.category}",
            "",
            f"Question: {d.question}",
            "",
            "Valid Outcomes:",
            *(f"  - {o}" for o in d.outcomes),
            "",
            f"Stage: {d.stage}",
            f"Affects: {d.affects}",
            f"Notes: {d.notes}",
            "",
            f"This decision affects {len(detail.affected_tasks)} task(s):",
            *(
                f'  - {t.id}: {t.name} (when outcome = "{t.required_outcome}")'
                for t in detail.affected_tasks
            ),
        ]
        return "\n".join(lines)

    def save_client_decision(
        self,
        client_name: str,
        decision_id: str,
        selected_outcome: str,
        rationale: str | None = None,
        expected_version: int | None = None,
    ) -> str:
        """Save a client's answer; the outcome must match one of the decision's outcomes exactly.

        Pass expected_version (from get_client_decisions) to reject the save if
        another edit landed in the meantime.
        """
        saved = self._service.save_answer(
            client_name, decision_id, selected_outcome, rationale, expected_version,
        )
        return (
            f'Saved: {decision_id} = "{selected_outcome}" for {client_name} '
            f"(answers version {saved.version})"
        )

    def get_client_decisions(self, client_name: str) -> str:
        """Get every decision already answered by a client."""
        answer_set = self._service.list_answers(client_name)
        if not answer_set.answers:
            return f"No decisions configured yet for {client_name}"
        lines = [
            f"Decisions for {client_name} ({len(answer_set.answers)} total, "
            f"version {answer_set.version}):",
            "",
        ]
        for decision_id, answer in answer_set.answers.items():
            suffix = f" ({answer.rationale})" if answer.rationale else ""
            lines.append(f"  - **{decision_id}**: {answer.selected_outcome}{suffix}")
        return "\n".join(lines)

    def list_clients(self) -> str:
        """List every client with saved decisions."""
        clients = self._service.list_clients()
        if not clients:
            return "No clients configured yet. Start by saving decisions for a new client."
        lines = ["Configured clients:", ""]
        lines.extend(f"  - {name} ({count} decisions configured)" for name, count in clients.items())
        return "\n".join(lines)

    def get_unanswered_decisions(self, client_name: str, stage: str | None = None) -> str:
        """List Practice decisions the client has not answered yet."""
        unanswered = self._service.list_unanswered(client_name, stage)
        scope = f' in stage "{stage}"' if stage else ""
        if not unanswered:
            return (
                f"All Practice decisions have been answered for {client_name}{scope}! "
                "Ready to generate workflow."
            )
        lines = [
            f"Unanswered Practice decisions for {client_name} ({len(unanswered)} remaining):",
            "",
        ]
        for d in unanswered:
            lines.append(f"  - **{d.id}**: {d.question}")
            lines.append(f"    Outcomes: {', '.join(d.outcomes)}")
        return "\n".join(lines)

    def generate_workflow(self, client_name: str, stage: str = ALL_STAGES) -> str:
        """Compile the client's workflow diagram and save it as the next version."""
        workflow = self._service.generate_workflow(client_name, stage)
        meta = workflow.metadata
        library_size = len(self._service.library.tasks)
        return "\n".join([
            f"## Workflow Generated for {client_name} - {stage}",
            "",
            f"Saved as version {workflow.version}",
            "",
            f"- Total tasks in library: {library_size}",
            f"- Tasks included in workflow: {meta.task_count}",
            f"  - Macro stages: {meta.macro_count}",
            f"  - Micro tasks: {meta.micro_count}",
            f"  - Loop constructs: {meta.loop_count}",
            f"- Applied decisions: {meta.decision_count}",
            "",
            "```mermaid",
            workflow.mermaid.rstrip(),
            "```",
        ])

    def get_saved_workflow(self, client_name: str) -> str:
        """Retrieve the most recently generated workflow for a client."""
        workflow = self._service.get_saved_workflow(client_name)
        meta = workflow.metadata
        return "\n".join([
            f"## Saved Workflow for {client_name}",
            "",
            f"Last Generated: {workflow.last_generated.isoformat()}",
            f"Stage: {workflow.stage}",
            f"Version: {workflow.version}",
            "",
            f"- Tasks: {meta.task_count}",
            f"- Decisions: {meta.decision_count}",
            f"- Macro Stages: {meta.macro_count}",
            f"- Loop Constructs: {meta.loop_count}",
            "",
            "```mermaid",
            workflow.mermaid.rstrip(),
            "```",
        ])

    def validate_workflow(self, client_name: str, stage: str = ALL_STAGES) -> str:
        """Check the client's workflow for orphaned tasks and incomplete loops."""
        report = self._service.validate_workflow(client_name, stage)
        if report.passed:
            return (
                f"Workflow validation passed for {client_name} - {stage}\n\n"
                "No structural issues found. All nodes are properly connected."
            )
        lines = [f"Workflow validation for {client_name} - {stage}:", ""]
        lines.extend(f"[{i.severity.value}] {i.message}" for i in report.issues)
        lines.append("")
        lines.append(f"{len(report.warnings)} warnings, {len(report.infos)} info messages")
        return "\n".join(lines)

    def export_workflow(self, client_name: str, format: str = "png") -> str:
        """Render the client's saved workflow to an image file."""
        record = self._service.export_workflow(client_name, format)
        return "\n".join([
            "Workflow exported successfully!",
            "",
            f"Client: {record.client}",
            f"File: {record.filename}",
            f"Location: {record.path}",
            f"Stage: {record.stage}",
            f"Version: {record.version}",
            f"Format: {record.fmt.upper()}",
            f"File Size: {record.size_bytes / 1024:.2f} KB",
            f"Source File: {record.source_path}",
        ])

    def list_exports(self, client_name: str) -> str:
        """List exported workflow images for a client, newest first."""
        exports = self._service.list_exports(client_name)
        if not exports:
            return f"No exports found for {client_name}."
        lines = [f"## Exported Workflows for {client_name}", "", f"Total Exports: {len(exports)}", ""]
        lines.extend(f"  - {key}" for key in exports)
        return "\n".join(lines)


TOOL_NAMES = (
    "get_decisions",
    "get_decision_details",
    "save_client_decision",
    "get_client_decisions",
    "list_clients",
    "get_unanswered_decisions",
    "generate_workflow",
    "get_saved_workflow",
    "validate_workflow",
    "export_workflow",
    "list_exports",
)


def build_server(service: WorkflowService) -> FastMCP:
    """Create a FastMCP server with every workflow tool registered."""
    mcp = FastMCP(SERVER_NAME)
    tools = WorkflowTools(service)
    for name in TOOL_NAMES:
        mcp.add_tool(getattr(tools, name), name=name)
    return mcp


def main() -> None:
    settings = AppSettings()
    # stdout carries the MCP protocol
    logging.basicConfig(level=settings.log_level, stream=sys.stderr)
    server = build_server(create_service(settings))
    logger.info("MES workflow MCP server running on stdio (backend=%s)", settings.backend)
    server.run()


if __name__ == "__main__":
    main()
