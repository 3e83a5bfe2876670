"""Compiled workflow graph: nodes, styled edges, and stage groups."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class NodeClass(StrEnum):
    MACRO = "macro"
    MICRO = "micro"
    LOOP = "loop"
    EXCEPTION = "exception"
    DECISION = "decision"
    # Presentation-only classes added by the narrative skin
    TERMINAL = "terminal"
    CONVERGE = "converge"


class EdgeStyle(StrEnum):
    SOLID = "solid"
    DASHED = "dashed"


class GraphNode(BaseModel):
    id: str
    label: str
    node_class: NodeClass
    stage: Optional[str] = None
    task_id: Optional[str] = None  # None for synthesized nodes


class GraphEdge(BaseModel):
    source: str
    target: str
    label: Optional[str] = None
    style: EdgeStyle = EdgeStyle.SOLID

    def key(self) -> tuple[str, str, str | None, str]:
        return (self.source, self.target, self.label, self.style.value)


class StageGroup(BaseModel):
    name: str
    title: str
    node_ids: list[str] = Field(default_factory=list)


class CompiledGraph(BaseModel):
    """Output of one compile call. Owned by the caller; the core never stores it."""

    stage: str
    title: str = ""
    annotated: bool = False
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    groups: list[StageGroup] = Field(default_factory=list)

    def node(self, node_id: str) -> GraphNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def task_ids(self) -> list[str]:
        return [n.task_id for n in self.nodes if n.task_id is not None]

    def incoming(self, node_id: str) -> list[GraphEdge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> list[GraphEdge]:
        return [e for e in self.edges if e.source == node_id]

    def edge_set(self) -> set[tuple[str, str, str | None, str]]:
        return {e.key() for e in self.edges}

    def task_edges(self) -> set[tuple[str, str]]:
        """Task-to-task connectivity, with synthesized decision nodes collapsed."""
        task_ids = set(self.task_ids())
        synthesized = {n.id for n in self.nodes if n.task_id is None}
        pairs: set[tuple[str, str]] = set()
        for edge in self.edges:
            if edge.source in task_ids and edge.target in task_ids:
                pairs.add((edge.source, edge.target))
            elif edge.source in task_ids and edge.target in synthesized:
                for out in self.outgoing(edge.target):
                    if out.target in task_ids:
                        pairs.add((edge.source, out.target))
        return pairs
