"""Mermaid flowchart text for a compiled graph."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from mesflow.models.graph import CompiledGraph, EdgeStyle, GraphEdge, GraphNode, NodeClass

CLASS_STYLES: dict[NodeClass, str] = {
    NodeClass.MACRO: "fill:#0288d1,stroke:#01579b,stroke-width:4px,color:#ffffff,font-weight:bold",
    NodeClass.MICRO: "fill:#fff9e1,stroke:#f9a825,stroke-width:2px,color:#3e2723",
    NodeClass.LOOP: "fill:#8e24aa,stroke:#4a148c,stroke-width:3px,color:#ffffff,font-weight:bold",
    NodeClass.EXCEPTION: "fill:#ffcdd2,stroke:#c62828,stroke-width:3px,stroke-dasharray:8 4,color:#b71c1c",
    NodeClass.DECISION: "fill:#fff3e0,stroke:#e65100,stroke-width:3px,color:#e65100,font-weight:bold",
    NodeClass.TERMINAL: "fill:#4caf50,stroke:#2e7d32,stroke-width:4px,color:#ffffff,font-weight:bold",
    NodeClass.CONVERGE: "fill:#c8e6c9,stroke:#2e7d32,stroke-width:3px,color:#1b5e20,font-weight:bold",
}

_NON_WORD = re.compile(r"\W+")


def mermaid_id(node_id: str) -> str:
    return _NON_WORD.sub("_", node_id)


def assign_mermaid_ids(node_ids: Iterable[str]) -> dict[str, str]:
    """Sanitized id per graph node; ids that sanitize alike get ``_2``, ``_3`` suffixes."""
    assigned: dict[str, str] = {}
    taken: set[str] = set()
    for node_id in node_ids:
        if node_id in assigned:
            continue
        base = candidate = mermaid_id(node_id)
        n = 1
        while candidate in taken:
            n += 1
            candidate = f"{base}_{n}"
        assigned[node_id] = candidate
        taken.add(candidate)
    return assigned


def subgraph_id(stage: str) -> str:
    return _NON_WORD.sub("_", stage.replace("&", "and")).strip("_")


def _text(label: str) -> str:
    return label.replace('"', "#quot;")


def node_shape(node: GraphNode, ids: Mapping[str, str] | None = None) -> str:
    nid = ids[node.id] if ids else mermaid_id(node.id)
    label = _text(node.label)
    if node.node_class == NodeClass.MACRO:
        return f'{nid}[["{label}"]]'
    if node.node_class == NodeClass.LOOP:
        return f'{nid}(("{label}"))'
    if node.node_class == NodeClass.DECISION:
        return f'{nid}{{"{label}"}}'
    if node.node_class == NodeClass.TERMINAL:
        return f'{nid}(["{label}"])'
    return f'{nid}["{label}"]'


def edge_line(edge: GraphEdge, ids: Mapping[str, str] | None = None) -> str:
    arrow = "-.->" if edge.style == EdgeStyle.DASHED else "-->"
    if ids:
        source, target = ids[edge.source], ids[edge.target]
    else:
        source, target = mermaid_id(edge.source), mermaid_id(edge.target)
    if edge.label:
        return f'{source} {arrow}|"{_text(edge.label)}"| {target}'
    return f"{source} {arrow} {target}"


def to_mermaid(graph: CompiledGraph, direction: str = "TD") -> str:
    ids = assign_mermaid_ids(
        [n.id for n in graph.nodes] + [end for e in graph.edges for end in (e.source, e.target)]
    )
    lines = [f"graph {direction}"]
    for node_class, style in CLASS_STYLES.items():
        lines.append(f"  classDef {node_class.value}Style {style}")
    lines.append("")

    grouped: set[str] = set()
    for group in graph.groups:
        lines.append(f'  subgraph {subgraph_id(group.name)}["{_text(group.title)}"]')
        for node_id in group.node_ids:
            node = graph.node(node_id)
            if node is not None:
                lines.append(f"    {node_shape(node, ids)}")
                grouped.add(node_id)
        lines.append("  end")

    for node in graph.nodes:
        if node.id not in grouped:
            lines.append(f"  {node_shape(node, ids)}")
    lines.append("")

    for edge in graph.edges:
        lines.append(f"  {edge_line(edge, ids)}")
    lines.append("")

    by_class: dict[NodeClass, list[str]] = {}
    for node in graph.nodes:
        by_class.setdefault(node.node_class, []).append(ids[node.id])
    for node_class, ids_in_class in by_class.items():
        lines.append(f"  class {','.join(ids_in_class)} {node_class.value}Style")

    return "\n".join(lines) + "\n"
