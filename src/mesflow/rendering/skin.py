"""Narrative skin for human-facing diagrams.

The skin is applied after compilation. It adds start/finish markers, stage
titles, relabels, and convergence callouts, but never adds or removes task
nodes or the edges between them.
"""

from __future__ import annotations

from mesflow.models.graph import CompiledGraph, EdgeStyle, GraphEdge, GraphNode, NodeClass
from mesflow.models.library import Library

START_NODE_ID = "START"
FINISH_NODE_ID = "FINISH"


def annotate(graph: CompiledGraph, library: Library) -> CompiledGraph:
    skin = library.skin
    annotated = graph.model_copy(deep=True)
    annotated.annotated = True
    annotated.title = skin.title

    task_nodes = [n for n in graph.nodes if n.task_id is not None]
    if not task_nodes:
        return annotated

    for node in annotated.nodes:
        if node.task_id is None:
            continue
        if node.task_id in skin.label_overrides:
            node.label = skin.label_overrides[node.task_id]
        if node.node_class == NodeClass.MICRO and len(graph.incoming(node.id)) >= 2:
            node.node_class = NodeClass.CONVERGE

    for group in annotated.groups:
        group.title = skin.stage_titles.get(group.name, group.name)

    # Roots are tasks with no declared predecessors; orphans stay unlinked.
    entries = [
        n.id for n in task_nodes
        if not graph.incoming(n.id) and not library.task(n.task_id).predecessors
    ]
    # Dashed exits (exception branches, loop back-edges) do not continue the flow.
    exits = [
        n.id for n in task_nodes
        if n.node_class != NodeClass.EXCEPTION
        and not any(e.style == EdgeStyle.SOLID for e in graph.outgoing(n.id))
    ]

    annotated.nodes.insert(0, GraphNode(
        id=START_NODE_ID, label=skin.start_label, node_class=NodeClass.TERMINAL,
    ))
    annotated.nodes.append(GraphNode(
        id=FINISH_NODE_ID, label=skin.finish_label, node_class=NodeClass.TERMINAL,
    ))
    annotated.edges = (
        [GraphEdge(source=START_NODE_ID, target=node_id) for node_id in entries]
        + annotated.edges
        + [GraphEdge(source=node_id, target=FINISH_NODE_ID) for node_id in exits]
    )

    return annotated
