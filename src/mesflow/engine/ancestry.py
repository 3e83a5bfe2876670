"""Ancestor resolver: reconnects tasks whose direct predecessors were filtered out."""

from __future__ import annotations

from collections import deque
from collections.abc import Collection

from mesflow.models.library import Library, TaskDefinition


def nearest_included_ancestor(
    task: TaskDefinition, library: Library, included_ids: Collection[str]
) -> str | None:
    """Breadth-first search backwards through predecessors for an included task.

    The queue is seeded with ``task.predecessors`` and each visited task's
    predecessors are appended in their declared order, so among equally distant
    ancestors the first one enqueued wins. Ids missing from the library are
    treated as dead ends. Returns None when no included ancestor is reachable.
    """
    visited: set[str] = set()
    queue = deque(task.predecessors)

    while queue:
        current_id = queue.popleft()
        if current_id in visited:
            continue
        visited.add(current_id)

        if current_id in included_ids:
            return current_id

        current = library.get_task(current_id)
        if current is not None:
            queue.extend(current.predecessors)

    return None
