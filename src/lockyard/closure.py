"""Dependency closure over a lock graph."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Hashable, Iterable
from typing import TypeVar

from lockyard.lockfile.model import DependencyNode, LockGraph

T = TypeVar("T")


def generic_closure(
    start: Iterable[T],
    *,
    key: Callable[[T], Hashable],
    operator: Callable[[T], Iterable[T]],
) -> list[T]:
    """Return every item reachable from *start*, one per key, in discovery order.

    An item whose key was already seen is neither recorded nor expanded, so
    shared subgraphs are walked once and cycles terminate.
    """
    seen: set[Hashable] = set()
    result: list[T] = []
    queue: deque[T] = deque(start)
    while queue:
        item = queue.popleft()
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        result.append(item)
        queue.extend(operator(item))
    return result


def build_closure(graph: LockGraph) -> tuple[DependencyNode, ...]:
    """Return the packages reachable from the graph root, excluding the root itself."""
    reachable = generic_closure(
        [graph.root],
        key=lambda path: graph.nodes[path].key,
        operator=graph.children,
    )
    return tuple(graph.nodes[path] for path in reachable if path != graph.root)
