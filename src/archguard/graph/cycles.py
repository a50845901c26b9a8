"""Cycle detection over the component graph (three-color iterative DFS)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archguard.graph.model import Graph

logger = logging.getLogger(__name__)

_WHITE = 0  # unvisited
_GRAY = 1  # on the DFS stack
_BLACK = 2  # finished


@dataclass(frozen=True)
class Cycle:
    """A closed dependency loop ``(c1, c2, ..., ck, c1)`` with ``k >= 1``."""

    path: tuple[str, ...]

    @property
    def members(self) -> tuple[str, ...]:
        """The cycle's components without the closing repeat."""
        return self.path[:-1]

    @property
    def length(self) -> int:
        return len(self.path) - 1

    def normalized(self) -> tuple[str, ...]:
        """Rotate the members so the smallest name comes first.

        ``b -> c -> a -> b`` and ``a -> b -> c -> a`` normalize identically.
        """
        members = self.members
        start = members.index(min(members))
        return members[start:] + members[:start]

    def __str__(self) -> str:
        return " → ".join(self.path)


def _successors(graph: Graph, node: str, *, exclude_self_edges: bool) -> list[str]:
    targets = [e.to_component for e in graph.out_edges(node)]
    if exclude_self_edges:
        return [t for t in targets if t != node]
    return targets


def find_cycles(graph: Graph, *, exclude_self_edges: bool = True) -> list[Cycle]:
    """Return the cycles found by a deterministic DFS over *graph*.

    Roots and neighbours are visited in lexicographic order, so identical
    input always yields the same cycles in the same order.  Every back-edge
    to a node still on the DFS stack produces one cycle, reconstructed by
    unwinding the stack; rotations of an already-reported cycle are skipped.

    This guarantees at least one cycle whenever the graph is cyclic, but it
    does not enumerate every elementary cycle of graphs whose cycles share
    edges.
    """
    color: dict[str, int] = dict.fromkeys(graph.component_names(), _WHITE)
    cycles: list[Cycle] = []
    seen: set[tuple[str, ...]] = set()

    for root in graph.component_names():
        if color[root] != _WHITE:
            continue

        # Stack entries: (node, successors, index of next successor to visit)
        color[root] = _GRAY
        path: list[str] = [root]
        stack: list[tuple[str, list[str], int]] = [
            (root, _successors(graph, root, exclude_self_edges=exclude_self_edges), 0)
        ]

        while stack:
            node, succ, idx = stack[-1]
            if idx >= len(succ):
                color[node] = _BLACK
                stack.pop()
                path.pop()
                continue

            stack[-1] = (node, succ, idx + 1)
            neighbor = succ[idx]
            state = color[neighbor]

            if state == _WHITE:
                color[neighbor] = _GRAY
                path.append(neighbor)
                stack.append(
                    (
                        neighbor,
                        _successors(graph, neighbor, exclude_self_edges=exclude_self_edges),
                        0,
                    )
                )
            elif state == _GRAY:
                start = path.index(neighbor)
                cycle = Cycle(path=(*path[start:], neighbor))
                normalized = cycle.normalized()
                if normalized not in seen:
                    seen.add(normalized)
                    cycles.append(cycle)

    logger.debug("Cycle detection found %d cycle(s)", len(cycles))
    return cycles


def has_cycles(graph: Graph, *, exclude_self_edges: bool = True) -> bool:
    """Return True when *graph* contains at least one cycle."""
    return bool(find_cycles(graph, exclude_self_edges=exclude_self_edges))
