"""Tests for cycle detection over the component graph.

Tests cover:
- Acyclic graphs yield no cycles
- Simple (A → B → A) and triangle (A → B → C → A) cycles
- Self-edges excluded by default, reported as length-1 cycles on request
- Rotation normalization (no duplicate cycles)
- Deterministic output independent of input order
- Disconnected components with separate cycles
- Deep chains (no recursion limit)
"""

from __future__ import annotations

from archguard.graph.cycles import Cycle, find_cycles, has_cycles
from archguard.graph.model import Component, Graph, RawEdge, build_graph

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _graph(names: list[str], edges: list[tuple[str, str]]) -> Graph:
    """Build a graph where every component has a single unit of the same name."""
    raw = [
        RawEdge(from_unit=src, to_unit=dst, source_file=f"{src}.py", source_line=i + 1)
        for i, (src, dst) in enumerate(edges)
    ]
    return build_graph([Component(name=n) for n in names], raw, {n: n for n in names})


# ---------------------------------------------------------------------------
# TestCycle
# ---------------------------------------------------------------------------


class TestCycle:
    def test_members_and_length(self) -> None:
        cycle = Cycle(path=("a", "b", "c", "a"))
        assert cycle.members == ("a", "b", "c")
        assert cycle.length == 3

    def test_normalized_rotation(self) -> None:
        assert Cycle(path=("c", "a", "b", "c")).normalized() == ("a", "b", "c")
        assert Cycle(path=("b", "c", "a", "b")).normalized() == ("a", "b", "c")

    def test_str_uses_arrows(self) -> None:
        assert str(Cycle(path=("a", "b", "a"))) == "a → b → a"


# ---------------------------------------------------------------------------
# TestFindCycles
# ---------------------------------------------------------------------------


class TestFindCycles:
    def test_acyclic_graph(self) -> None:
        graph = _graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("a", "c")])
        assert find_cycles(graph) == []
        assert not has_cycles(graph)

    def test_empty_graph(self) -> None:
        assert find_cycles(_graph([], [])) == []

    def test_simple_cycle(self) -> None:
        graph = _graph(["a", "b"], [("a", "b"), ("b", "a")])
        cycles = find_cycles(graph)
        assert len(cycles) == 1
        assert cycles[0].path == ("a", "b", "a")

    def test_triangle_cycle(self) -> None:
        graph = _graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("c", "a")])
        cycles = find_cycles(graph)
        assert len(cycles) == 1
        assert cycles[0].normalized() == ("a", "b", "c")
        assert cycles[0].path == ("a", "b", "c", "a")

    def test_cycle_not_reachable_from_first_root(self) -> None:
        graph = _graph(["a", "x", "y"], [("x", "y"), ("y", "x")])
        cycles = find_cycles(graph)
        assert [c.path for c in cycles] == [("x", "y", "x")]

    def test_disconnected_cycles(self) -> None:
        graph = _graph(
            ["a", "b", "c", "d"], [("a", "b"), ("b", "a"), ("c", "d"), ("d", "c")]
        )
        assert [c.normalized() for c in find_cycles(graph)] == [("a", "b"), ("c", "d")]

    def test_cycle_behind_acyclic_prefix(self) -> None:
        graph = _graph(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("c", "d"), ("d", "b")])
        cycles = find_cycles(graph)
        assert [c.path for c in cycles] == [("b", "c", "d", "b")]


# ---------------------------------------------------------------------------
# TestSelfEdges
# ---------------------------------------------------------------------------


class TestSelfEdges:
    def test_self_edge_excluded_by_default(self) -> None:
        graph = _graph(["a", "b"], [("a", "a"), ("a", "b")])
        assert find_cycles(graph) == []

    def test_self_edge_reported_when_requested(self) -> None:
        graph = _graph(["a"], [("a", "a")])
        cycles = find_cycles(graph, exclude_self_edges=False)
        assert [c.path for c in cycles] == [("a", "a")]
        assert cycles[0].length == 1

    def test_self_edge_never_part_of_longer_cycle(self) -> None:
        graph = _graph(["a", "b"], [("a", "a"), ("a", "b"), ("b", "a")])
        cycles = find_cycles(graph)
        assert [c.path for c in cycles] == [("a", "b", "a")]


# ---------------------------------------------------------------------------
# TestDeterminism
# ---------------------------------------------------------------------------


class TestDeterminism:
    def test_input_order_does_not_matter(self) -> None:
        edges = [("a", "b"), ("b", "c"), ("c", "a"), ("c", "d"), ("d", "c")]
        forward = find_cycles(_graph(["a", "b", "c", "d"], edges))
        backward = find_cycles(_graph(["d", "c", "b", "a"], list(reversed(edges))))
        assert [c.path for c in forward] == [c.path for c in backward]

    def test_repeated_runs_identical(self) -> None:
        graph = _graph(["a", "b", "c"], [("a", "b"), ("b", "c"), ("c", "a"), ("b", "a")])
        assert find_cycles(graph) == find_cycles(graph)

    def test_deep_chain_no_recursion_error(self) -> None:
        names = [f"n{i:05d}" for i in range(3000)]
        edges = list(zip(names, names[1:]))
        edges.append((names[-1], names[0]))
        cycles = find_cycles(_graph(names, edges))
        assert len(cycles) == 1
        assert cycles[0].length == 3000
