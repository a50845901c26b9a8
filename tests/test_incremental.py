"""Tests for graph diffing and incremental re-validation."""

from __future__ import annotations

from archguard.graph.diff import diff_graphs, diff_to_dict
from archguard.graph.model import Component, Graph, RawEdge, build_graph
from archguard.graph.report import build_report
from archguard.graph.rule_engine import evaluate, evaluate_incremental
from archguard.graph.rule_set import (
    AllowRule,
    DenyRule,
    IsolateRule,
    NoCyclesRule,
    RuleSet,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NAMES = ["app", "domain", "infra", "shared"]

RULE_SET = RuleSet(
    rules=(
        AllowRule("app-domain", "app", "domain"),
        AllowRule("infra-domain", "infra", "domain"),
        DenyRule("domain-not-infra", "domain", "infra"),
        IsolateRule("domain-purity", "domain", allowed=("shared",)),
        NoCyclesRule("no-cycles"),
    ),
    default_policy="deny",
)


def _graph(edges: list[tuple[str, str, int]], names: list[str] | None = None) -> Graph:
    raw = [
        RawEdge(from_unit=src, to_unit=dst, source_file=f"{src}.go", source_line=line)
        for src, dst, line in edges
    ]
    names = names or NAMES
    return build_graph([Component(name=n) for n in names], raw, {n: n for n in names})


def _full_and_incremental(old: Graph, new: Graph) -> tuple[tuple, tuple]:
    previous = evaluate(old, RULE_SET)
    full = build_report(evaluate(new, RULE_SET)).violations
    incremental = build_report(evaluate_incremental(old, previous, new, RULE_SET)).violations
    return full, incremental


# ---------------------------------------------------------------------------
# TestDiffGraphs
# ---------------------------------------------------------------------------


class TestDiffGraphs:
    def test_no_changes(self) -> None:
        graph = _graph([("app", "domain", 1)])
        diff = diff_graphs(graph, graph)
        assert not diff.has_changes
        assert diff.changed_keys() == frozenset()

    def test_added_removed_changed(self) -> None:
        old = _graph([("app", "domain", 1), ("infra", "domain", 2)])
        new = _graph([("app", "domain", 5), ("domain", "shared", 3)])
        diff = diff_graphs(old, new)
        assert [(e.src, e.dst, e.change_type) for e in diff.edges] == [
            ("app", "domain", "changed"),
            ("domain", "shared", "added"),
            ("infra", "domain", "removed"),
        ]
        assert not diff.components_changed

    def test_component_changes(self) -> None:
        old = _graph([], names=["a", "b"])
        new = _graph([], names=["b", "c"])
        diff = diff_graphs(old, new)
        assert diff.added_components == ("c",)
        assert diff.removed_components == ("a",)
        assert diff.components_changed

    def test_to_dict(self) -> None:
        old = _graph([])
        new = _graph([("app", "domain", 1)])
        data = diff_to_dict(diff_graphs(old, new))
        assert data["has_changes"] is True
        assert data["edges"] == [
            {
                "src": "app",
                "dst": "domain",
                "change_type": "added",
                "old_witnesses": 0,
                "new_witnesses": 1,
            }
        ]


# ---------------------------------------------------------------------------
# TestEvaluateIncremental
# ---------------------------------------------------------------------------


class TestEvaluateIncremental:
    def test_unchanged_graph(self) -> None:
        graph = _graph([("app", "domain", 1), ("domain", "infra", 2), ("app", "infra", 3)])
        full, incremental = _full_and_incremental(graph, graph)
        assert incremental == full
        assert len(full) == 4

    def test_added_violating_edge(self) -> None:
        old = _graph([("app", "domain", 1)])
        new = _graph([("app", "domain", 1), ("domain", "infra", 2)])
        full, incremental = _full_and_incremental(old, new)
        assert incremental == full
        assert {v.rule_type for v in full} == {"deny", "isolate", "default_deny"}

    def test_removed_violating_edge(self) -> None:
        old = _graph([("app", "domain", 1), ("domain", "infra", 2)])
        new = _graph([("app", "domain", 1)])
        full, incremental = _full_and_incremental(old, new)
        assert incremental == full == ()

    def test_changed_witnesses_refreshed(self) -> None:
        old = _graph([("domain", "infra", 2)])
        new = _graph([("domain", "infra", 9)])
        full, incremental = _full_and_incremental(old, new)
        assert incremental == full
        assert all(v.line_number == 9 for v in incremental)

    def test_new_cycle_detected(self) -> None:
        old = _graph([("infra", "domain", 1)])
        new = _graph([("infra", "domain", 1), ("domain", "infra", 2)])
        full, incremental = _full_and_incremental(old, new)
        assert incremental == full
        assert any(v.rule_type == "no_cycles" for v in incremental)

    def test_cycle_broken_by_unrelated_removal(self) -> None:
        old = _graph([("app", "shared", 1), ("shared", "app", 2)])
        new = _graph([("app", "shared", 1)])
        full, incremental = _full_and_incremental(old, new)
        assert incremental == full
        assert all(v.rule_type != "no_cycles" for v in incremental)

    def test_component_set_change_falls_back_to_full(self) -> None:
        old = _graph([("a", "b", 1)], names=["a", "b"])
        new = _graph([("a", "b", 1), ("a", "c", 2)], names=["a", "b", "c"])
        rule_set = RuleSet(rules=(IsolateRule("a-purity", "a"),))
        previous = evaluate(old, rule_set)
        incremental = evaluate_incremental(old, previous, new, rule_set)
        assert build_report(incremental) == build_report(evaluate(new, rule_set))
