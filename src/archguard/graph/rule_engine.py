"""Architecture rule engine: evaluate a rule set against the component graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from archguard.errors import ConfigurationError
from archguard.graph.cycles import Cycle, find_cycles
from archguard.graph.diff import diff_graphs
from archguard.graph.model import UNCLASSIFIED, Edge, Graph, Witness
from archguard.graph.rule_set import (
    DEFAULT_POLICY_RULE_NAME,
    DenyRule,
    IsolateRule,
    NoCyclesRule,
    Rule,
    RuleSet,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

DEFAULT_DENY_KIND = "default_deny"

# Violations of these kinds depend only on a single edge and the rule set.
EDGE_SCOPED_KINDS: frozenset[str] = frozenset(
    {DenyRule.kind, IsolateRule.kind, DEFAULT_DENY_KIND}
)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Violation:
    """A single rule violation.

    Violations are data, never exceptions: a run that finds hundreds of them
    still completes and reports every one.
    """

    rule_name: str
    rule_description: str
    rule_type: str  # "deny" | "isolate" | "no_cycles" | "default_deny"
    severity: str  # "error" | "warn"
    from_component: str | None
    to_component: str | None
    message: str
    witnesses: tuple[Witness, ...] = ()
    cycle: tuple[str, ...] | None = None

    @property
    def file_path(self) -> str | None:
        return self.witnesses[0].source_file if self.witnesses else None

    @property
    def line_number(self) -> int | None:
        return self.witnesses[0].source_line if self.witnesses else None

    @property
    def identity(self) -> tuple[str, str, str, str, tuple[str, ...]]:
        """Stable identity used to match violations across runs.

        Cycles match on their rotation-normalized members; the DFS entry point,
        and with it ``from``/``to``, moves when unrelated edges change.
        """
        if self.cycle is not None:
            return (self.rule_name, self.rule_type, "", "", Cycle(path=self.cycle).normalized())
        return (
            self.rule_name,
            self.rule_type,
            self.from_component or "",
            self.to_component or "",
            self.cycle or (),
        )

    @property
    def sort_key(self) -> tuple[str, str, str, tuple[str, int], str, tuple[str, ...]]:
        """Deterministic ordering: kind, from, to, first witness, rule, cycle."""
        location = (self.file_path or "", self.line_number or 0)
        return (
            self.rule_type,
            self.from_component or "",
            self.to_component or "",
            location,
            self.rule_name,
            self.cycle or (),
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_rule_set(graph: Graph, rule_set: RuleSet) -> None:
    """Fail on the first rule that references a component unknown to *graph*.

    The implicit ``unclassified`` component is always considered known so
    that rules about it do not depend on whether a run happened to contain
    unclassified units.
    """
    for rule in rule_set.rules:
        for name in rule.referenced_components():
            if name == UNCLASSIFIED or graph.has_component(name):
                continue
            msg = (
                f"Rule '{rule.name}' ({rule.kind}) references unknown component '{name}'; "
                f"known components: {list(graph.component_names())}"
            )
            raise ConfigurationError(msg)


# ---------------------------------------------------------------------------
# Per-rule evaluation
# ---------------------------------------------------------------------------


def _describe_witnesses(edge: Edge) -> str:
    count = len(edge.witnesses)
    if count == 0:
        return "no recorded imports"
    noun = "import" if count == 1 else "imports"
    return f"{count} {noun}, first at {edge.witnesses[0].location}"


def _deny_violations(rule: DenyRule, edges: Iterable[Edge]) -> list[Violation]:
    violations: list[Violation] = []
    for edge in edges:
        if not rule.matches(edge.from_component, edge.to_component):
            continue
        suffix = f": {rule.description}" if rule.description else ""
        violations.append(
            Violation(
                rule_name=rule.name,
                rule_description=rule.description,
                rule_type=rule.kind,
                severity=rule.severity,
                from_component=edge.from_component,
                to_component=edge.to_component,
                witnesses=edge.witnesses,
                message=(
                    f"Dependency '{edge.from_component}' → '{edge.to_component}' "
                    f"violates deny rule '{rule.name}' ({_describe_witnesses(edge)}){suffix}"
                ),
            )
        )
    return violations


def _isolate_violations(rule: IsolateRule, edges: Iterable[Edge]) -> list[Violation]:
    violations: list[Violation] = []
    allowed = set(rule.allowed)
    for edge in edges:
        if edge.from_component != rule.component or edge.is_self_edge:
            continue
        if edge.to_component in allowed:
            continue
        allowed_str = ", ".join(rule.allowed) if rule.allowed else "nothing"
        violations.append(
            Violation(
                rule_name=rule.name,
                rule_description=rule.description,
                rule_type=rule.kind,
                severity=rule.severity,
                from_component=edge.from_component,
                to_component=edge.to_component,
                witnesses=edge.witnesses,
                message=(
                    f"Isolated component '{rule.component}' depends on "
                    f"'{edge.to_component}' ({_describe_witnesses(edge)}); "
                    f"allowed: {allowed_str} (rule '{rule.name}')"
                ),
            )
        )
    return violations


def _default_deny_violations(rule_set: RuleSet, edges: Iterable[Edge]) -> list[Violation]:
    violations: list[Violation] = []
    for edge in edges:
        if edge.is_self_edge:
            continue
        if rule_set.is_allowed(edge.from_component, edge.to_component):
            continue
        violations.append(
            Violation(
                rule_name=DEFAULT_POLICY_RULE_NAME,
                rule_description="Dependencies must be explicitly allowed",
                rule_type=DEFAULT_DENY_KIND,
                severity="error",
                from_component=edge.from_component,
                to_component=edge.to_component,
                witnesses=edge.witnesses,
                message=(
                    f"Dependency '{edge.from_component}' → '{edge.to_component}' "
                    f"is not allowed by any rule ({_describe_witnesses(edge)}; "
                    f"default policy: deny)"
                ),
            )
        )
    return violations


def _cycle_witnesses(graph: Graph, cycle: Cycle) -> tuple[Witness, ...]:
    """Return the first witness of every hop along *cycle*."""
    witnesses: list[Witness] = []
    for src, dst in zip(cycle.path, cycle.path[1:]):
        edge = graph.edge(src, dst)
        if edge is not None and edge.witnesses:
            witnesses.append(edge.witnesses[0])
    return tuple(witnesses)


def _cycle_violations(graph: Graph, rule: NoCyclesRule) -> list[Violation]:
    violations: list[Violation] = []
    for cycle in find_cycles(graph, exclude_self_edges=rule.exclude_self_edges):
        violations.append(
            Violation(
                rule_name=rule.name,
                rule_description=rule.description,
                rule_type=rule.kind,
                severity=rule.severity,
                from_component=cycle.members[0],
                to_component=cycle.members[-1],
                witnesses=_cycle_witnesses(graph, cycle),
                cycle=cycle.path,
                message=f"Circular dependency detected: {cycle} (rule '{rule.name}')",
            )
        )
    return violations


def _edge_rule_violations(rule: Rule, edges: Sequence[Edge]) -> list[Violation]:
    if isinstance(rule, DenyRule):
        return _deny_violations(rule, edges)
    if isinstance(rule, IsolateRule):
        return _isolate_violations(rule, edges)
    return []


# ---------------------------------------------------------------------------
# Combined evaluation
# ---------------------------------------------------------------------------


def evaluate(graph: Graph, rule_set: RuleSet) -> list[Violation]:
    """Evaluate every rule of *rule_set* against *graph*.

    Rules run in declaration order and never short-circuit each other: an
    edge breaking a deny rule, an isolate rule and the default policy yields
    three violations.  The default-deny policy (when enabled) runs after the
    declared rules.

    Raises :class:`ConfigurationError` before evaluating anything when a rule
    references an unknown component.
    """
    validate_rule_set(graph, rule_set)

    edges = graph.edges()
    violations: list[Violation] = []
    for rule in rule_set.rules:
        if isinstance(rule, NoCyclesRule):
            found = _cycle_violations(graph, rule)
        elif isinstance(rule, IsolateRule):
            out_edges = (
                graph.out_edges(rule.component) if graph.has_component(rule.component) else ()
            )
            found = _isolate_violations(rule, out_edges)
        else:
            found = _edge_rule_violations(rule, edges)
        logger.debug("Rule '%s' (%s): %d violation(s)", rule.name, rule.kind, len(found))
        violations.extend(found)

    if rule_set.default_policy == "deny":
        found = _default_deny_violations(rule_set, edges)
        logger.debug("Default deny policy: %d violation(s)", len(found))
        violations.extend(found)

    return violations


def evaluate_incremental(
    previous_graph: Graph,
    previous_violations: Sequence[Violation],
    graph: Graph,
    rule_set: RuleSet,
) -> list[Violation]:
    """Re-validate *graph* reusing the results of a previous run.

    *previous_violations* must come from evaluating *previous_graph* with the
    same *rule_set*.  Edge-scoped violations of unchanged edges are reused;
    only added or changed edges are re-evaluated.  Cycle rules always run
    against the whole new graph.  When the component set changed, this falls
    back to a full :func:`evaluate`.
    """
    delta = diff_graphs(previous_graph, graph)
    if delta.components_changed:
        logger.debug("Component set changed; running full evaluation")
        return evaluate(graph, rule_set)

    validate_rule_set(graph, rule_set)

    changed = delta.changed_keys()
    kept = [
        v
        for v in previous_violations
        if v.rule_type in EDGE_SCOPED_KINDS
        and (v.from_component or "", v.to_component or "") not in changed
    ]
    changed_edges = tuple(e for e in graph.edges() if e.key in changed)
    logger.debug(
        "Incremental evaluation: %d changed edge(s), %d violation(s) reused",
        len(delta.edges),
        len(kept),
    )

    violations: list[Violation] = list(kept)
    for rule in rule_set.rules:
        if isinstance(rule, NoCyclesRule):
            violations.extend(_cycle_violations(graph, rule))
        else:
            violations.extend(_edge_rule_violations(rule, changed_edges))

    if rule_set.default_policy == "deny":
        violations.extend(_default_deny_violations(rule_set, changed_edges))

    return violations
