"""Report builder: sort, count, serialize, and compare validation results."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from archguard.errors import ConfigurationError
from archguard.graph.model import Witness
from archguard.graph.rule_engine import Violation

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from archguard.graph.model import Graph
    from archguard.graph.rule_set import RuleSet

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Report:
    """Immutable result of one validation run."""

    violations: tuple[Violation, ...] = ()
    edges_checked: int = 0
    rules_evaluated: int = 0
    components_count: int = 0

    @property
    def violations_count(self) -> int:
        return len(self.violations)

    @property
    def passed(self) -> bool:
        return not self.violations

    @property
    def exit_code(self) -> int:
        return EXIT_PASSED if self.passed else EXIT_FAILED

    @property
    def violations_by_kind(self) -> dict[str, int]:
        """Violation counts per rule kind, ordered by kind."""
        counts = Counter(v.rule_type for v in self.violations)
        return {kind: counts[kind] for kind in sorted(counts)}

    def grouped_by_kind(self) -> dict[str, list[Violation]]:
        grouped: dict[str, list[Violation]] = {}
        for v in self.violations:
            grouped.setdefault(v.rule_type, []).append(v)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "summary": {
                "components": self.components_count,
                "edges_checked": self.edges_checked,
                "rules_evaluated": self.rules_evaluated,
                "violations_count": self.violations_count,
                "violations_by_kind": self.violations_by_kind,
            },
            "violations": [violation_to_dict(v) for v in self.violations],
        }


@dataclass(frozen=True)
class ReportDiff:
    """Violations that appeared or disappeared between two reports."""

    new: tuple[Violation, ...] = field(default_factory=tuple)
    resolved: tuple[Violation, ...] = field(default_factory=tuple)
    unchanged: tuple[Violation, ...] = field(default_factory=tuple)

    @property
    def has_new(self) -> bool:
        return bool(self.new)


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


def build_report(
    violations: Iterable[Violation],
    *,
    edges_checked: int = 0,
    rules_evaluated: int = 0,
    components_count: int = 0,
) -> Report:
    """Sort *violations* into a deterministic :class:`Report`.

    The sort key is (rule kind, from component, to component, first witness
    location, rule name, cycle path), so repeated runs over identical input
    produce identical reports regardless of evaluation order.
    """
    ordered = tuple(sorted(violations, key=lambda v: v.sort_key))
    return Report(
        violations=ordered,
        edges_checked=edges_checked,
        rules_evaluated=rules_evaluated,
        components_count=components_count,
    )


def build_report_for(
    graph: Graph, rule_set: RuleSet, violations: Iterable[Violation]
) -> Report:
    """Build a report with counts taken from *graph* and *rule_set*."""
    return build_report(
        violations,
        edges_checked=graph.edge_count,
        rules_evaluated=len(rule_set.rules) + (1 if rule_set.default_policy == "deny" else 0),
        components_count=len(graph.component_names()),
    )


def summary_line(report: Report) -> str:
    """One-line human-readable verdict."""
    if report.passed:
        return (
            f"✓ No violations found ({report.rules_evaluated} rules evaluated, "
            f"{report.edges_checked} edges checked)"
        )
    kinds = ", ".join(f"{kind}: {count}" for kind, count in report.violations_by_kind.items())
    return (
        f"✗ {report.violations_count} violations found ({kinds}; "
        f"{report.rules_evaluated} rules evaluated, {report.edges_checked} edges checked)"
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def violation_to_dict(v: Violation) -> dict[str, Any]:
    return {
        "rule_name": v.rule_name,
        "rule_type": v.rule_type,
        "severity": v.severity,
        "description": v.rule_description,
        "from": v.from_component,
        "to": v.to_component,
        "cycle": list(v.cycle) if v.cycle is not None else None,
        "message": v.message,
        "witnesses": [
            {
                "file": w.source_file,
                "line": w.source_line,
                "from_unit": w.from_unit,
                "to_unit": w.to_unit,
            }
            for w in v.witnesses
        ],
    }


def _violation_from_dict(idx: int, data: object) -> Violation:
    if not isinstance(data, dict):
        msg = f"Report violation at index {idx} must be a mapping"
        raise ConfigurationError(msg)
    try:
        witnesses = tuple(
            Witness(
                source_file=str(w["file"]),
                source_line=int(w["line"]),
                from_unit=str(w["from_unit"]),
                to_unit=str(w["to_unit"]),
            )
            for w in data.get("witnesses", [])
        )
        cycle_raw = data.get("cycle")
        return Violation(
            rule_name=str(data["rule_name"]),
            rule_description=str(data.get("description", "")),
            rule_type=str(data["rule_type"]),
            severity=str(data.get("severity", "error")),
            from_component=data.get("from"),
            to_component=data.get("to"),
            message=str(data.get("message", "")),
            witnesses=witnesses,
            cycle=tuple(str(c) for c in cycle_raw) if cycle_raw is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"Report violation at index {idx} is malformed: {exc}"
        raise ConfigurationError(msg) from exc


def report_from_dict(data: Mapping[str, Any]) -> Report:
    """Rebuild a :class:`Report` from :meth:`Report.to_dict` output."""
    if not isinstance(data, dict):
        msg = "Report must be a JSON object"
        raise ConfigurationError(msg)
    violations_raw = data.get("violations", [])
    if not isinstance(violations_raw, list):
        msg = "Report 'violations' must be a list"
        raise ConfigurationError(msg)
    summary = data.get("summary", {})
    if not isinstance(summary, dict):
        summary = {}
    try:
        edges_checked = int(summary.get("edges_checked", 0))
        rules_evaluated = int(summary.get("rules_evaluated", 0))
        components_count = int(summary.get("components", 0))
    except (TypeError, ValueError) as exc:
        msg = f"Report summary is malformed: {exc}"
        raise ConfigurationError(msg) from exc

    return build_report(
        (_violation_from_dict(i, v) for i, v in enumerate(violations_raw)),
        edges_checked=edges_checked,
        rules_evaluated=rules_evaluated,
        components_count=components_count,
    )


# ---------------------------------------------------------------------------
# Baseline comparison
# ---------------------------------------------------------------------------


def compare_reports(baseline: Report, current: Report) -> ReportDiff:
    """Compare two reports by violation identity.

    Identity is (rule name, rule kind, from, to) for edge violations and
    (rule name, rule kind, normalized members) for cycles; witnesses and
    messages may change without making a violation "new".
    """
    old_ids = {v.identity for v in baseline.violations}
    new_ids = {v.identity for v in current.violations}

    return ReportDiff(
        new=tuple(v for v in current.violations if v.identity not in old_ids),
        resolved=tuple(v for v in baseline.violations if v.identity not in new_ids),
        unchanged=tuple(v for v in current.violations if v.identity in old_ids),
    )
