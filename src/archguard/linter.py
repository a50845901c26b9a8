"""Linter orchestrator: load rules, ingest imports, evaluate, format results."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from archguard.config import LintSettings, load_settings
from archguard.errors import ConfigurationError
from archguard.graph.model import Graph, build_graph
from archguard.graph.report import Report, build_report_for, summary_line
from archguard.graph.rule_engine import evaluate
from archguard.graph.rule_set import load_rules
from archguard.ingest import Manifest, ingest, load_manifest

if TYPE_CHECKING:
    from pathlib import Path

    from archguard.graph.rule_set import RuleSet

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class LintResult:
    """Result of a lint run."""

    report: Report = field(default_factory=Report)
    graph: Graph | None = None
    units_scanned: int = 0
    imports_ingested: int = 0
    external_dropped: int = 0
    unmapped_units: list[str] = field(default_factory=list)
    elapsed_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return self.report.passed


# ---------------------------------------------------------------------------
# Main entry points
# ---------------------------------------------------------------------------


def validate_manifest(
    manifest: Manifest, rule_set: RuleSet, *, strict: bool | None = None
) -> LintResult:
    """Run ingestion, graph construction, evaluation and reporting in memory.

    *strict* overrides the rule set's own ``strict`` flag when not *None*.
    """
    start = time.monotonic()
    effective_strict = rule_set.strict if strict is None else strict

    ingested = ingest(manifest, rule_set)
    graph = build_graph(
        ingested.components,
        ingested.raw_edges,
        ingested.unit_components,
        strict=effective_strict,
    )
    violations = evaluate(graph, rule_set)
    report = build_report_for(graph, rule_set, violations)

    elapsed = (time.monotonic() - start) * 1000
    logger.info(
        "Checked %d edges against %d rules: %d violation(s) in %.1f ms",
        report.edges_checked,
        report.rules_evaluated,
        report.violations_count,
        elapsed,
    )

    return LintResult(
        report=report,
        graph=graph,
        units_scanned=len(ingested.unit_components) + len(ingested.unmapped),
        imports_ingested=len(ingested.raw_edges),
        external_dropped=ingested.external_dropped,
        unmapped_units=ingested.unmapped,
        elapsed_ms=elapsed,
    )


def lint(
    project_root: Path,
    *,
    rules_path: Path | None = None,
    imports_path: Path | None = None,
    strict: bool | None = None,
    settings: LintSettings | None = None,
) -> LintResult:
    """Run the lint process: load config, rules and imports, then validate.

    Parameters
    ----------
    project_root:
        Root of the project (where ``.archguard/`` lives).
    rules_path:
        Optional explicit path to ``rules.yml``; defaults to the configured
        location.
    imports_path:
        Optional explicit path to the import manifest; defaults to the
        configured location.
    strict:
        Overrides both the config file and the rules file when not *None*.

    Raises
    ------
    ConfigurationError
        When the rules file is missing or invalid, or a rule references an
        unknown component.
    IngestionError
        When the import manifest is missing or malformed.
    """
    if settings is None:
        settings = load_settings(project_root)

    if rules_path is None:
        rules_path = settings.rules_path(project_root)
    if imports_path is None:
        imports_path = settings.imports_path(project_root)
    if strict is None:
        strict = settings.strict

    if not rules_path.is_file():
        msg = f"Rules file not found: {rules_path}"
        raise ConfigurationError(msg)

    logger.debug("Loading rules from %s", rules_path)
    rule_set = load_rules(rules_path)

    logger.debug("Loading import manifest from %s", imports_path)
    manifest = load_manifest(imports_path)

    return validate_manifest(manifest, rule_set, strict=strict)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_rich(result: LintResult) -> str:
    """Format a LintResult as human-readable text, grouped by rule kind.

    Example output with violations::

        Components: 4, edges: 6
        Units: 12 scanned, 30 imports (5 external dropped)

        deny (1)
          ✗ domain-not-infra [error]
            Domain must not import infrastructure
            internal/domain/user.go:12 → Dependency 'domain' → 'infrastructure' ...

        ✗ 1 violations found (deny: 1; 3 rules evaluated, 6 edges checked)
    """
    report = result.report
    lines: list[str] = []

    lines.append(f"Components: {report.components_count}, edges: {report.edges_checked}")
    lines.append(
        f"Units: {result.units_scanned} scanned, {result.imports_ingested} imports "
        f"({result.external_dropped} external dropped)"
    )
    if result.unmapped_units:
        lines.append(f"Unclassified units: {len(result.unmapped_units)}")
    lines.append("")

    for kind, violations in report.grouped_by_kind().items():
        lines.append(f"{kind} ({len(violations)})")
        for v in violations:
            lines.append(f"  ✗ {v.rule_name} [{v.severity}]")
            if v.rule_description:
                lines.append(f"    {v.rule_description}")
            if v.file_path is not None:
                lines.append(f"    {v.file_path}:{v.line_number} → {v.message}")
            else:
                lines.append(f"    {v.message}")
            for w in v.witnesses[1:]:
                lines.append(f"      also {w.location} ({w.from_unit} → {w.to_unit})")
        lines.append("")

    elapsed_s = result.elapsed_ms / 1000
    lines.append(f"{summary_line(report)} in {elapsed_s:.1f}s")
    return "\n".join(lines)


def format_json(result: LintResult) -> str:
    """Format a LintResult as structured JSON.

    Timing is deliberately left out so that identical input produces
    byte-identical output.
    """
    output = result.report.to_dict()
    output["ingestion"] = {
        "units_scanned": result.units_scanned,
        "imports_ingested": result.imports_ingested,
        "external_dropped": result.external_dropped,
        "unmapped_units": list(result.unmapped_units),
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


def format_porcelain(result: LintResult) -> str:
    """Format a LintResult as machine-readable one-line-per-violation output.

    Format: ``rule_name:rule_type:file_path:line:from:to``

    Empty fields are represented as empty strings.  Returns an empty string
    when there are no violations.
    """
    lines: list[str] = []
    for v in result.report.violations:
        file_path = v.file_path if v.file_path is not None else ""
        line_number = str(v.line_number) if v.line_number is not None else ""
        src = v.from_component or ""
        dst = v.to_component or ""
        lines.append(f"{v.rule_name}:{v.rule_type}:{file_path}:{line_number}:{src}:{dst}")
    return "\n".join(lines)


FORMATTERS = {
    "rich": format_rich,
    "json": format_json,
    "porcelain": format_porcelain,
}
