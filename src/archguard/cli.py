"""archguard CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from archguard import __version__
from archguard.errors import ArchGuardError, ConfigurationError
from archguard.graph.report import EXIT_CONFIG_ERROR

if TYPE_CHECKING:
    from archguard.graph.report import Report

_FORMAT_CHOICES = ["rich", "json", "porcelain"]


def _fail(exc: Exception) -> None:
    """Print a configuration/ingestion diagnostic and exit with code 2."""
    click.echo(f"Error: {exc}", err=True)
    sys.exit(EXIT_CONFIG_ERROR)


def _load_report(path: Path) -> Report:
    from archguard.graph.report import report_from_dict

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        msg = f"Cannot read report {path}: {exc}"
        raise ConfigurationError(msg) from exc
    return report_from_dict(data)


@click.group()
@click.version_option(version=__version__, prog_name="archguard")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """archguard - architecture boundary validator."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
_rules_option = click.option(
    "--rules",
    "rules_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Rules file (default: .archguard/rules.yml).",
)
_imports_option = click.option(
    "--imports",
    "imports_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Import manifest (default: .archguard/imports.yml).",
)


@main.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice(_FORMAT_CHOICES),
    default=None,
    help="Output format (default: rich if TTY, porcelain if piped).",
)
@click.option(
    "--strict/--no-strict",
    default=None,
    help="Reject units outside every component instead of marking them unclassified.",
)
@click.option(
    "--baseline",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Previous JSON report; summarize new and resolved violations.",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the JSON report to this file.",
)
@_rules_option
@_imports_option
@_project_option
def check(
    *,
    fmt: str | None,
    strict: bool | None,
    baseline: Path | None,
    output_path: Path | None,
    rules_path: Path | None,
    imports_path: Path | None,
    project: Path | None,
) -> None:
    """Validate the import graph against the architecture rules.

    Exit codes: 0 = no violations, 1 = violations found,
    2 = configuration or ingestion error.
    """
    from archguard.config import load_settings
    from archguard.graph.report import compare_reports
    from archguard.linter import FORMATTERS, format_json, lint

    project_root = project or Path.cwd()
    settings = load_settings(project_root)

    # Resolve output format: explicit flag > config > TTY detection.
    if fmt is None:
        fmt = settings.format or ("rich" if sys.stdout.isatty() else "porcelain")

    try:
        result = lint(
            project_root,
            rules_path=rules_path,
            imports_path=imports_path,
            strict=strict,
            settings=settings,
        )
        baseline_report = _load_report(baseline) if baseline is not None else None
    except ArchGuardError as exc:
        _fail(exc)
        return

    output = FORMATTERS[fmt](result)
    if output:
        click.echo(output)

    if output_path is not None:
        try:
            output_path.write_text(format_json(result) + "\n", encoding="utf-8")
        except OSError as exc:
            _fail(ConfigurationError(f"Cannot write report {output_path}: {exc}"))
            return

    if baseline_report is not None:
        diff = compare_reports(baseline_report, result.report)
        click.echo(
            f"Baseline: {len(diff.new)} new, {len(diff.resolved)} resolved, "
            f"{len(diff.unchanged)} unchanged",
            err=True,
        )

    sys.exit(result.report.exit_code)


@main.command()
@click.option(
    "--include-self-edges",
    is_flag=True,
    default=False,
    help="Report components that import themselves as length-1 cycles.",
)
@_rules_option
@_imports_option
@_project_option
def cycles(
    *,
    include_self_edges: bool,
    rules_path: Path | None,
    imports_path: Path | None,
    project: Path | None,
) -> None:
    """List dependency cycles between components."""
    from archguard.graph.cycles import find_cycles
    from archguard.linter import lint

    project_root = project or Path.cwd()
    try:
        result = lint(project_root, rules_path=rules_path, imports_path=imports_path)
    except ArchGuardError as exc:
        _fail(exc)
        return

    assert result.graph is not None
    found = find_cycles(result.graph, exclude_self_edges=not include_self_edges)
    if not found:
        click.echo("No cycles found.")
        return

    for cycle in found:
        click.echo(str(cycle))
    click.echo(f"{len(found)} cycle(s) found.")
    sys.exit(1)


@main.command()
@click.option("--focus", default=None, help="Only show edges touching this component.")
@_rules_option
@_imports_option
@_project_option
def graph(
    *,
    focus: str | None,
    rules_path: Path | None,
    imports_path: Path | None,
    project: Path | None,
) -> None:
    """Show the component graph with witness counts."""
    from rich.console import Console
    from rich.table import Table

    from archguard.linter import lint

    project_root = project or Path.cwd()
    try:
        result = lint(project_root, rules_path=rules_path, imports_path=imports_path)
    except ArchGuardError as exc:
        _fail(exc)
        return

    assert result.graph is not None
    if focus is not None and not result.graph.has_component(focus):
        _fail(ConfigurationError(f"Unknown component '{focus}'"))
        return

    table = Table(title="Component dependencies")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Imports", justify="right")
    table.add_column("First witness")

    for edge in result.graph.edges():
        if focus is not None and focus not in edge.key:
            continue
        first = edge.witnesses[0].location if edge.witnesses else ""
        table.add_row(edge.from_component, edge.to_component, str(len(edge.witnesses)), first)

    console = Console()
    console.print(table)


@main.command()
@click.argument("old", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("new", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def compare(*, old: Path, new: Path, as_json: bool) -> None:
    """Compare two JSON reports; exit 1 if NEW has violations OLD did not."""
    from rich.console import Console

    from archguard.graph.report import compare_reports, violation_to_dict

    try:
        diff = compare_reports(_load_report(old), _load_report(new))
    except ArchGuardError as exc:
        _fail(exc)
        return

    if as_json:
        click.echo(
            json.dumps(
                {
                    "new": [violation_to_dict(v) for v in diff.new],
                    "resolved": [violation_to_dict(v) for v in diff.resolved],
                    "unchanged": len(diff.unchanged),
                },
                indent=2,
                ensure_ascii=False,
            )
        )
    else:
        console = Console()
        for v in diff.new:
            console.print(f"  [red]+ {v.rule_name}[/red] ({v.rule_type}) {v.message}")
        for v in diff.resolved:
            console.print(f"  [green]- {v.rule_name}[/green] ({v.rule_type}) {v.message}")
        console.print(
            f"{len(diff.new)} new, {len(diff.resolved)} resolved, "
            f"{len(diff.unchanged)} unchanged"
        )

    if diff.has_new:
        sys.exit(1)
