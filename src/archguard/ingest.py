"""Ingestion adapter: load an import manifest and map units to components.

The manifest is produced by a language-specific extractor (not part of this
package) and lists compilation units plus their direct imports::

    units:
      - id: internal/domain/user
        path: internal/domain/user.go
    imports:
      - {from: internal/domain/user, to: internal/infrastructure/db,
         file: internal/domain/user.go, line: 12}
    external: ["fmt", "github.com/*"]

Units are assigned to components by glob patterns, first match wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import TYPE_CHECKING, Any

import yaml

from archguard.errors import IngestionError
from archguard.graph.model import RawEdge

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from archguard.graph.model import Component
    from archguard.graph.rule_set import RuleSet

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Unit:
    """A compilation unit (module, package, file) named in the manifest."""

    id: str
    path: str


@dataclass
class Manifest:
    """Decoded import manifest."""

    units: list[Unit] = field(default_factory=list)
    imports: list[RawEdge] = field(default_factory=list)
    external: list[str] = field(default_factory=list)


@dataclass
class IngestionResult:
    """Everything :func:`archguard.graph.model.build_graph` needs."""

    components: tuple[Component, ...]
    raw_edges: list[RawEdge] = field(default_factory=list)
    unit_components: dict[str, str] = field(default_factory=dict)
    unmapped: list[str] = field(default_factory=list)
    external_dropped: int = 0


# ---------------------------------------------------------------------------
# Manifest parsing
# ---------------------------------------------------------------------------


def _parse_unit(idx: int, data: object) -> Unit:
    if isinstance(data, str):
        if not data.strip():
            msg = f"Manifest unit at index {idx} must be a non-empty string"
            raise IngestionError(msg)
        return Unit(id=data, path=data)
    if not isinstance(data, dict):
        msg = f"Manifest unit at index {idx} must be a string or a mapping"
        raise IngestionError(msg)

    unit_id = data.get("id")
    if not isinstance(unit_id, str) or not unit_id.strip():
        msg = f"Manifest unit at index {idx} missing required 'id' field"
        raise IngestionError(msg)
    path = data.get("path", unit_id)
    if not isinstance(path, str) or not path.strip():
        msg = f"Manifest unit '{unit_id}': 'path' must be a non-empty string"
        raise IngestionError(msg)
    return Unit(id=unit_id, path=path)


def _parse_import(idx: int, data: object) -> RawEdge:
    if not isinstance(data, dict):
        msg = f"Manifest import at index {idx} must be a mapping"
        raise IngestionError(msg)

    line = data.get("line")
    if isinstance(line, str) and line.isdigit():
        line = int(line)

    # Value checks (empty ids, missing location) happen in build_graph.
    return RawEdge(
        from_unit=data.get("from", ""),
        to_unit=data.get("to", ""),
        source_file=data.get("file", ""),
        source_line=line,  # type: ignore[arg-type]
    )


def parse_manifest(data: object) -> Manifest:
    """Build a :class:`Manifest` from decoded YAML/JSON data."""
    if data is None:
        return Manifest()
    if not isinstance(data, dict):
        msg = "Import manifest must be a mapping"
        raise IngestionError(msg)

    sections: dict[str, list[Any]] = {}
    for key in ("units", "imports", "external"):
        value = data.get(key)
        if value is None:
            value = []
        if not isinstance(value, list):
            msg = f"Import manifest: '{key}' must be a list"
            raise IngestionError(msg)
        sections[key] = value
    units_raw = sections["units"]
    imports_raw = sections["imports"]
    external_raw = sections["external"]

    units = [_parse_unit(i, u) for i, u in enumerate(units_raw)]
    seen: set[str] = set()
    for unit in units:
        if unit.id in seen:
            msg = f"Import manifest: duplicate unit id '{unit.id}'"
            raise IngestionError(msg)
        seen.add(unit.id)

    return Manifest(
        units=units,
        imports=[_parse_import(i, imp) for i, imp in enumerate(imports_raw)],
        external=[str(p) for p in external_raw],
    )


def load_manifest(path: Path) -> Manifest:
    """Read an import manifest from a ``.json`` or YAML file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read import manifest {path}: {exc}"
        raise IngestionError(msg) from exc

    try:
        data: Any = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        msg = f"Invalid import manifest {path}: {exc}"
        raise IngestionError(msg) from exc

    return parse_manifest(data)


# ---------------------------------------------------------------------------
# Unit -> component mapping
# ---------------------------------------------------------------------------


def classify_unit(unit: Unit, components: Iterable[Component]) -> str | None:
    """Return the first component whose patterns match the unit.

    Both the unit id and its path are tried against each pattern.
    """
    for component in components:
        for pattern in component.patterns:
            if fnmatch(unit.id, pattern) or fnmatch(unit.path, pattern):
                return component.name
    return None


def map_units(units: Iterable[Unit], components: Sequence[Component]) -> dict[str, str]:
    """Map every classifiable unit id to its component name."""
    mapping: dict[str, str] = {}
    for unit in units:
        name = classify_unit(unit, components)
        if name is not None:
            mapping[unit.id] = name
    return mapping


def _is_external(unit_id: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch(unit_id, p) for p in patterns)


def ingest(manifest: Manifest, rule_set: RuleSet) -> IngestionResult:
    """Prepare graph input from *manifest* using the components of *rule_set*.

    Imports whose target matches an ``external`` pattern (standard library,
    third-party packages) are dropped.  Targets that are not listed as units
    are classified by treating their id as the path.
    """
    components = rule_set.components
    units = {u.id: u for u in manifest.units}

    raw_edges: list[RawEdge] = []
    dropped = 0
    for raw in manifest.imports:
        if isinstance(raw.to_unit, str) and _is_external(raw.to_unit, manifest.external):
            dropped += 1
            continue
        raw_edges.append(raw)
        for unit_id in (raw.from_unit, raw.to_unit):
            if isinstance(unit_id, str) and unit_id and unit_id not in units:
                units[unit_id] = Unit(id=unit_id, path=unit_id)

    unit_components = map_units(units.values(), components)
    unmapped = sorted(uid for uid in units if uid not in unit_components)

    logger.debug(
        "Ingested %d units, %d imports (%d external dropped), %d unmapped",
        len(units),
        len(raw_edges),
        dropped,
        len(unmapped),
    )

    return IngestionResult(
        components=components,
        raw_edges=raw_edges,
        unit_components=unit_components,
        unmapped=unmapped,
        external_dropped=dropped,
    )
