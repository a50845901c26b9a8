"""Component dependency graph: components, witnessed edges, and construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from archguard.errors import ConfigurationError, IngestionError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

UNCLASSIFIED = "unclassified"

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Component:
    """A named logical partition of the codebase (e.g. ``domain``).

    *patterns* are only consumed by the ingestion adapter; the graph itself
    identifies components by name.
    """

    name: str
    patterns: tuple[str, ...] = ()


@dataclass(frozen=True, order=True)
class Witness:
    """A concrete import occurrence proving that an edge exists."""

    source_file: str
    source_line: int
    from_unit: str
    to_unit: str

    @property
    def location(self) -> str:
        return f"{self.source_file}:{self.source_line}"


@dataclass(frozen=True)
class RawEdge:
    """A single import as reported by the ingestion adapter."""

    from_unit: str
    to_unit: str
    source_file: str
    source_line: int


@dataclass(frozen=True)
class Edge:
    """A directed dependency between two components.

    All raw imports between the same component pair collapse into one edge;
    *witnesses* keeps every distinct occurrence, sorted by location.
    """

    from_component: str
    to_component: str
    witnesses: tuple[Witness, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_component, self.to_component)

    @property
    def is_self_edge(self) -> bool:
        return self.from_component == self.to_component


@dataclass(frozen=True)
class Graph:
    """Immutable component graph built once per validation run.

    Use :func:`build_graph` to construct one.  Adjacency is exposed through
    read-only views; there are no mutation methods.
    """

    _components: Mapping[str, Component] = field(repr=False)
    _edges: Mapping[tuple[str, str], Edge] = field(repr=False)
    _adjacency: Mapping[str, tuple[Edge, ...]] = field(repr=False)

    def components(self) -> frozenset[Component]:
        return frozenset(self._components.values())

    def component_names(self) -> tuple[str, ...]:
        """Return component names in lexicographic order."""
        return tuple(sorted(self._components))

    def has_component(self, name: str) -> bool:
        return name in self._components

    def get_component(self, name: str) -> Component | None:
        return self._components.get(name)

    def out_edges(self, name: str) -> tuple[Edge, ...]:
        """Return the outgoing edges of *name*, ordered by target name.

        Raises ``KeyError`` when *name* is not a component of this graph.
        """
        if name not in self._components:
            msg = f"Unknown component '{name}'"
            raise KeyError(msg)
        return self._adjacency.get(name, ())

    def edge(self, from_component: str, to_component: str) -> Edge | None:
        return self._edges.get((from_component, to_component))

    def edges(self) -> tuple[Edge, ...]:
        """Return every edge ordered by ``(from, to)``."""
        return tuple(self._edges[key] for key in sorted(self._edges))

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def witness_count(self) -> int:
        return sum(len(e.witnesses) for e in self._edges.values())


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def _validate_raw_edge(idx: int, raw: RawEdge) -> None:
    """Reject raw edges with empty unit ids or a missing source location."""
    if not isinstance(raw.from_unit, str) or not raw.from_unit.strip():
        msg = f"Raw edge at index {idx}: 'from' unit must be a non-empty string"
        raise IngestionError(msg)
    if not isinstance(raw.to_unit, str) or not raw.to_unit.strip():
        msg = f"Raw edge at index {idx}: 'to' unit must be a non-empty string"
        raise IngestionError(msg)
    if not isinstance(raw.source_file, str) or not raw.source_file.strip():
        msg = f"Raw edge at index {idx}: missing source file"
        raise IngestionError(msg)
    line = raw.source_line
    if isinstance(line, bool) or not isinstance(line, int) or line < 1:
        msg = f"Raw edge at index {idx}: source line must be a positive integer, got {line!r}"
        raise IngestionError(msg)


def _resolve_unit(
    unit: str,
    unit_components: Mapping[str, str],
    known: Mapping[str, Component],
    *,
    strict: bool,
) -> str:
    """Return the component name owning *unit*."""
    name = unit_components.get(unit)
    if name is None:
        if strict:
            msg = f"Unit '{unit}' does not belong to any component (strict mode)"
            raise ConfigurationError(msg)
        return UNCLASSIFIED
    if name not in known:
        msg = f"Unit '{unit}' is mapped to unknown component '{name}'"
        raise ConfigurationError(msg)
    return name


def build_graph(
    components: Iterable[Component],
    raw_edges: Sequence[RawEdge],
    unit_components: Mapping[str, str],
    *,
    strict: bool = False,
) -> Graph:
    """Build an immutable :class:`Graph` from raw import edges.

    Parameters
    ----------
    components:
        Declared components.  Names must be unique and non-empty.
    raw_edges:
        Imports between units, each with a source location.
    unit_components:
        Final unit -> component name assignment from the ingestion adapter.
    strict:
        When *True*, a unit missing from *unit_components* raises
        :class:`ConfigurationError`.  Otherwise it is assigned to the implicit
        ``unclassified`` component.

    Raises
    ------
    IngestionError
        When a raw edge has an empty unit id or no usable source location.
    ConfigurationError
        On duplicate component names, units mapped to unknown components, or
        unmapped units in strict mode.
    """
    known: dict[str, Component] = {}
    for component in components:
        if not component.name or not component.name.strip():
            msg = "Component name must be a non-empty string"
            raise ConfigurationError(msg)
        if component.name in known:
            msg = f"Duplicate component name '{component.name}'"
            raise ConfigurationError(msg)
        known[component.name] = component

    grouped: dict[tuple[str, str], set[Witness]] = {}
    unclassified_units: set[str] = set()

    for idx, raw in enumerate(raw_edges):
        _validate_raw_edge(idx, raw)
        src = _resolve_unit(raw.from_unit, unit_components, known, strict=strict)
        dst = _resolve_unit(raw.to_unit, unit_components, known, strict=strict)
        if src == UNCLASSIFIED and raw.from_unit not in unit_components:
            unclassified_units.add(raw.from_unit)
        if dst == UNCLASSIFIED and raw.to_unit not in unit_components:
            unclassified_units.add(raw.to_unit)

        witness = Witness(
            source_file=raw.source_file,
            source_line=raw.source_line,
            from_unit=raw.from_unit,
            to_unit=raw.to_unit,
        )
        grouped.setdefault((src, dst), set()).add(witness)

    if unclassified_units and UNCLASSIFIED not in known:
        known[UNCLASSIFIED] = Component(name=UNCLASSIFIED)

    edges: dict[tuple[str, str], Edge] = {
        key: Edge(from_component=key[0], to_component=key[1], witnesses=tuple(sorted(ws)))
        for key, ws in grouped.items()
    }

    adjacency: dict[str, list[Edge]] = {}
    for key in sorted(edges):
        adjacency.setdefault(key[0], []).append(edges[key])

    logger.debug(
        "Built graph: %d components, %d raw edges collapsed into %d edges, %d unclassified units",
        len(known),
        len(raw_edges),
        len(edges),
        len(unclassified_units),
    )

    return Graph(
        _components=MappingProxyType(known),
        _edges=MappingProxyType(edges),
        _adjacency=MappingProxyType({k: tuple(v) for k, v in adjacency.items()}),
    )
