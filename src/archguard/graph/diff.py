"""Graph delta: compare two component graphs edge by edge."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archguard.graph.model import Graph


@dataclass(frozen=True)
class EdgeChange:
    """A single edge change."""

    src: str
    dst: str
    change_type: str  # "added" | "removed" | "changed"
    old_witnesses: int = 0
    new_witnesses: int = 0


@dataclass(frozen=True)
class GraphDiff:
    """Complete diff result between two graphs."""

    added_components: tuple[str, ...]
    removed_components: tuple[str, ...]
    edges: tuple[EdgeChange, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.added_components or self.removed_components or self.edges)

    @property
    def components_changed(self) -> bool:
        return bool(self.added_components or self.removed_components)

    def changed_keys(self) -> frozenset[tuple[str, str]]:
        """Return the ``(src, dst)`` keys of every added, removed or changed edge."""
        return frozenset((e.src, e.dst) for e in self.edges)


def diff_graphs(old: Graph, new: Graph) -> GraphDiff:
    """Compare *old* and *new* and return the differences.

    An edge counts as ``changed`` when it exists in both graphs but its
    witnesses differ.
    """
    old_names = set(old.component_names())
    new_names = set(new.component_names())

    old_edges = {e.key: e for e in old.edges()}
    new_edges = {e.key: e for e in new.edges()}

    changes: list[EdgeChange] = []
    for key in sorted(old_edges.keys() | new_edges.keys()):
        before = old_edges.get(key)
        after = new_edges.get(key)
        if before is None and after is not None:
            changes.append(
                EdgeChange(
                    src=key[0],
                    dst=key[1],
                    change_type="added",
                    new_witnesses=len(after.witnesses),
                )
            )
        elif after is None and before is not None:
            changes.append(
                EdgeChange(
                    src=key[0],
                    dst=key[1],
                    change_type="removed",
                    old_witnesses=len(before.witnesses),
                )
            )
        elif before is not None and after is not None and before.witnesses != after.witnesses:
            changes.append(
                EdgeChange(
                    src=key[0],
                    dst=key[1],
                    change_type="changed",
                    old_witnesses=len(before.witnesses),
                    new_witnesses=len(after.witnesses),
                )
            )

    return GraphDiff(
        added_components=tuple(sorted(new_names - old_names)),
        removed_components=tuple(sorted(old_names - new_names)),
        edges=tuple(changes),
    )


def diff_to_dict(diff: GraphDiff) -> dict[str, object]:
    """Serialize a GraphDiff to a JSON-compatible dict."""
    return {
        "added_components": list(diff.added_components),
        "removed_components": list(diff.removed_components),
        "edges": [asdict(e) for e in diff.edges],
        "has_changes": diff.has_changes,
    }
