"""Tests for the import manifest loader and unit classification."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from archguard.errors import IngestionError
from archguard.graph.model import Component
from archguard.graph.rule_set import RuleSet
from archguard.ingest import (
    Manifest,
    Unit,
    classify_unit,
    ingest,
    load_manifest,
    map_units,
    parse_manifest,
)

if TYPE_CHECKING:
    from pathlib import Path

COMPONENTS = (
    Component(name="domain", patterns=("internal/domain/*",)),
    Component(name="app", patterns=("internal/app/*", "cmd/*")),
    Component(name="catchall", patterns=("internal/*",)),
)


# ---------------------------------------------------------------------------
# TestParseManifest
# ---------------------------------------------------------------------------


class TestParseManifest:
    def test_units_as_strings_and_mappings(self) -> None:
        manifest = parse_manifest(
            {
                "units": ["internal/domain/user", {"id": "app", "path": "internal/app/main.go"}],
                "imports": [
                    {"from": "app", "to": "internal/domain/user", "file": "m.go", "line": 4}
                ],
                "external": ["fmt"],
            }
        )
        assert manifest.units == [
            Unit(id="internal/domain/user", path="internal/domain/user"),
            Unit(id="app", path="internal/app/main.go"),
        ]
        assert manifest.imports[0].source_line == 4
        assert manifest.external == ["fmt"]

    def test_numeric_string_line(self) -> None:
        manifest = parse_manifest(
            {"imports": [{"from": "a", "to": "b", "file": "a.go", "line": "7"}]}
        )
        assert manifest.imports[0].source_line == 7

    def test_empty_document(self) -> None:
        assert parse_manifest(None) == Manifest()

    @pytest.mark.parametrize(
        ("data", "message"),
        [
            ([], "must be a mapping"),
            ({"units": "a"}, "'units' must be a list"),
            ({"units": ""}, "'units' must be a list"),
            ({"imports": {}}, "'imports' must be a list"),
            ({"external": 0}, "'external' must be a list"),
            ({"units": [""]}, "non-empty string"),
            ({"units": [3]}, "string or a mapping"),
            ({"units": [{"path": "x"}]}, "'id'"),
            ({"units": ["a", "a"]}, "duplicate unit id 'a'"),
            ({"imports": ["a->b"]}, "import at index 0 must be a mapping"),
        ],
    )
    def test_malformed(self, data: object, message: str) -> None:
        with pytest.raises(IngestionError, match=message):
            parse_manifest(data)


# ---------------------------------------------------------------------------
# TestLoadManifest
# ---------------------------------------------------------------------------


class TestLoadManifest:
    def test_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "imports.yml"
        path.write_text("units: [a, b]\nimports:\n  - {from: a, to: b, file: a.go, line: 1}\n")
        manifest = load_manifest(path)
        assert [u.id for u in manifest.units] == ["a", "b"]
        assert len(manifest.imports) == 1

    def test_json(self, tmp_path: Path) -> None:
        path = tmp_path / "imports.json"
        path.write_text(json.dumps({"units": ["a"], "imports": []}))
        assert load_manifest(path).units == [Unit(id="a", path="a")]

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "imports.json"
        path.write_text("{nope")
        with pytest.raises(IngestionError, match="Invalid import manifest"):
            load_manifest(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(IngestionError, match="Cannot read import manifest"):
            load_manifest(tmp_path / "absent.yml")


# ---------------------------------------------------------------------------
# TestClassify
# ---------------------------------------------------------------------------


class TestClassify:
    def test_first_match_wins(self) -> None:
        assert classify_unit(Unit("internal/domain/user", "x"), COMPONENTS) == "domain"
        assert classify_unit(Unit("internal/other", "x"), COMPONENTS) == "catchall"

    def test_path_also_matched(self) -> None:
        assert classify_unit(Unit("main", "cmd/main.go"), COMPONENTS) == "app"

    def test_no_match(self) -> None:
        assert classify_unit(Unit("vendor/x", "vendor/x"), COMPONENTS) is None

    def test_map_units_skips_unmatched(self) -> None:
        units = [Unit("internal/app/svc", "s"), Unit("vendor/x", "v")]
        assert map_units(units, COMPONENTS) == {"internal/app/svc": "app"}


# ---------------------------------------------------------------------------
# TestIngest
# ---------------------------------------------------------------------------


class TestIngest:
    def test_external_imports_dropped(self) -> None:
        manifest = parse_manifest(
            {
                "units": ["internal/app/svc"],
                "imports": [
                    {"from": "internal/app/svc", "to": "fmt", "file": "s.go", "line": 1},
                    {"from": "internal/app/svc", "to": "github.com/x/y", "file": "s.go", "line": 2},
                    {
                        "from": "internal/app/svc",
                        "to": "internal/domain/u",
                        "file": "s.go",
                        "line": 3,
                    },
                ],
                "external": ["fmt", "github.com/*"],
            }
        )
        result = ingest(manifest, RuleSet(components=COMPONENTS))
        assert result.external_dropped == 2
        assert len(result.raw_edges) == 1
        assert result.unit_components == {
            "internal/app/svc": "app",
            "internal/domain/u": "domain",
        }
        assert result.unmapped == []
        assert result.components == COMPONENTS

    def test_unmapped_units_listed(self) -> None:
        manifest = parse_manifest(
            {
                "units": ["internal/app/svc", "tools/gen"],
                "imports": [
                    {"from": "internal/app/svc", "to": "vendor/z", "file": "s.go", "line": 1}
                ],
            }
        )
        result = ingest(manifest, RuleSet(components=COMPONENTS))
        assert result.unmapped == ["tools/gen", "vendor/z"]
