"""Shared test fixtures for archguard."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


RULES_YML = """\
version: 1
default_policy: allow
no_circular_deps: true
components:
  - name: domain
    patterns: ["internal/domain/*"]
    isolate: true
  - name: application
    patterns: ["internal/application/*"]
    allowed_dependencies: [domain]
  - name: infrastructure
    patterns: ["internal/infrastructure/*"]
    allowed_dependencies: [domain, application]
rules:
  - name: domain-not-infra
    description: Domain must not import infrastructure
    deny: { from: domain, to: infrastructure }
"""

CLEAN_IMPORTS_YML = """\
units:
  - internal/domain/user
  - internal/application/service
  - internal/infrastructure/db
imports:
  - {from: internal/application/service, to: internal/domain/user, file: app/service.go, line: 3}
  - {from: internal/infrastructure/db, to: internal/domain/user, file: infra/db.go, line: 5}
  - {from: internal/domain/user, to: fmt, file: domain/user.go, line: 2}
external: ["fmt"]
"""

DIRTY_IMPORTS_YML = """\
units:
  - internal/domain/user
  - internal/application/service
  - internal/infrastructure/db
imports:
  - {from: internal/application/service, to: internal/domain/user, file: app/service.go, line: 3}
  - {from: internal/domain/user, to: internal/infrastructure/db, file: domain/user.go, line: 12}
  - {from: internal/infrastructure/db, to: internal/domain/user, file: infra/db.go, line: 5}
"""


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal project with rules and a clean import manifest."""
    config_dir = tmp_path / ".archguard"
    config_dir.mkdir()
    (config_dir / "rules.yml").write_text(RULES_YML)
    (config_dir / "imports.yml").write_text(CLEAN_IMPORTS_YML)
    return tmp_path


@pytest.fixture()
def dirty_project(tmp_project: Path) -> Path:
    """Project whose domain imports infrastructure (and so forms a cycle)."""
    (tmp_project / ".archguard" / "imports.yml").write_text(DIRTY_IMPORTS_YML)
    return tmp_project
