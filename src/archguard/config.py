"""Project configuration: ``.archguard/config.yml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = ".archguard"
CONFIG_FILENAME = "config.yml"
VALID_FORMATS: frozenset[str] = frozenset({"rich", "json", "porcelain"})


@dataclass(frozen=True)
class LintSettings:
    """Settings for ``archguard check``.

    Configurable via the ``lint`` section of ``.archguard/config.yml``.
    Paths are relative to the project root.
    """

    rules: str = f"{CONFIG_DIR}/rules.yml"
    imports: str = f"{CONFIG_DIR}/imports.yml"
    format: str | None = None  # None = rich on a TTY, porcelain otherwise
    strict: bool | None = None  # None = use the rules file

    def rules_path(self, project_root: Path) -> Path:
        return _resolve(project_root, self.rules)

    def imports_path(self, project_root: Path) -> Path:
        return _resolve(project_root, self.imports)


def _resolve(project_root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else project_root / path


def load_settings(project_root: Path) -> LintSettings:
    """Load lint settings from ``.archguard/config.yml``.

    Falls back to defaults for missing keys, a missing file, or a file that
    cannot be read.
    """
    config_path = project_root / CONFIG_DIR / CONFIG_FILENAME
    if not config_path.is_file():
        return LintSettings()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default settings", config_path)
        return LintSettings()

    if not isinstance(data, dict):
        return LintSettings()

    section = data.get("lint")
    if not isinstance(section, dict):
        return LintSettings()

    settings = LintSettings()
    if isinstance(section.get("rules"), str):
        settings = replace(settings, rules=section["rules"])
    if isinstance(section.get("imports"), str):
        settings = replace(settings, imports=section["imports"])

    fmt = section.get("format")
    if fmt is not None:
        if fmt in VALID_FORMATS:
            settings = replace(settings, format=fmt)
        else:
            logger.warning("Ignoring unknown output format '%s' in %s", fmt, config_path)

    strict = section.get("strict")
    if isinstance(strict, bool):
        settings = replace(settings, strict=strict)

    return settings
