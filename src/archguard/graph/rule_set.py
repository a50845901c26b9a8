"""Declarative architecture rules and the ``rules.yml`` loader."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

import yaml

from archguard.errors import ConfigurationError
from archguard.graph.model import Component

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_RULE_SEVERITIES: frozenset[str] = frozenset({"error", "warn"})
VALID_DEFAULT_POLICIES: frozenset[str] = frozenset({"allow", "deny"})
SUPPORTED_SCHEMA_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_POLICY_RULE_NAME = "default-policy"
NO_CIRCULAR_DEPS_RULE_NAME = "no-circular-deps"

# ---------------------------------------------------------------------------
# Rule variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllowRule:
    """Permit edges from one component to another."""

    kind: ClassVar[str] = "allow"

    name: str
    from_component: str
    to_component: str
    description: str = ""
    severity: str = "error"  # "error" | "warn"

    def matches(self, from_component: str, to_component: str) -> bool:
        return self.from_component == from_component and self.to_component == to_component

    def referenced_components(self) -> tuple[str, ...]:
        return (self.from_component, self.to_component)


@dataclass(frozen=True)
class DenyRule:
    """Forbid edges from one component to another (direction matters)."""

    kind: ClassVar[str] = "deny"

    name: str
    from_component: str
    to_component: str
    description: str = ""
    severity: str = "error"

    def matches(self, from_component: str, to_component: str) -> bool:
        return self.from_component == from_component and self.to_component == to_component

    def referenced_components(self) -> tuple[str, ...]:
        return (self.from_component, self.to_component)


@dataclass(frozen=True)
class IsolateRule:
    """A component may only depend on the components in *allowed*.

    Used for domain purity: ``IsolateRule("domain-purity", "domain")`` makes
    every edge out of ``domain`` a violation.
    """

    kind: ClassVar[str] = "isolate"

    name: str
    component: str
    allowed: tuple[str, ...] = ()
    description: str = ""
    severity: str = "error"

    def referenced_components(self) -> tuple[str, ...]:
        return (self.component, *self.allowed)


@dataclass(frozen=True)
class NoCyclesRule:
    """The component graph must be acyclic."""

    kind: ClassVar[str] = "no_cycles"

    name: str
    exclude_self_edges: bool = True
    description: str = ""
    severity: str = "error"

    def referenced_components(self) -> tuple[str, ...]:
        return ()


Rule = AllowRule | DenyRule | IsolateRule | NoCyclesRule


@dataclass(frozen=True)
class RuleSet:
    """An ordered set of rules plus the policy for edges no rule allows.

    With ``default_policy="deny"`` every non-self edge that no
    :class:`AllowRule` matches is a violation.
    """

    rules: tuple[Rule, ...] = ()
    default_policy: str = "allow"  # "allow" | "deny"
    components: tuple[Component, ...] = ()
    strict: bool = False

    def __post_init__(self) -> None:
        if self.default_policy not in VALID_DEFAULT_POLICIES:
            msg = (
                f"Invalid default policy '{self.default_policy}', "
                f"must be one of {sorted(VALID_DEFAULT_POLICIES)}"
            )
            raise ConfigurationError(msg)

    @property
    def allow_rules(self) -> tuple[AllowRule, ...]:
        return tuple(r for r in self.rules if isinstance(r, AllowRule))

    def is_allowed(self, from_component: str, to_component: str) -> bool:
        """Return True if any allow rule matches the edge."""
        return any(r.matches(from_component, to_component) for r in self.allow_rules)

    def component_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.components)


# ---------------------------------------------------------------------------
# YAML parsing
# ---------------------------------------------------------------------------


def _require_str(value: object, context: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        msg = f"{context} must be a non-empty string"
        raise ConfigurationError(msg)
    return value


def _str_list(value: object, context: str) -> tuple[str, ...]:
    """Accept a string or a list of strings and return a tuple."""
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list):
        msg = f"{context} must be a string or a list of strings"
        raise ConfigurationError(msg)
    return tuple(_require_str(item, f"{context}[{i}]") for i, item in enumerate(value))


def _parse_edge_block(name: str, key: str, data: object) -> tuple[str, str]:
    """Parse ``{from: X, to: Y}`` for allow/deny rules."""
    if not isinstance(data, dict):
        msg = f"Rule '{name}': '{key}' must be a mapping"
        raise ConfigurationError(msg)
    src = _require_str(data.get("from"), f"Rule '{name}': {key}.from")
    dst = _require_str(data.get("to"), f"Rule '{name}': {key}.to")
    return src, dst


def _parse_isolate_rule(
    name: str, description: str, data: object, *, severity: str
) -> IsolateRule:
    """Parse the 'isolate' block of a rule.

    Accepts either the short form ``isolate: domain`` or the mapping form
    ``isolate: {component: domain, allow: [shared]}``.
    """
    if isinstance(data, str):
        component = _require_str(data, f"Rule '{name}': isolate")
        allowed: tuple[str, ...] = ()
    elif isinstance(data, dict):
        component = _require_str(data.get("component"), f"Rule '{name}': isolate.component")
        allowed = _str_list(data.get("allow"), f"Rule '{name}': isolate.allow")
    else:
        msg = f"Rule '{name}': 'isolate' must be a component name or a mapping"
        raise ConfigurationError(msg)

    return IsolateRule(
        name=name,
        component=component,
        allowed=allowed,
        description=description,
        severity=severity,
    )


def _parse_cycle_rule(
    name: str, description: str, data: object, *, severity: str
) -> NoCyclesRule:
    """Parse the 'forbid_cycles' block (``true`` or a mapping)."""
    if data is True or data is None:
        return NoCyclesRule(name=name, description=description, severity=severity)
    if not isinstance(data, dict):
        msg = f"Rule '{name}': 'forbid_cycles' must be true or a mapping"
        raise ConfigurationError(msg)

    exclude_raw = data.get("exclude_self_edges", True)
    if not isinstance(exclude_raw, bool):
        msg = f"Rule '{name}': forbid_cycles.exclude_self_edges must be a boolean"
        raise ConfigurationError(msg)

    return NoCyclesRule(
        name=name,
        exclude_self_edges=exclude_raw,
        description=description,
        severity=severity,
    )


_RULE_TYPE_KEYS: tuple[str, ...] = ("allow", "deny", "isolate", "forbid_cycles")


def _parse_rule(idx: int, rule_data: object, seen_names: set[str]) -> Rule:
    if not isinstance(rule_data, dict):
        msg = f"rules.yml: rule at index {idx} must be a mapping"
        raise ConfigurationError(msg)

    name = rule_data.get("name")
    if name is None or not isinstance(name, str) or not name.strip():
        msg = f"rules.yml: rule at index {idx} missing required 'name' field"
        raise ConfigurationError(msg)

    if name in seen_names:
        msg = f"rules.yml: Duplicate rule name '{name}'"
        raise ConfigurationError(msg)
    seen_names.add(name)

    description = str(rule_data.get("description", ""))

    severity = str(rule_data.get("severity", "error"))
    if severity not in VALID_RULE_SEVERITIES:
        msg = (
            f"rules.yml: rule '{name}' has invalid severity '{severity}', "
            f"must be one of {sorted(VALID_RULE_SEVERITIES)}"
        )
        raise ConfigurationError(msg)

    present = [key for key in _RULE_TYPE_KEYS if key in rule_data]
    if len(present) != 1:
        msg = (
            f"rules.yml: rule '{name}' must have exactly one of "
            f"'allow', 'deny', 'isolate', or 'forbid_cycles'"
        )
        raise ConfigurationError(msg)

    rule_type = present[0]
    if rule_type == "allow":
        src, dst = _parse_edge_block(name, "allow", rule_data["allow"])
        return AllowRule(
            name=name,
            from_component=src,
            to_component=dst,
            description=description,
            severity=severity,
        )
    if rule_type == "deny":
        src, dst = _parse_edge_block(name, "deny", rule_data["deny"])
        return DenyRule(
            name=name,
            from_component=src,
            to_component=dst,
            description=description,
            severity=severity,
        )
    if rule_type == "isolate":
        return _parse_isolate_rule(name, description, rule_data["isolate"], severity=severity)
    return _parse_cycle_rule(name, description, rule_data["forbid_cycles"], severity=severity)


def _parse_component(
    idx: int, data: object
) -> tuple[Component, tuple[str, ...], bool]:
    """Parse one entry of the ``components`` block.

    Returns the component, its allowed dependencies, and its isolate flag.
    """
    if not isinstance(data, dict):
        msg = f"rules.yml: component at index {idx} must be a mapping"
        raise ConfigurationError(msg)

    name = _require_str(data.get("name"), f"rules.yml: component at index {idx} 'name'")
    patterns = _str_list(data.get("patterns"), f"Component '{name}': patterns")

    allowed_raw = data.get("allowed_dependencies", data.get("allowed-dependencies"))
    allowed = _str_list(allowed_raw, f"Component '{name}': allowed_dependencies")

    isolate = data.get("isolate", False)
    if not isinstance(isolate, bool):
        msg = f"Component '{name}': 'isolate' must be a boolean"
        raise ConfigurationError(msg)

    return Component(name=name, patterns=patterns), allowed, isolate


def parse_rules(data: object) -> RuleSet:
    """Build a :class:`RuleSet` from already-decoded rules data.

    Component blocks expand into rules first (allow rules for each
    ``allowed_dependencies`` entry, then an isolate rule when requested),
    followed by the explicit ``rules`` list and, last, the global
    ``no_circular_deps`` flag.
    """
    if not isinstance(data, dict):
        msg = "rules.yml must be a YAML mapping"
        raise ConfigurationError(msg)

    version = data.get("version")
    if version is None:
        msg = "rules.yml: missing required 'version' field"
        raise ConfigurationError(msg)
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        expected = sorted(SUPPORTED_SCHEMA_VERSIONS)
        msg = f"rules.yml: unsupported version {version}, expected one of {expected}"
        raise ConfigurationError(msg)

    default_policy = str(data.get("default_policy", data.get("default-policy", "allow")))
    if default_policy not in VALID_DEFAULT_POLICIES:
        msg = (
            f"rules.yml: invalid default_policy '{default_policy}', "
            f"must be one of {sorted(VALID_DEFAULT_POLICIES)}"
        )
        raise ConfigurationError(msg)

    strict = data.get("strict", False)
    if not isinstance(strict, bool):
        msg = "rules.yml: 'strict' must be a boolean"
        raise ConfigurationError(msg)

    components_data = data.get("components")
    if components_data is None:
        components_data = []
    if not isinstance(components_data, list):
        msg = "rules.yml: 'components' must be a list"
        raise ConfigurationError(msg)

    rules_data = data.get("rules")
    if rules_data is None:
        rules_data = []
    if not isinstance(rules_data, list):
        msg = "rules.yml: 'rules' must be a list"
        raise ConfigurationError(msg)

    components: list[Component] = []
    component_names: set[str] = set()
    seen_names: set[str] = set()
    rules: list[Rule] = []

    for idx, component_data in enumerate(components_data):
        component, allowed, isolate = _parse_component(idx, component_data)
        if component.name in component_names:
            msg = f"rules.yml: Duplicate component name '{component.name}'"
            raise ConfigurationError(msg)
        component_names.add(component.name)
        components.append(component)

        for dep in allowed:
            rule_name = f"{component.name}-allows-{dep}"
            seen_names.add(rule_name)
            rules.append(
                AllowRule(
                    name=rule_name,
                    from_component=component.name,
                    to_component=dep,
                    description=f"{component.name} may depend on {dep}",
                )
            )
        if isolate:
            rule_name = f"{component.name}-isolation"
            seen_names.add(rule_name)
            rules.append(
                IsolateRule(
                    name=rule_name,
                    component=component.name,
                    allowed=allowed,
                    description=f"{component.name} may only depend on its allowed dependencies",
                )
            )

    for idx, rule_data in enumerate(rules_data):
        rules.append(_parse_rule(idx, rule_data, seen_names))

    no_cycles = data.get("no_circular_deps", data.get("no-circular-deps", False))
    if not isinstance(no_cycles, bool):
        msg = "rules.yml: 'no_circular_deps' must be a boolean"
        raise ConfigurationError(msg)
    existing = next((r for r in rules if r.name == NO_CIRCULAR_DEPS_RULE_NAME), None)
    if no_cycles and existing is not None and not isinstance(existing, NoCyclesRule):
        msg = (
            f"rules.yml: Duplicate rule name '{NO_CIRCULAR_DEPS_RULE_NAME}' "
            f"(reserved by 'no_circular_deps')"
        )
        raise ConfigurationError(msg)
    if no_cycles and existing is None:
        rules.append(
            NoCyclesRule(
                name=NO_CIRCULAR_DEPS_RULE_NAME,
                description="Components must not form circular dependencies",
            )
        )

    return RuleSet(
        rules=tuple(rules),
        default_policy=default_policy,
        components=tuple(components),
        strict=strict,
    )


def load_rules(rules_path: Path) -> RuleSet:
    """Parse ``rules.yml`` and return a validated :class:`RuleSet`.

    Raises :class:`ConfigurationError` on unreadable files and schema errors.
    """
    try:
        with rules_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"Cannot read rules file {rules_path}: {exc}"
        raise ConfigurationError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {rules_path}: {exc}"
        raise ConfigurationError(msg) from exc

    return parse_rules(data)
