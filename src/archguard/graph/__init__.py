"""Graph domain: component graph, rules, cycle detection, evaluation, reports."""

from archguard.graph.cycles import Cycle, find_cycles, has_cycles
from archguard.graph.diff import EdgeChange, GraphDiff, diff_graphs, diff_to_dict
from archguard.graph.model import (
    UNCLASSIFIED,
    Component,
    Edge,
    Graph,
    RawEdge,
    Witness,
    build_graph,
)
from archguard.graph.report import (
    Report,
    ReportDiff,
    build_report,
    build_report_for,
    compare_reports,
    report_from_dict,
    summary_line,
)
from archguard.graph.rule_engine import (
    Violation,
    evaluate,
    evaluate_incremental,
    validate_rule_set,
)
from archguard.graph.rule_set import (
    AllowRule,
    DenyRule,
    IsolateRule,
    NoCyclesRule,
    Rule,
    RuleSet,
    load_rules,
    parse_rules,
)

__all__ = [
    "UNCLASSIFIED",
    "AllowRule",
    "Component",
    "Cycle",
    "DenyRule",
    "Edge",
    "EdgeChange",
    "Graph",
    "GraphDiff",
    "IsolateRule",
    "NoCyclesRule",
    "RawEdge",
    "Report",
    "ReportDiff",
    "Rule",
    "RuleSet",
    "Violation",
    "Witness",
    "build_graph",
    "build_report",
    "build_report_for",
    "compare_reports",
    "diff_graphs",
    "diff_to_dict",
    "evaluate",
    "evaluate_incremental",
    "find_cycles",
    "has_cycles",
    "load_rules",
    "parse_rules",
    "report_from_dict",
    "summary_line",
    "validate_rule_set",
]
