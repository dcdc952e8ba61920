"""
widget-fuzz — diagnostics

File: src/widget_fuzz/diagnostics/__init__.py

Purpose
- Observe action impact, flag anomalies with heuristic rules and minimize the
  flagged run to a dependency-closed subsequence.
"""

from widget_fuzz.diagnostics.harness import DiagnosticsReport, replay_sequence, run_diagnostics
from widget_fuzz.diagnostics.heuristics import (
    GENERIC_RULES,
    HeuristicFinding,
    HeuristicRule,
    RuleHit,
    Severity,
    evaluate_heuristic_findings,
)
from widget_fuzz.diagnostics.minimizer import minimize_impacts
from widget_fuzz.diagnostics.observer import (
    ActionImpact,
    ActionObserver,
    ImpactRecorder,
    ObservedChange,
    describe_impact,
)

__all__ = [
    "GENERIC_RULES",
    "ActionImpact",
    "ActionObserver",
    "DiagnosticsReport",
    "HeuristicFinding",
    "HeuristicRule",
    "ImpactRecorder",
    "ObservedChange",
    "RuleHit",
    "Severity",
    "describe_impact",
    "evaluate_heuristic_findings",
    "minimize_impacts",
    "replay_sequence",
    "run_diagnostics",
]
