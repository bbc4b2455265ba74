"""
Module: policy_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    policy engines.  This is the canonical import surface for
    policy_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import policy_kernel/domain (and sibling engine modules).
    MUST NOT import policy_services.

Invariants enforced:
    - Purity: engines never read a clock.  The current time is passed in.
    - Decimal-only arithmetic for amounts and scores.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from policy_engines import evaluate_condition, select_workflow
    from policy_engines.escalation import plan_escalation
"""

from policy_engines.alerts import classify_alert, should_raise_alert
from policy_engines.approval import (
    approved_count,
    estimate_minutes,
    is_authorized,
    next_step,
    quorum_reached,
    step_deadline,
)
from policy_engines.conditions import (
    condition_matches,
    evaluate_condition,
    evaluate_conditions,
    resolve_field,
)
from policy_engines.escalation import EscalationPlan, is_overdue, plan_escalation
from policy_engines.risk_scoring import (
    check_passed,
    match_rules,
    recommendations,
    score,
)
from policy_engines.trigger_matching import (
    WorkflowSelection,
    matching_triggers,
    rank_workflows,
    select_workflow,
)

__all__ = [
    "EscalationPlan",
    "WorkflowSelection",
    "approved_count",
    "check_passed",
    "classify_alert",
    "condition_matches",
    "estimate_minutes",
    "evaluate_condition",
    "evaluate_conditions",
    "is_authorized",
    "is_overdue",
    "match_rules",
    "matching_triggers",
    "next_step",
    "plan_escalation",
    "quorum_reached",
    "rank_workflows",
    "recommendations",
    "resolve_field",
    "score",
    "select_workflow",
    "should_raise_alert",
    "step_deadline",
]
