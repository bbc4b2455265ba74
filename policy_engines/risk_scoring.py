"""
policy_engines.risk_scoring -- Score a transaction against monitoring rules.

Responsibility:
    Determine which enabled rules match a transaction, the resulting risk
    score, the pass/fail verdict for a set of alerts, and the reviewer
    recommendations that go with them.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Rules are evaluated in the order given (monitor insertion order);
      disabled rules are skipped.
    - Each matching rule contributes ``priority / 10``; the total is capped
      at ``DEFAULT_SCORE_CAP`` (100) after summation.
    - A check fails when any alert is ``critical`` or still ``open``.
      Alerts are born open, so any alert-raising match fails the check.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from policy_engines.conditions import evaluate_conditions
from policy_engines.tracer import traced_engine
from policy_kernel.domain.conditions import TransactionContext
from policy_kernel.domain.monitoring import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    MonitoringRule,
    TransactionAlert,
)

DEFAULT_SCORE_CAP = Decimal("100")
HIGH_RISK_THRESHOLD = Decimal("75")

RECOMMENDATION_HIGH_RISK = "High risk transaction - requires immediate review"
RECOMMENDATION_VELOCITY = "Review recent transaction velocity patterns"
RECOMMENDATION_THRESHOLD = "Verify source of funds for large transaction"
RECOMMENDATION_PATTERN = "Check for potential structuring behavior"


def rule_weight(rule: MonitoringRule) -> Decimal:
    return Decimal(rule.priority) / Decimal(10)


@traced_engine("risk_scoring", "1.0", fingerprint_fields=("rules", "tx"))
def match_rules(
    *,
    rules: Sequence[MonitoringRule],
    tx: TransactionContext,
) -> tuple[MonitoringRule, ...]:
    """Enabled rules whose conditions all hold, in evaluation order."""
    return tuple(
        rule for rule in rules
        if rule.enabled and evaluate_conditions(rule.conditions, tx)
    )


def score(
    matched: Iterable[MonitoringRule],
    cap: Decimal = DEFAULT_SCORE_CAP,
) -> Decimal:
    """Sum of rule weights, capped."""
    total = sum((rule_weight(r) for r in matched), Decimal("0"))
    return min(total, cap)


def check_passed(alerts: Iterable[TransactionAlert]) -> bool:
    return not any(
        a.severity == AlertSeverity.CRITICAL or a.status == AlertStatus.OPEN
        for a in alerts
    )


def recommendations(
    risk_score: Decimal,
    alerts: Sequence[TransactionAlert],
) -> tuple[str, ...]:
    """Reviewer hints derived from the score and the alert types raised."""
    types = {a.type for a in alerts}
    result: list[str] = []
    if risk_score > HIGH_RISK_THRESHOLD:
        result.append(RECOMMENDATION_HIGH_RISK)
    if AlertType.VELOCITY_ANOMALY in types:
        result.append(RECOMMENDATION_VELOCITY)
    if AlertType.THRESHOLD_BREACH in types:
        result.append(RECOMMENDATION_THRESHOLD)
    if AlertType.PATTERN_MATCH in types:
        result.append(RECOMMENDATION_PATTERN)
    return tuple(result)
