"""
Tests for monitoring rule evaluation, alert classification and scoring.

Tests cover:
- classify_alert: rule type -> alert type, action -> severity, fallbacks
- should_raise_alert: log_only rules raise nothing
- match_rules: enabled rules only, evaluation order kept
- score: priority / 10 per rule, capped at 100
- check_passed: critical or open alerts fail the check
- recommendations: high-risk threshold and per-type hints
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from policy_engines.alerts import classify_alert, should_raise_alert
from policy_engines.risk_scoring import (
    DEFAULT_SCORE_CAP,
    RECOMMENDATION_HIGH_RISK,
    RECOMMENDATION_PATTERN,
    RECOMMENDATION_THRESHOLD,
    RECOMMENDATION_VELOCITY,
    check_passed,
    match_rules,
    recommendations,
    score,
)
from policy_kernel.domain.conditions import Condition, TransactionContext
from policy_kernel.domain.monitoring import (
    AlertSeverity,
    AlertStatus,
    AlertType,
    MonitoringRule,
    RuleAction,
    RuleType,
    TransactionAlert,
)

_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_rule(
    rule_id: str = "rule-1",
    type: RuleType = RuleType.AMOUNT_THRESHOLD,
    action: RuleAction = RuleAction.FLAG,
    priority: int = 100,
    conditions: tuple[Condition, ...] | None = None,
    enabled: bool = True,
) -> MonitoringRule:
    if conditions is None:
        conditions = (Condition("amount", "greater_than", Decimal("100000")),)
    return MonitoringRule(
        id=rule_id,
        name=rule_id,
        description=f"{rule_id} description",
        type=type,
        conditions=conditions,
        action=action,
        priority=priority,
        enabled=enabled,
        created_by="system",
        created_at=_NOW,
        updated_at=_NOW,
    )


def make_alert(
    type: AlertType = AlertType.THRESHOLD_BREACH,
    severity: AlertSeverity = AlertSeverity.LOW,
    status: AlertStatus = AlertStatus.OPEN,
) -> TransactionAlert:
    return TransactionAlert(
        id="alert-1",
        account_id="acct-1",
        transaction_id="tx-1",
        rule_id="rule-1",
        type=type,
        severity=severity,
        status=status,
        description="",
        created_at=_NOW,
    )


def _tx(amount="150000", **metadata) -> TransactionContext:
    return TransactionContext(
        id="tx-1", type="transfer", amount=Decimal(amount), currency="USD",
        metadata=metadata,
    )


# =========================================================================
# Classification
# =========================================================================


class TestClassifyAlert:

    @pytest.mark.parametrize(
        "rule_type, alert_type",
        [
            (RuleType.AMOUNT_THRESHOLD, AlertType.THRESHOLD_BREACH),
            (RuleType.VELOCITY, AlertType.VELOCITY_ANOMALY),
            (RuleType.DESTINATION_SCREENING, AlertType.HIGH_RISK_JURISDICTION),
            (RuleType.PATTERN_DETECTION, AlertType.PATTERN_MATCH),
            (RuleType.BEHAVIORAL_ANOMALY, AlertType.BEHAVIORAL_DEVIATION),
            (RuleType.JURISDICTION_RISK, AlertType.HIGH_RISK_JURISDICTION),
            (RuleType.TIME_BASED, AlertType.SUSPICIOUS_ACTIVITY),
            (RuleType.CUSTOM, AlertType.SUSPICIOUS_ACTIVITY),
        ],
    )
    def test_alert_type(self, rule_type, alert_type):
        assert classify_alert(make_rule(type=rule_type))[0] == alert_type

    @pytest.mark.parametrize(
        "action, severity",
        [
            (RuleAction.FLAG, AlertSeverity.LOW),
            (RuleAction.LOG_ONLY, AlertSeverity.LOW),
            (RuleAction.ALERT, AlertSeverity.MEDIUM),
            (RuleAction.REQUIRE_APPROVAL, AlertSeverity.HIGH),
            (RuleAction.ESCALATE, AlertSeverity.HIGH),
            (RuleAction.BLOCK, AlertSeverity.CRITICAL),
        ],
    )
    def test_severity(self, action, severity):
        assert classify_alert(make_rule(action=action))[1] == severity

    def test_log_only_raises_no_alert(self):
        assert should_raise_alert(make_rule(action=RuleAction.LOG_ONLY)) is False
        assert should_raise_alert(make_rule(action=RuleAction.FLAG)) is True


# =========================================================================
# Matching and scoring
# =========================================================================


class TestMatchRules:

    def test_disabled_rules_skipped(self):
        rules = (make_rule("r-on"), make_rule("r-off", enabled=False))

        assert [r.id for r in match_rules(rules=rules, tx=_tx())] == ["r-on"]

    def test_evaluation_order_kept(self):
        rules = (make_rule("r-b", priority=10), make_rule("r-a", priority=90))

        assert [r.id for r in match_rules(rules=rules, tx=_tx())] == ["r-b", "r-a"]

    def test_non_matching_rules_excluded(self):
        rules = (
            make_rule("r-amount"),
            make_rule(
                "r-velocity",
                conditions=(Condition("transaction_count_1h", "greater_than", 10),),
            ),
        )

        assert [r.id for r in match_rules(rules=rules, tx=_tx())] == ["r-amount"]


class TestScore:

    def test_priority_over_ten(self):
        assert score([make_rule(priority=85)]) == Decimal("8.5")

    def test_sum_of_weights(self):
        matched = [make_rule(priority=100), make_rule(priority=90)]
        assert score(matched) == Decimal("19")

    def test_no_matches_scores_zero(self):
        assert score([]) == Decimal("0")

    def test_capped_at_one_hundred(self):
        matched = [make_rule(priority=600), make_rule(priority=600)]
        assert score(matched) == DEFAULT_SCORE_CAP

    def test_custom_cap(self):
        assert score([make_rule(priority=600)], Decimal("50")) == Decimal("50")


class TestCheckPassed:

    def test_no_alerts_passes(self):
        assert check_passed([]) is True

    def test_open_alert_fails(self):
        assert check_passed([make_alert(severity=AlertSeverity.LOW)]) is False

    def test_critical_alert_fails_whatever_its_status(self):
        alert = make_alert(severity=AlertSeverity.CRITICAL, status=AlertStatus.RESOLVED)
        assert check_passed([alert]) is False

    def test_reviewed_non_critical_alert_passes(self):
        alert = make_alert(severity=AlertSeverity.HIGH, status=AlertStatus.UNDER_REVIEW)
        assert check_passed([alert]) is True


class TestRecommendations:

    def test_none_for_quiet_transaction(self):
        assert recommendations(Decimal("0"), []) == ()

    def test_high_risk_strictly_above_75(self):
        assert recommendations(Decimal("75"), []) == ()
        assert recommendations(Decimal("75.1"), []) == (RECOMMENDATION_HIGH_RISK,)

    def test_per_type_hints_in_fixed_order(self):
        alerts = [
            make_alert(type=AlertType.PATTERN_MATCH),
            make_alert(type=AlertType.THRESHOLD_BREACH),
            make_alert(type=AlertType.VELOCITY_ANOMALY),
        ]

        assert recommendations(Decimal("10"), alerts) == (
            RECOMMENDATION_VELOCITY,
            RECOMMENDATION_THRESHOLD,
            RECOMMENDATION_PATTERN,
        )

    def test_hint_not_repeated_for_duplicate_types(self):
        alerts = [make_alert(), make_alert()]
        assert recommendations(Decimal("20"), alerts) == (RECOMMENDATION_THRESHOLD,)
