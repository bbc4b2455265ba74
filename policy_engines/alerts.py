"""
policy_engines.alerts -- Map a matching monitoring rule to an alert kind.

Two fixed tables: rule type to alert type, and rule action to severity.
Anything not in a table falls back to ``suspicious_activity`` / ``medium``.
"""

from __future__ import annotations

from policy_kernel.domain.monitoring import (
    AlertSeverity,
    AlertType,
    MonitoringRule,
    RuleAction,
    RuleType,
)

RULE_TYPE_TO_ALERT_TYPE: dict[RuleType, AlertType] = {
    RuleType.AMOUNT_THRESHOLD: AlertType.THRESHOLD_BREACH,
    RuleType.VELOCITY: AlertType.VELOCITY_ANOMALY,
    RuleType.DESTINATION_SCREENING: AlertType.HIGH_RISK_JURISDICTION,
    RuleType.PATTERN_DETECTION: AlertType.PATTERN_MATCH,
    RuleType.BEHAVIORAL_ANOMALY: AlertType.BEHAVIORAL_DEVIATION,
    RuleType.JURISDICTION_RISK: AlertType.HIGH_RISK_JURISDICTION,
}

ACTION_TO_SEVERITY: dict[RuleAction, AlertSeverity] = {
    RuleAction.FLAG: AlertSeverity.LOW,
    RuleAction.LOG_ONLY: AlertSeverity.LOW,
    RuleAction.ALERT: AlertSeverity.MEDIUM,
    RuleAction.REQUIRE_APPROVAL: AlertSeverity.HIGH,
    RuleAction.ESCALATE: AlertSeverity.HIGH,
    RuleAction.BLOCK: AlertSeverity.CRITICAL,
}


def alert_type_for(rule_type: RuleType | str) -> AlertType:
    return RULE_TYPE_TO_ALERT_TYPE.get(rule_type, AlertType.SUSPICIOUS_ACTIVITY)


def severity_for(action: RuleAction | str) -> AlertSeverity:
    return ACTION_TO_SEVERITY.get(action, AlertSeverity.MEDIUM)


def classify_alert(rule: MonitoringRule) -> tuple[AlertType, AlertSeverity]:
    """Alert type and severity for a rule that matched."""
    return alert_type_for(rule.type), severity_for(rule.action)


def should_raise_alert(rule: MonitoringRule) -> bool:
    """``log_only`` rules score the transaction but raise no alert."""
    return rule.action != RuleAction.LOG_ONLY
