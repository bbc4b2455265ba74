"""
policy_services.monitoring_service -- Rule-based transaction monitoring.

Responsibility:
    Owns one ``TransactionMonitor`` per account: its rule set, its running
    statistics, and the alerts its rules raise.  Scores transactions,
    raises and stores alerts, and runs the alert review workflow
    (review, escalation, SAR filing).

Architecture position:
    Services -- stateful orchestration.  Rule matching, scoring and alert
    classification are delegated to ``policy_engines.risk_scoring`` and
    ``policy_engines.alerts``.

Invariants enforced:
    - At most one monitor per account.
    - Enabled rules are evaluated in insertion order; ``log_only`` matches
      score but raise no alert.
    - The risk score is capped after summation.
    - ``total_transactions`` counts every check on an enabled monitor;
      ``flagged_transactions`` counts checks with at least one match.
    - An alert counts towards ``alerts_resolved`` once, the first time it
      reaches ``resolved`` or ``false_positive``.
    - check_transaction, rule edits and alert mutations on one account are
      serialized by a per-account lock.

Failure modes:
    - MonitorAlreadyExistsError on a second monitor for an account.
    - MonitorNotFoundError / MonitoringRuleNotFoundError on rule edits.
    - AlertNotFoundError for unknown alert ids.
    - InvalidConditionError when an added rule has an unknown operator or
      an empty field.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from policy_config import load_monitoring_rules
from policy_config.bridges import monitoring_rule_from_def
from policy_config.schema import MonitoringRuleDef
from policy_engines.alerts import classify_alert, should_raise_alert
from policy_engines.risk_scoring import (
    DEFAULT_SCORE_CAP,
    check_passed,
    match_rules,
    recommendations,
    score,
)
from policy_kernel.domain.clock import Clock, SystemClock
from policy_kernel.domain.conditions import Condition, ConditionOperator, TransactionContext
from policy_kernel.domain.events import PolicyEventType
from policy_kernel.domain.monitoring import (
    RESOLVED_ALERT_STATUSES,
    AlertFilters,
    AlertStatus,
    MonitoringConfig,
    MonitoringRule,
    MonitoringStatistics,
    RuleAction,
    RuleType,
    SarDetails,
    SarResult,
    TransactionAlert,
    TransactionCheckResult,
    TransactionMonitor,
)
from policy_kernel.exceptions import (
    AlertNotFoundError,
    InvalidConditionError,
    MonitorAlreadyExistsError,
    MonitoringRuleNotFoundError,
    MonitorNotFoundError,
)
from policy_kernel.logging_config import LogContext, get_logger
from policy_kernel.repositories.base import AlertRepository, MonitorRepository
from policy_kernel.services.event_bus import EventBus
from policy_kernel.services.locks import KeyedLocks
from policy_kernel.utils.ids import (
    ALERT_PREFIX,
    MONITOR_PREFIX,
    RULE_PREFIX,
    SAR_PREFIX,
    IdGenerator,
)

logger = get_logger("services.monitoring")

SYSTEM_ACTOR = "system"
_HOUR_SECONDS = Decimal("3600")


def _check_conditions(conditions: tuple[Condition, ...]) -> None:
    for condition in conditions:
        if not condition.field:
            raise InvalidConditionError("", str(condition.operator), "field is empty")
        if not isinstance(condition.operator, ConditionOperator):
            raise InvalidConditionError(
                condition.field, str(condition.operator), "unknown operator",
            )


class MonitoringService:
    """Per-account transaction monitors and their alerts."""

    def __init__(
        self,
        monitors: MonitorRepository,
        alerts: AlertRepository,
        events: EventBus,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        account_locks: KeyedLocks | None = None,
        default_rules: tuple[MonitoringRuleDef, ...] | None = None,
        default_config: MonitoringConfig | None = None,
        risk_score_cap: Decimal = DEFAULT_SCORE_CAP,
    ) -> None:
        self._monitors = monitors
        self._alerts = alerts
        self._events = events
        self._clock = clock or SystemClock()
        self._ids = id_generator or IdGenerator()
        self._account_locks = (
            account_locks if account_locks is not None else KeyedLocks("monitor")
        )
        self._default_rules = default_rules
        self._default_config = default_config or MonitoringConfig()
        self._risk_score_cap = risk_score_cap

    # ------------------------------------------------------------------
    # Monitors and rules
    # ------------------------------------------------------------------

    def create_monitor(
        self,
        account_id: str,
        config: MonitoringConfig | None = None,
        include_default_rules: bool = True,
        created_by: str = SYSTEM_ACTOR,
    ) -> TransactionMonitor:
        """Attach a monitor to an account, seeded with the default rules."""
        with self._account_locks.hold(account_id):
            if self._monitors.get_for_account(account_id) is not None:
                raise MonitorAlreadyExistsError(account_id)

            now = self._clock.now()
            rules: tuple[MonitoringRule, ...] = ()
            if include_default_rules:
                definitions = self._default_rules
                if definitions is None:
                    definitions = load_monitoring_rules()
                rules = tuple(
                    monitoring_rule_from_def(
                        d,
                        rule_id=self._ids.new_id(RULE_PREFIX),
                        created_by=created_by,
                        now=now,
                    )
                    for d in definitions
                )

            monitor = TransactionMonitor(
                id=self._ids.new_id(MONITOR_PREFIX),
                account_id=account_id,
                enabled=True,
                rules=rules,
                statistics=MonitoringStatistics(last_updated=now),
                config=config or self._default_config,
                created_at=now,
            )
            self._monitors.add(monitor)

        logger.info(
            "monitor_created",
            extra={
                "account_id": account_id,
                "monitor_id": monitor.id,
                "rule_count": len(rules),
            },
        )
        return monitor

    def get_monitor(self, account_id: str) -> TransactionMonitor | None:
        return self._monitors.get_for_account(account_id)

    def get_statistics(self, account_id: str) -> MonitoringStatistics:
        """The monitor's statistics; zeroed statistics when there is none."""
        monitor = self._monitors.get_for_account(account_id)
        if monitor is None:
            return MonitoringStatistics(last_updated=self._clock.now())
        return monitor.statistics

    def set_monitor_enabled(self, account_id: str, enabled: bool) -> TransactionMonitor:
        with self._account_locks.hold(account_id):
            monitor = self._require_monitor(account_id)
            updated = replace(monitor, enabled=enabled, version=monitor.version + 1)
            self._monitors.save(updated, expected_version=monitor.version)
        logger.info(
            "monitor_enabled_changed",
            extra={"account_id": account_id, "enabled": enabled},
        )
        return updated

    def add_monitoring_rule(
        self,
        account_id: str,
        *,
        name: str,
        description: str,
        type: RuleType,
        conditions: tuple[Condition, ...] | list[Condition],
        action: RuleAction,
        priority: int,
        created_by: str,
        enabled: bool = True,
    ) -> MonitoringRule:
        """Append a rule to the account's monitor.  It is evaluated last."""
        conditions = tuple(conditions)
        _check_conditions(conditions)
        with self._account_locks.hold(account_id):
            monitor = self._require_monitor(account_id)
            now = self._clock.now()
            rule = MonitoringRule(
                id=self._ids.new_id(RULE_PREFIX),
                name=name,
                description=description,
                type=RuleType(type),
                conditions=conditions,
                action=RuleAction(action),
                priority=priority,
                enabled=enabled,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
            updated = replace(
                monitor,
                rules=monitor.rules + (rule,),
                version=monitor.version + 1,
            )
            self._monitors.save(updated, expected_version=monitor.version)

        logger.info(
            "monitoring_rule_added",
            extra={
                "account_id": account_id,
                "rule_id": rule.id,
                "rule_type": rule.type.value,
                "action": rule.action.value,
                "priority": priority,
            },
        )
        return rule

    def remove_monitoring_rule(self, account_id: str, rule_id: str) -> None:
        with self._account_locks.hold(account_id):
            monitor = self._require_monitor(account_id)
            if monitor.get_rule(rule_id) is None:
                raise MonitoringRuleNotFoundError(account_id, rule_id)
            updated = replace(
                monitor,
                rules=tuple(r for r in monitor.rules if r.id != rule_id),
                version=monitor.version + 1,
            )
            self._monitors.save(updated, expected_version=monitor.version)

        logger.info(
            "monitoring_rule_removed",
            extra={"account_id": account_id, "rule_id": rule_id},
        )

    # ------------------------------------------------------------------
    # Checking
    # ------------------------------------------------------------------

    def check_transaction(
        self,
        account_id: str,
        tx: TransactionContext,
    ) -> TransactionCheckResult:
        """Score ``tx`` against the account's rules and raise alerts."""
        with LogContext.bind(account_id=account_id), \
                self._account_locks.hold(account_id):
            monitor = self._monitors.get_for_account(account_id)
            if monitor is None or not monitor.enabled:
                return TransactionCheckResult(
                    passed=True,
                    alerts=(),
                    risk_score=Decimal("0"),
                    matched_rules=(),
                )

            now = self._clock.now()
            matched = match_rules(rules=monitor.rules, tx=tx)
            risk_score = score(matched, self._risk_score_cap)

            alerts: list[TransactionAlert] = []
            for rule in matched:
                if not should_raise_alert(rule):
                    continue
                alert_type, severity = classify_alert(rule)
                alert = TransactionAlert(
                    id=self._ids.new_id(ALERT_PREFIX),
                    account_id=account_id,
                    transaction_id=tx.id,
                    rule_id=rule.id,
                    type=alert_type,
                    severity=severity,
                    status=AlertStatus.OPEN,
                    description=rule.description,
                    created_at=now,
                    details={
                        "rule_name": rule.name,
                        "rule_type": rule.type.value,
                        "action": rule.action.value,
                    },
                )
                self._alerts.add(alert)
                alerts.append(alert)

            stats = monitor.statistics
            distribution = dict(stats.risk_distribution)
            for alert in alerts:
                key = alert.severity.value
                distribution[key] = distribution.get(key, 0) + 1
            stats = replace(
                stats,
                total_transactions=stats.total_transactions + 1,
                flagged_transactions=stats.flagged_transactions + (1 if matched else 0),
                alerts_generated=stats.alerts_generated + len(alerts),
                risk_distribution=distribution,
                last_updated=now,
            )
            self._monitors.save(
                replace(monitor, statistics=stats, version=monitor.version + 1),
                expected_version=monitor.version,
            )

            result = TransactionCheckResult(
                passed=check_passed(alerts),
                alerts=tuple(alerts),
                risk_score=risk_score,
                matched_rules=matched,
                recommendations=recommendations(risk_score, alerts),
            )

            logger.info(
                "transaction_checked",
                extra={
                    "transaction_id": tx.id,
                    "matched_rules": [r.id for r in matched],
                    "alert_count": len(alerts),
                    "risk_score": risk_score,
                    "passed": result.passed,
                },
            )

        for alert in alerts:
            self._events.emit(
                PolicyEventType.ALERT_GENERATED,
                account_id=account_id,
                actor_id=SYSTEM_ACTOR,
                action="generate_alert",
                resource="alert",
                resource_id=alert.id,
                details={
                    "transaction_id": tx.id,
                    "rule_id": alert.rule_id,
                    "type": alert.type.value,
                    "severity": alert.severity.value,
                },
            )
        return result

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def get_alerts(
        self,
        account_id: str,
        filters: AlertFilters | None = None,
    ) -> list[TransactionAlert]:
        """The account's alerts in creation order.  ``limit`` applies last."""
        filters = filters or AlertFilters()
        alerts = self._alerts.list_for_account(account_id)

        if filters.status is not None:
            alerts = [a for a in alerts if a.status == filters.status]
        if filters.severity is not None:
            alerts = [a for a in alerts if a.severity == filters.severity]
        if filters.type is not None:
            alerts = [a for a in alerts if a.type == filters.type]
        if filters.start_date is not None:
            alerts = [a for a in alerts if a.created_at >= filters.start_date]
        if filters.end_date is not None:
            alerts = [a for a in alerts if a.created_at <= filters.end_date]
        if filters.limit is not None:
            alerts = alerts[: filters.limit]
        return alerts

    def get_alert(self, alert_id: str) -> TransactionAlert | None:
        return self._alerts.get(alert_id)

    def review_alert(
        self,
        alert_id: str,
        reviewed_by: str,
        status: AlertStatus,
        notes: str | None = None,
    ) -> TransactionAlert:
        """Record a reviewer's verdict on an alert."""
        status = AlertStatus(status)
        account_id = self._require_alert(alert_id).account_id

        with self._account_locks.hold(account_id):
            alert = self._require_alert(alert_id)
            now = self._clock.now()
            changes: dict[str, Any] = {
                "status": status,
                "reviewed_at": now,
                "reviewed_by": reviewed_by,
            }
            if notes:
                changes["resolution_notes"] = notes
            updated = replace(alert, **changes)
            self._alerts.save(updated)

            newly_resolved = (
                status in RESOLVED_ALERT_STATUSES
                and alert.status not in RESOLVED_ALERT_STATUSES
            )
            if newly_resolved:
                self._record_resolution(account_id, alert.created_at, now)

        logger.info(
            "alert_reviewed",
            extra={
                "alert_id": alert_id,
                "account_id": account_id,
                "from_status": alert.status.value,
                "to_status": status.value,
                "reviewed_by": reviewed_by,
            },
        )
        self._events.emit(
            PolicyEventType.ALERT_RESOLVED,
            account_id=account_id,
            actor_id=reviewed_by,
            action="review_alert",
            resource="alert",
            resource_id=alert_id,
            details={"status": status.value, "notes": notes},
        )
        return updated

    def escalate_alert(
        self,
        alert_id: str,
        escalated_by: str,
        reason: str,
    ) -> TransactionAlert:
        account_id = self._require_alert(alert_id).account_id

        with self._account_locks.hold(account_id):
            alert = self._require_alert(alert_id)
            updated = replace(
                alert,
                status=AlertStatus.ESCALATED,
                details={
                    **alert.details,
                    "escalation_reason": reason,
                    "escalated_by": escalated_by,
                },
            )
            self._alerts.save(updated)

        logger.info(
            "alert_escalated",
            extra={"alert_id": alert_id, "account_id": account_id, "reason": reason},
        )
        self._events.emit(
            PolicyEventType.ALERT_ESCALATED,
            account_id=account_id,
            actor_id=escalated_by,
            action="escalate_alert",
            resource="alert",
            resource_id=alert_id,
            details={"reason": reason},
        )
        return updated

    def file_sar(
        self,
        alert_id: str,
        filed_by: str,
        sar_details: SarDetails,
    ) -> SarResult:
        """File a Suspicious Activity Report for an alert."""
        account_id = self._require_alert(alert_id).account_id

        with self._account_locks.hold(account_id):
            alert = self._require_alert(alert_id)
            now = self._clock.now()
            sar_id = self._ids.new_id(SAR_PREFIX)
            updated = replace(
                alert,
                status=AlertStatus.SAR_FILED,
                resolution="SAR filed",
                reviewed_at=now,
                reviewed_by=filed_by,
                details={
                    **alert.details,
                    "sar_id": sar_id,
                    "suspicious_activity_type": sar_details.suspicious_activity_type,
                    "reporting_jurisdiction": sar_details.reporting_jurisdiction,
                    "total_amount": str(sar_details.total_amount),
                },
            )
            self._alerts.save(updated)

            monitor = self._monitors.get_for_account(account_id)
            if monitor is not None:
                stats = replace(
                    monitor.statistics,
                    sars_filed=monitor.statistics.sars_filed + 1,
                    last_updated=now,
                )
                self._monitors.save(
                    replace(monitor, statistics=stats, version=monitor.version + 1),
                    expected_version=monitor.version,
                )

        logger.info(
            "sar_filed",
            extra={
                "alert_id": alert_id,
                "account_id": account_id,
                "sar_id": sar_id,
                "filed_by": filed_by,
            },
        )
        self._events.emit(
            PolicyEventType.SAR_FILED,
            account_id=account_id,
            actor_id=filed_by,
            action="file_sar",
            resource="alert",
            resource_id=alert_id,
            details={
                "sar_id": sar_id,
                "suspicious_activity_type": sar_details.suspicious_activity_type,
                "reporting_jurisdiction": sar_details.reporting_jurisdiction,
                "total_amount": sar_details.total_amount,
                "date_range_start": sar_details.date_range_start,
                "date_range_end": sar_details.date_range_end,
            },
        )
        return SarResult(success=True, sar_id=sar_id, filing_date=now)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_monitor(self, account_id: str) -> TransactionMonitor:
        monitor = self._monitors.get_for_account(account_id)
        if monitor is None:
            raise MonitorNotFoundError(account_id)
        return monitor

    def _require_alert(self, alert_id: str) -> TransactionAlert:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    def _record_resolution(
        self,
        account_id: str,
        raised_at: datetime,
        resolved_at: datetime,
    ) -> None:
        monitor = self._monitors.get_for_account(account_id)
        if monitor is None:
            return

        stats = monitor.statistics
        hours = Decimal(str((resolved_at - raised_at).total_seconds())) / _HOUR_SECONDS
        resolved = stats.alerts_resolved + 1
        average = (stats.avg_resolution_hours * stats.alerts_resolved + hours) / resolved

        stats = replace(
            stats,
            alerts_resolved=resolved,
            avg_resolution_hours=average,
            last_updated=resolved_at,
        )
        self._monitors.save(
            replace(monitor, statistics=stats, version=monitor.version + 1),
            expected_version=monitor.version,
        )
