"""
Transaction monitoring domain types (``policy_kernel.domain.monitoring``).

Responsibility
--------------
Pure value objects for rule-based transaction monitoring: monitoring
rules, per-account monitors with their statistics, alerts with their
review lifecycle, and SAR filing records.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Conditions of a rule are conjunctive.
* Risk scores are ``Decimal`` and never exceed the configured cap (100).
* ``MonitoringStatistics`` counters only grow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from policy_kernel.domain.conditions import Condition


class RuleType(str, Enum):
    """Monitoring rule families."""

    AMOUNT_THRESHOLD = "amount_threshold"
    VELOCITY = "velocity"
    DESTINATION_SCREENING = "destination_screening"
    PATTERN_DETECTION = "pattern_detection"
    BEHAVIORAL_ANOMALY = "behavioral_anomaly"
    JURISDICTION_RISK = "jurisdiction_risk"
    TIME_BASED = "time_based"
    CUSTOM = "custom"


class RuleAction(str, Enum):
    """What a matching rule asks for."""

    FLAG = "flag"
    ALERT = "alert"
    BLOCK = "block"
    REQUIRE_APPROVAL = "require_approval"
    ESCALATE = "escalate"
    LOG_ONLY = "log_only"


class AlertType(str, Enum):
    THRESHOLD_BREACH = "threshold_breach"
    VELOCITY_ANOMALY = "velocity_anomaly"
    HIGH_RISK_JURISDICTION = "high_risk_jurisdiction"
    PATTERN_MATCH = "pattern_match"
    BEHAVIORAL_DEVIATION = "behavioral_deviation"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Alert review lifecycle."""

    OPEN = "open"
    UNDER_REVIEW = "under_review"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"
    SAR_FILED = "sar_filed"


RESOLVED_ALERT_STATUSES: frozenset[AlertStatus] = frozenset({
    AlertStatus.RESOLVED,
    AlertStatus.FALSE_POSITIVE,
})


@dataclass(frozen=True)
class MonitoringRule:
    """A conjunctive rule evaluated against every checked transaction."""

    id: str
    name: str
    description: str
    type: RuleType
    conditions: tuple[Condition, ...]
    action: RuleAction
    priority: int
    enabled: bool
    created_by: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TransactionAlert:
    """An alert raised by a matching rule."""

    id: str
    account_id: str
    transaction_id: str
    rule_id: str
    type: AlertType
    severity: AlertSeverity
    status: AlertStatus
    description: str
    created_at: datetime
    details: dict[str, Any] = field(default_factory=dict)
    assigned_to: str | None = None
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    resolution: str | None = None
    resolution_notes: str | None = None


@dataclass(frozen=True)
class EscalationLevel:
    """One rung of the alert escalation ladder."""

    level: int
    after_minutes: int
    notify_roles: tuple[str, ...]


@dataclass(frozen=True)
class MonitoringConfig:
    """Per-monitor operating parameters."""

    real_time_monitoring: bool = True
    batch_processing_interval_seconds: int = 3600
    alert_notifications: bool = True
    escalation_levels: tuple[EscalationLevel, ...] = ()
    retention_days: int = 365


@dataclass(frozen=True)
class MonitoringStatistics:
    """Running counters for one monitor."""

    total_transactions: int = 0
    flagged_transactions: int = 0
    alerts_generated: int = 0
    alerts_resolved: int = 0
    sars_filed: int = 0
    avg_resolution_hours: Decimal = Decimal("0")
    risk_distribution: dict[str, int] = field(default_factory=dict)
    last_updated: datetime | None = None


@dataclass(frozen=True)
class TransactionMonitor:
    """The set of monitoring rules attached to one account."""

    id: str
    account_id: str
    enabled: bool
    rules: tuple[MonitoringRule, ...]
    statistics: MonitoringStatistics
    config: MonitoringConfig
    created_at: datetime
    version: int = 1

    def get_rule(self, rule_id: str) -> MonitoringRule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


@dataclass(frozen=True)
class TransactionCheckResult:
    """Outcome of checking one transaction against a monitor."""

    passed: bool
    alerts: tuple[TransactionAlert, ...]
    risk_score: Decimal
    matched_rules: tuple[MonitoringRule, ...]
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class AlertFilters:
    """Filters for listing an account's alerts."""

    status: AlertStatus | None = None
    severity: AlertSeverity | None = None
    type: AlertType | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int | None = None


@dataclass(frozen=True)
class SarDetails:
    """Content of a Suspicious Activity Report."""

    narrative: str
    suspicious_activity_type: str
    reporting_jurisdiction: str
    total_amount: Decimal
    date_range_start: datetime
    date_range_end: datetime


@dataclass(frozen=True)
class SarResult:
    success: bool
    sar_id: str
    filing_date: datetime
