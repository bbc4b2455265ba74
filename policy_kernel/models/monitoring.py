"""
Module: policy_kernel.models.monitoring
Responsibility: ORM persistence for transaction monitors, their rules, and
    the alerts they raise.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - One monitor per account (unique account_id).
    - Rules are returned in insertion order; evaluation order follows it.
    - Alert status and severity values are limited by check constraints.
    - ``version`` on the monitor row backs optimistic concurrency for
      statistics and rule-set updates.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from policy_kernel.db.base import Base, UTCDateTime
from policy_kernel.utils.serialization import (
    condition_from_dict,
    condition_to_dict,
    decode_value,
    encode_value,
    monitoring_config_from_dict,
    monitoring_config_to_dict,
)

if TYPE_CHECKING:
    from policy_kernel.domain.monitoring import (
        MonitoringRule,
        MonitoringStatistics,
        TransactionAlert,
        TransactionMonitor,
    )


def statistics_to_dict(stats: MonitoringStatistics) -> dict[str, Any]:
    return encode_value({
        "total_transactions": stats.total_transactions,
        "flagged_transactions": stats.flagged_transactions,
        "alerts_generated": stats.alerts_generated,
        "alerts_resolved": stats.alerts_resolved,
        "sars_filed": stats.sars_filed,
        "avg_resolution_hours": stats.avg_resolution_hours,
        "risk_distribution": dict(stats.risk_distribution),
        "last_updated": stats.last_updated,
    })


def statistics_from_dict(data: dict[str, Any]) -> MonitoringStatistics:
    from policy_kernel.domain.monitoring import MonitoringStatistics

    values = decode_value(data)
    return MonitoringStatistics(
        total_transactions=values.get("total_transactions", 0),
        flagged_transactions=values.get("flagged_transactions", 0),
        alerts_generated=values.get("alerts_generated", 0),
        alerts_resolved=values.get("alerts_resolved", 0),
        sars_filed=values.get("sars_filed", 0),
        avg_resolution_hours=values.get("avg_resolution_hours", Decimal("0")),
        risk_distribution=dict(values.get("risk_distribution", {})),
        last_updated=values.get("last_updated"),
    )


class TransactionMonitorModel(Base):
    """Persistent per-account monitor."""

    __tablename__ = "policy_transaction_monitors"

    monitor_id: Mapped[str] = mapped_column(String(160), nullable=False, unique=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    statistics: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    rules: Mapped[list["MonitoringRuleModel"]] = relationship(
        "MonitoringRuleModel",
        primaryjoin="TransactionMonitorModel.account_id == MonitoringRuleModel.account_id",
        order_by="MonitoringRuleModel.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<TransactionMonitor {self.monitor_id} enabled={self.enabled}>"

    def to_dto(self) -> TransactionMonitor:
        """Convert ORM model to frozen domain DTO."""
        from policy_kernel.domain.monitoring import TransactionMonitor as MonitorDTO

        return MonitorDTO(
            id=self.monitor_id,
            account_id=self.account_id,
            enabled=self.enabled,
            rules=tuple(r.to_dto() for r in self.rules),
            statistics=statistics_from_dict(self.statistics),
            config=monitoring_config_from_dict(self.config),
            created_at=self.created_at,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: TransactionMonitor) -> TransactionMonitorModel:
        """Create ORM model from domain DTO, rules included."""
        return cls(
            monitor_id=dto.id,
            account_id=dto.account_id,
            enabled=dto.enabled,
            config=monitoring_config_to_dict(dto.config),
            statistics=statistics_to_dict(dto.statistics),
            created_at=dto.created_at,
            version=dto.version,
            rules=[MonitoringRuleModel.from_dto(dto.account_id, r) for r in dto.rules],
        )


class MonitoringRuleModel(Base):
    """Persistent monitoring rule, owned by an account's monitor."""

    __tablename__ = "policy_monitoring_rules"

    __table_args__ = (
        Index("ix_policy_monitoring_rules_account", "account_id"),
    )

    rule_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    account_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("policy_transaction_monitors.account_id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    rule_type: Mapped[str] = mapped_column(String(40), nullable=False)
    conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<MonitoringRule {self.rule_id} {self.name} action={self.action}>"

    def to_dto(self) -> MonitoringRule:
        """Convert ORM model to frozen domain DTO."""
        from policy_kernel.domain.monitoring import MonitoringRule as RuleDTO
        from policy_kernel.domain.monitoring import RuleAction, RuleType

        return RuleDTO(
            id=self.rule_id,
            name=self.name,
            description=self.description,
            type=RuleType(self.rule_type),
            conditions=tuple(condition_from_dict(c) for c in self.conditions),
            action=RuleAction(self.action),
            priority=self.priority,
            enabled=self.enabled,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, account_id: str, dto: MonitoringRule) -> MonitoringRuleModel:
        """Create ORM model from domain DTO."""
        return cls(
            rule_id=dto.id,
            account_id=account_id,
            name=dto.name,
            description=dto.description,
            rule_type=dto.type.value,
            conditions=[condition_to_dict(c) for c in dto.conditions],
            action=dto.action.value,
            priority=dto.priority,
            enabled=dto.enabled,
            created_by=dto.created_by,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
        )


class TransactionAlertModel(Base):
    """Persistent transaction alert."""

    __tablename__ = "policy_transaction_alerts"

    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'under_review', 'escalated', 'resolved', "
            "'false_positive', 'sar_filed')",
            name="ck_policy_transaction_alerts_valid_status",
        ),
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')",
            name="ck_policy_transaction_alerts_valid_severity",
        ),
        Index("ix_policy_transaction_alerts_account", "account_id", "created_at"),
    )

    alert_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(128), nullable=False)
    rule_id: Mapped[str] = mapped_column(String(64), nullable=False)
    alert_type: Mapped[str] = mapped_column(String(40), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    assigned_to: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TransactionAlert {self.alert_id} {self.alert_type} "
            f"severity={self.severity} status={self.status}>"
        )

    def to_dto(self) -> TransactionAlert:
        """Convert ORM model to frozen domain DTO."""
        from policy_kernel.domain.monitoring import (
            AlertSeverity,
            AlertStatus,
            AlertType,
        )
        from policy_kernel.domain.monitoring import TransactionAlert as AlertDTO

        return AlertDTO(
            id=self.alert_id,
            account_id=self.account_id,
            transaction_id=self.transaction_id,
            rule_id=self.rule_id,
            type=AlertType(self.alert_type),
            severity=AlertSeverity(self.severity),
            status=AlertStatus(self.status),
            description=self.description,
            created_at=self.created_at,
            details=decode_value(self.details or {}),
            assigned_to=self.assigned_to,
            reviewed_at=self.reviewed_at,
            reviewed_by=self.reviewed_by,
            resolution=self.resolution,
            resolution_notes=self.resolution_notes,
        )

    @classmethod
    def from_dto(cls, dto: TransactionAlert) -> TransactionAlertModel:
        """Create ORM model from domain DTO."""
        return cls(
            alert_id=dto.id,
            account_id=dto.account_id,
            transaction_id=dto.transaction_id,
            rule_id=dto.rule_id,
            alert_type=dto.type.value,
            severity=dto.severity.value,
            status=dto.status.value,
            description=dto.description,
            details=encode_value(dto.details),
            assigned_to=dto.assigned_to,
            created_at=dto.created_at,
            reviewed_at=dto.reviewed_at,
            reviewed_by=dto.reviewed_by,
            resolution=dto.resolution,
            resolution_notes=dto.resolution_notes,
        )

    def apply(self, dto: TransactionAlert) -> None:
        """Copy the mutable review fields from a DTO onto this row."""
        self.status = dto.status.value
        self.details = encode_value(dto.details)
        self.assigned_to = dto.assigned_to
        self.reviewed_at = dto.reviewed_at
        self.reviewed_by = dto.reviewed_by
        self.resolution = dto.resolution
        self.resolution_notes = dto.resolution_notes
