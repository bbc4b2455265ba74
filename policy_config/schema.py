"""
Policy configuration schema.

Defines the human-authored, reviewable configuration artifact.  YAML
documents are parsed into these frozen types by the loader and turned
into kernel domain objects by the bridges in ``policy_config.bridges``.
Definitions carry no ids or timestamps; those are assigned when a
template is instantiated for an account.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

# ---------------------------------------------------------------------------
# Conditions and triggers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ConditionDef:
    field: str
    operator: str
    value: Any
    logic: str | None = None


@dataclass(frozen=True)
class TriggerDef:
    type: str
    conditions: tuple[ConditionDef, ...] = ()


# ---------------------------------------------------------------------------
# Workflow templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StepDef:
    step_number: int
    name: str
    approver_roles: tuple[str, ...] = ()
    approver_users: tuple[str, ...] = ()
    required_approvals: int = 1
    timeout_hours: float = 24
    escalate_on_timeout: bool = True
    escalate_to: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkflowTemplateDef:
    """A workflow installed by ``initialize_default_workflows``."""

    name: str
    description: str
    triggers: tuple[TriggerDef, ...]
    steps: tuple[StepDef, ...]
    priority: int = 0


# ---------------------------------------------------------------------------
# Monitoring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonitoringRuleDef:
    name: str
    description: str
    type: str
    conditions: tuple[ConditionDef, ...]
    action: str
    priority: int
    enabled: bool = True


@dataclass(frozen=True)
class EscalationLevelDef:
    level: int
    after_minutes: int
    notify_roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class MonitoringConfigDef:
    real_time_monitoring: bool = True
    batch_processing_interval_seconds: int = 3600
    alert_notifications: bool = True
    retention_days: int = 365
    escalation_levels: tuple[EscalationLevelDef, ...] = ()


# ---------------------------------------------------------------------------
# Engine settings and the full document
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """Engine-wide operating parameters."""

    database_url: str = "sqlite:///:memory:"
    sweep_interval_seconds: int = 60
    risk_score_cap: Decimal = Decimal("100")
    monitoring: MonitoringConfigDef = field(default_factory=MonitoringConfigDef)


@dataclass(frozen=True)
class PolicyConfigurationSet:
    """One parsed configuration document."""

    config_id: str
    version: int
    settings: EngineSettings
    workflow_templates: tuple[WorkflowTemplateDef, ...]
    monitoring_rules: tuple[MonitoringRuleDef, ...]
    checksum: str = ""
