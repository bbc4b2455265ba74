"""
Bridges from configuration definitions to kernel domain objects.

Configuration definitions carry no ids, owners or timestamps.  The
functions here attach those at instantiation time, so a template can be
installed on any number of accounts.
"""

from __future__ import annotations

from datetime import datetime

from policy_config.schema import (
    ConditionDef,
    MonitoringConfigDef,
    MonitoringRuleDef,
    StepDef,
    TriggerDef,
    WorkflowTemplateDef,
)
from policy_kernel.domain.conditions import Condition
from policy_kernel.domain.monitoring import (
    EscalationLevel,
    MonitoringConfig,
    MonitoringRule,
    RuleAction,
    RuleType,
)
from policy_kernel.domain.workflow import ApprovalStep, Trigger, TriggerType


def condition_from_def(definition: ConditionDef) -> Condition:
    return Condition(
        field=definition.field,
        operator=definition.operator,
        value=definition.value,
        logic=definition.logic,
    )


def trigger_from_def(definition: TriggerDef) -> Trigger:
    return Trigger(
        type=TriggerType(definition.type),
        conditions=tuple(condition_from_def(c) for c in definition.conditions),
    )


def step_from_def(definition: StepDef) -> ApprovalStep:
    return ApprovalStep(
        step_number=definition.step_number,
        name=definition.name,
        approver_roles=definition.approver_roles,
        approver_users=definition.approver_users,
        required_approvals=definition.required_approvals,
        timeout_hours=definition.timeout_hours,
        escalate_on_timeout=definition.escalate_on_timeout,
        escalate_to=definition.escalate_to,
    )


def template_steps(template: WorkflowTemplateDef) -> tuple[ApprovalStep, ...]:
    return tuple(step_from_def(s) for s in template.steps)


def template_triggers(template: WorkflowTemplateDef) -> tuple[Trigger, ...]:
    return tuple(trigger_from_def(t) for t in template.triggers)


def monitoring_rule_from_def(
    definition: MonitoringRuleDef,
    *,
    rule_id: str,
    created_by: str,
    now: datetime,
) -> MonitoringRule:
    return MonitoringRule(
        id=rule_id,
        name=definition.name,
        description=definition.description,
        type=RuleType(definition.type),
        conditions=tuple(condition_from_def(c) for c in definition.conditions),
        action=RuleAction(definition.action),
        priority=definition.priority,
        enabled=definition.enabled,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )


def monitoring_config_from_def(definition: MonitoringConfigDef) -> MonitoringConfig:
    return MonitoringConfig(
        real_time_monitoring=definition.real_time_monitoring,
        batch_processing_interval_seconds=definition.batch_processing_interval_seconds,
        alert_notifications=definition.alert_notifications,
        escalation_levels=tuple(
            EscalationLevel(
                level=lvl.level,
                after_minutes=lvl.after_minutes,
                notify_roles=lvl.notify_roles,
            )
            for lvl in definition.escalation_levels
        ),
        retention_days=definition.retention_days,
    )
