"""
JSON serialization for policy definitions.

Workflow steps, triggers, monitoring rules and free-form metadata are
stored as JSON documents.  Condition values may be ``Decimal``, so values
are written with a tag (``{"$decimal": "100000"}``) and decoded back to the
same Python type.  ``canonicalize_json`` gives the deterministic form used
for configuration checksums.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from policy_kernel.domain.conditions import Condition, ConditionOperator
from policy_kernel.domain.monitoring import EscalationLevel, MonitoringConfig
from policy_kernel.domain.workflow import ApprovalStep, Trigger, TriggerType

_DECIMAL_TAG = "$decimal"
_DATETIME_TAG = "$datetime"


def encode_value(value: Any) -> Any:
    """Convert a Python value into a tagged JSON-compatible structure."""
    if isinstance(value, Decimal):
        return {_DECIMAL_TAG: str(value)}
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Inverse of ``encode_value``.  Lists come back as lists."""
    if isinstance(value, dict):
        if set(value) == {_DECIMAL_TAG}:
            return Decimal(value[_DECIMAL_TAG])
        if set(value) == {_DATETIME_TAG}:
            return datetime.fromisoformat(value[_DATETIME_TAG])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Domain codecs
# ---------------------------------------------------------------------------


def condition_to_dict(condition: Condition) -> dict[str, Any]:
    operator = condition.operator
    return {
        "field": condition.field,
        "operator": operator.value if isinstance(operator, ConditionOperator) else operator,
        "value": encode_value(condition.value),
        "logic": condition.logic.value if condition.logic else None,
    }


def condition_from_dict(data: dict[str, Any]) -> Condition:
    return Condition(
        field=data["field"],
        operator=data["operator"],
        value=decode_value(data.get("value")),
        logic=data.get("logic"),
    )


def trigger_to_dict(trigger: Trigger) -> dict[str, Any]:
    return {
        "type": trigger.type.value,
        "conditions": [condition_to_dict(c) for c in trigger.conditions],
    }


def trigger_from_dict(data: dict[str, Any]) -> Trigger:
    return Trigger(
        type=TriggerType(data["type"]),
        conditions=tuple(condition_from_dict(c) for c in data.get("conditions", [])),
    )


def step_to_dict(step: ApprovalStep) -> dict[str, Any]:
    return {
        "step_number": step.step_number,
        "name": step.name,
        "approver_roles": list(step.approver_roles),
        "approver_users": list(step.approver_users),
        "required_approvals": step.required_approvals,
        "timeout_hours": step.timeout_hours,
        "escalate_on_timeout": step.escalate_on_timeout,
        "escalate_to": list(step.escalate_to),
    }


def step_from_dict(data: dict[str, Any]) -> ApprovalStep:
    return ApprovalStep(
        step_number=int(data["step_number"]),
        name=data["name"],
        approver_roles=tuple(data.get("approver_roles", ())),
        approver_users=tuple(data.get("approver_users", ())),
        required_approvals=int(data.get("required_approvals", 1)),
        timeout_hours=data.get("timeout_hours", 24),
        escalate_on_timeout=bool(data.get("escalate_on_timeout", True)),
        escalate_to=tuple(data.get("escalate_to", ())),
    )


def monitoring_config_to_dict(config: MonitoringConfig) -> dict[str, Any]:
    return {
        "real_time_monitoring": config.real_time_monitoring,
        "batch_processing_interval_seconds": config.batch_processing_interval_seconds,
        "alert_notifications": config.alert_notifications,
        "escalation_levels": [
            {
                "level": lvl.level,
                "after_minutes": lvl.after_minutes,
                "notify_roles": list(lvl.notify_roles),
            }
            for lvl in config.escalation_levels
        ],
        "retention_days": config.retention_days,
    }


def monitoring_config_from_dict(data: dict[str, Any]) -> MonitoringConfig:
    return MonitoringConfig(
        real_time_monitoring=bool(data.get("real_time_monitoring", True)),
        batch_processing_interval_seconds=int(
            data.get("batch_processing_interval_seconds", 3600)
        ),
        alert_notifications=bool(data.get("alert_notifications", True)),
        escalation_levels=tuple(
            EscalationLevel(
                level=int(lvl["level"]),
                after_minutes=int(lvl["after_minutes"]),
                notify_roles=tuple(lvl.get("notify_roles", ())),
            )
            for lvl in data.get("escalation_levels", [])
        ),
        retention_days=int(data.get("retention_days", 365)),
    )


# ---------------------------------------------------------------------------
# Canonical form
# ---------------------------------------------------------------------------


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, normalized Decimals."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: Any) -> str:
    """Hex SHA-256 of the canonical JSON form."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()
