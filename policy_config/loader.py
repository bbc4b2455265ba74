"""
Configuration Loader (``policy_config.loader``).

Responsibility
--------------
Loads a YAML configuration document and parses it into typed
``policy_config.schema`` dataclass instances.  Runtime callers go through
the functions in ``policy_config`` instead of calling this directly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel only for
the condition vocabulary used to validate operators.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Condition operators must be known spellings (aliases included); trigger
  types, rule types and actions must be known enum values.
* YAML floats in condition values become ``Decimal`` via ``str``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown operator/type/action  -> ``ValueError``.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from policy_config.schema import (
    ConditionDef,
    EngineSettings,
    EscalationLevelDef,
    MonitoringConfigDef,
    MonitoringRuleDef,
    PolicyConfigurationSet,
    StepDef,
    TriggerDef,
    WorkflowTemplateDef,
)
from policy_kernel.domain.conditions import ConditionLogic, ConditionOperator, normalize_operator
from policy_kernel.domain.monitoring import RuleAction, RuleType
from policy_kernel.domain.workflow import TriggerType
from policy_kernel.logging_config import get_logger
from policy_kernel.utils.serialization import hash_payload

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_value(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, list):
        return [_parse_value(v) for v in value]
    return value


def _require_enum(enum_cls: type, raw: str, what: str) -> str:
    try:
        return enum_cls(raw).value
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"Unknown {what} {raw!r} (expected one of: {allowed})") from None


def parse_condition(data: dict[str, Any]) -> ConditionDef:
    """
    Parse a ``ConditionDef`` from a dict.

    Raises:
        KeyError: if ``field`` or ``operator`` is missing.
        ValueError: if the operator or logic is unknown.
    """
    operator = normalize_operator(data["operator"])
    if not isinstance(operator, ConditionOperator):
        raise ValueError(
            f"Unknown operator {data['operator']!r} on field {data['field']!r}"
        )
    logic = data.get("logic")
    if logic is not None:
        logic = _require_enum(ConditionLogic, logic, "condition logic")
        if logic == ConditionLogic.OR.value:
            logger.warning(
                "condition_logic_ignored",
                extra={"field": data["field"], "logic": logic},
            )
    return ConditionDef(
        field=data["field"],
        operator=operator.value,
        value=_parse_value(data.get("value")),
        logic=logic,
    )


def parse_trigger(data: dict[str, Any]) -> TriggerDef:
    return TriggerDef(
        type=_require_enum(TriggerType, data["type"], "trigger type"),
        conditions=tuple(parse_condition(c) for c in data.get("conditions", [])),
    )


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def parse_step(data: dict[str, Any]) -> StepDef:
    return StepDef(
        step_number=int(data["step_number"]),
        name=data["name"],
        approver_roles=_as_tuple(data.get("approver_roles")),
        approver_users=_as_tuple(data.get("approver_users")),
        required_approvals=int(data.get("required_approvals", 1)),
        timeout_hours=data.get("timeout_hours", 24),
        escalate_on_timeout=bool(data.get("escalate_on_timeout", True)),
        escalate_to=_as_tuple(data.get("escalate_to")),
    )


def parse_workflow_template(data: dict[str, Any]) -> WorkflowTemplateDef:
    """
    Parse a ``WorkflowTemplateDef`` from a dict.

    Raises:
        KeyError: if ``name``, ``triggers`` or ``steps`` is missing.
    """
    return WorkflowTemplateDef(
        name=data["name"],
        description=data.get("description", ""),
        triggers=tuple(parse_trigger(t) for t in data["triggers"]),
        steps=tuple(parse_step(s) for s in data["steps"]),
        priority=int(data.get("priority", 0)),
    )


def parse_monitoring_rule(data: dict[str, Any]) -> MonitoringRuleDef:
    return MonitoringRuleDef(
        name=data["name"],
        description=data.get("description", ""),
        type=_require_enum(RuleType, data["type"], "rule type"),
        conditions=tuple(parse_condition(c) for c in data.get("conditions", [])),
        action=_require_enum(RuleAction, data["action"], "rule action"),
        priority=int(data["priority"]),
        enabled=bool(data.get("enabled", True)),
    )


def parse_monitoring_config(data: dict[str, Any]) -> MonitoringConfigDef:
    return MonitoringConfigDef(
        real_time_monitoring=bool(data.get("real_time_monitoring", True)),
        batch_processing_interval_seconds=int(
            data.get("batch_processing_interval_seconds", 3600)
        ),
        alert_notifications=bool(data.get("alert_notifications", True)),
        retention_days=int(data.get("retention_days", 365)),
        escalation_levels=tuple(
            EscalationLevelDef(
                level=int(lvl["level"]),
                after_minutes=int(lvl["after_minutes"]),
                notify_roles=_as_tuple(lvl.get("notify_roles")),
            )
            for lvl in data.get("escalation_levels", [])
        ),
    )


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    return EngineSettings(
        database_url=data.get("database_url", "sqlite:///:memory:"),
        sweep_interval_seconds=int(data.get("sweep_interval_seconds", 60)),
        risk_score_cap=Decimal(str(data.get("risk_score_cap", 100))),
        monitoring=parse_monitoring_config(data.get("monitoring", {})),
    )


def parse_configuration_set(data: dict[str, Any]) -> PolicyConfigurationSet:
    """Parse a whole configuration document."""
    return PolicyConfigurationSet(
        config_id=data.get("config_id", "unnamed"),
        version=int(data.get("version", 1)),
        settings=parse_settings(data.get("settings", {})),
        workflow_templates=tuple(
            parse_workflow_template(t) for t in data.get("workflow_templates", [])
        ),
        monitoring_rules=tuple(
            parse_monitoring_rule(r) for r in data.get("monitoring_rules", [])
        ),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    return hash_payload(data)
