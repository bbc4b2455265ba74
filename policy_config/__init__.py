"""
policy_config -- public entrypoint for policy engine configuration.

Responsibility:
    Provides the way to obtain configuration at runtime:
    ``get_policy_configuration()`` for the whole parsed document, plus the
    narrower ``get_engine_settings()``, ``load_workflow_templates()`` and
    ``load_monitoring_rules()``.  YAML loading itself is internal.

Architecture position:
    Configuration -- YAML-driven, parsed into frozen definitions.  This
    package sits above ``policy_kernel`` and below ``policy_services``.
    The kernel MUST NEVER import from ``policy_config``; the bridges in
    this package translate definitions into kernel domain objects.

Invariants enforced:
    - Deterministic parsing: the same YAML always yields the same
      definitions and the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ValueError`` / ``KeyError`` -- schema violations.

Audit relevance:
    Every ``get_policy_configuration()`` call emits a
    ``POLICY_CONFIG_TRACE`` log entry with the config id, version,
    checksum, template count and rule count.
"""

from __future__ import annotations

from pathlib import Path

from policy_config.loader import load_yaml_file, parse_configuration_set
from policy_config.schema import (
    EngineSettings,
    MonitoringRuleDef,
    PolicyConfigurationSet,
    WorkflowTemplateDef,
)
from policy_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "defaults.yaml"


def get_policy_configuration(config_path: Path | None = None) -> PolicyConfigurationSet:
    """Load and parse a configuration document.

    Args:
        config_path: YAML file to load.  Defaults to the bundled
            ``sets/defaults.yaml``.

    Returns:
        PolicyConfigurationSet with its checksum populated.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    config_set = parse_configuration_set(load_yaml_file(path))

    _logger.info(
        "POLICY_CONFIG_TRACE",
        extra={
            "trace_type": "POLICY_CONFIG_TRACE",
            "config_id": config_set.config_id,
            "config_version": config_set.version,
            "checksum": config_set.checksum,
            "workflow_template_count": len(config_set.workflow_templates),
            "monitoring_rule_count": len(config_set.monitoring_rules),
            "source": str(path),
        },
    )
    return config_set


def get_engine_settings(config_path: Path | None = None) -> EngineSettings:
    return get_policy_configuration(config_path).settings


def load_workflow_templates(
    config_path: Path | None = None,
) -> tuple[WorkflowTemplateDef, ...]:
    return get_policy_configuration(config_path).workflow_templates


def load_monitoring_rules(
    config_path: Path | None = None,
) -> tuple[MonitoringRuleDef, ...]:
    return get_policy_configuration(config_path).monitoring_rules


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "MonitoringRuleDef",
    "PolicyConfigurationSet",
    "WorkflowTemplateDef",
    "get_engine_settings",
    "get_policy_configuration",
    "load_monitoring_rules",
    "load_workflow_templates",
]
