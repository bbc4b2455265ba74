"""
Pure domain layer.

This module contains pure value objects and state-machine tables
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock interface)
- I/O

All domain objects are immutable frozen dataclasses.
"""

from policy_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalDecision,
    ApprovalDecisionRecord,
    ApprovalEvaluation,
    ApprovalRequest,
    ApprovalResult,
    ApprovalStatus,
    EscalationAction,
    EscalationResult,
    RequestFilters,
)
from policy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from policy_kernel.domain.conditions import (
    Condition,
    ConditionLogic,
    ConditionOperator,
    TransactionContext,
)
from policy_kernel.domain.events import PolicyEvent, PolicyEventType
from policy_kernel.domain.monitoring import (
    AlertFilters,
    AlertSeverity,
    AlertStatus,
    AlertType,
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
from policy_kernel.domain.workflow import (
    WORKFLOW_TRANSITIONS,
    ApprovalStep,
    Trigger,
    TriggerType,
    Workflow,
    WorkflowStatus,
    WorkflowUpdate,
)

__all__ = [
    "APPROVAL_TRANSITIONS",
    "TERMINAL_APPROVAL_STATUSES",
    "WORKFLOW_TRANSITIONS",
    "AlertFilters",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "ApprovalDecision",
    "ApprovalDecisionRecord",
    "ApprovalEvaluation",
    "ApprovalRequest",
    "ApprovalResult",
    "ApprovalStatus",
    "ApprovalStep",
    "Clock",
    "Condition",
    "ConditionLogic",
    "ConditionOperator",
    "DeterministicClock",
    "EscalationAction",
    "EscalationResult",
    "MonitoringConfig",
    "MonitoringRule",
    "MonitoringStatistics",
    "PolicyEvent",
    "PolicyEventType",
    "RequestFilters",
    "RuleAction",
    "RuleType",
    "SarDetails",
    "SarResult",
    "SystemClock",
    "TransactionAlert",
    "TransactionCheckResult",
    "TransactionContext",
    "TransactionMonitor",
    "Trigger",
    "TriggerType",
    "Workflow",
    "WorkflowStatus",
    "WorkflowUpdate",
]
