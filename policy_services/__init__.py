"""
policy_services -- Package init and public API.

Responsibility:
    Stateful services that compose the pure ``policy_engines`` functions
    with the kernel's repositories, event bus and locks, plus the
    ``PolicyEngine`` composition root.

Architecture position:
    Services -- stateful orchestration over engines + kernel + config.

    Dependency direction:
        policy_services/ -> policy_engines/  (allowed)
        policy_services/ -> policy_kernel/   (allowed)
        policy_services/ -> policy_config/   (allowed)
        policy_engines/  -> policy_services/ (FORBIDDEN)
        policy_kernel/   -> policy_services/ (FORBIDDEN)
"""

from policy_services.approval_service import ApprovalService
from policy_services.escalation_scheduler import EscalationScheduler
from policy_services.escalation_service import EscalationSweeper
from policy_services.monitoring_service import MonitoringService
from policy_services.policy_engine import PolicyEngine
from policy_services.workflow_service import WorkflowService

__all__ = [
    "ApprovalService",
    "EscalationScheduler",
    "EscalationSweeper",
    "MonitoringService",
    "PolicyEngine",
    "WorkflowService",
]
