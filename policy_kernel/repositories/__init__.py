"""Storage ports and their in-memory / SQLAlchemy implementations."""

from policy_kernel.repositories.base import (
    AlertRepository,
    ApprovalRequestRepository,
    MonitorRepository,
    WorkflowRepository,
)
from policy_kernel.repositories.memory import (
    InMemoryAlertRepository,
    InMemoryApprovalRequestRepository,
    InMemoryMonitorRepository,
    InMemoryWorkflowRepository,
)

__all__ = [
    "AlertRepository",
    "ApprovalRequestRepository",
    "InMemoryAlertRepository",
    "InMemoryApprovalRequestRepository",
    "InMemoryMonitorRepository",
    "InMemoryWorkflowRepository",
    "MonitorRepository",
    "WorkflowRepository",
]
