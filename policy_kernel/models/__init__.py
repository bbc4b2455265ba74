"""SQLAlchemy ORM models.  Importing this package registers every table."""

from policy_kernel.models.approval import ApprovalDecisionModel, ApprovalRequestModel
from policy_kernel.models.monitoring import (
    MonitoringRuleModel,
    TransactionAlertModel,
    TransactionMonitorModel,
)
from policy_kernel.models.workflow import WorkflowModel

__all__ = [
    "ApprovalDecisionModel",
    "ApprovalRequestModel",
    "MonitoringRuleModel",
    "TransactionAlertModel",
    "TransactionMonitorModel",
    "WorkflowModel",
]
