"""
Policy events (``policy_kernel.domain.events``).

Responsibility
--------------
The immutable event record delivered to subscribers whenever a workflow,
approval request, or alert changes.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  Delivery lives in
``policy_kernel.services.event_bus``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PolicyEventType(str, Enum):
    APPROVAL_REQUESTED = "approval_requested"
    APPROVAL_DECISION = "approval_decision"
    WORKFLOW_UPDATED = "workflow_updated"
    ALERT_GENERATED = "alert_generated"
    ALERT_RESOLVED = "alert_resolved"
    ALERT_ESCALATED = "alert_escalated"
    SAR_FILED = "sar_filed"


@dataclass(frozen=True)
class PolicyEvent:
    """One state change, as seen by subscribers.

    ``action`` names the operation (``approve``, ``step_completed``,
    ``escalate``, ``activate_workflow``, ...); ``resource`` names the
    entity kind and ``resource_id`` its id.
    """

    id: str
    timestamp: datetime
    type: PolicyEventType
    account_id: str
    actor_id: str
    action: str
    resource: str
    resource_id: str
    actor_role: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
