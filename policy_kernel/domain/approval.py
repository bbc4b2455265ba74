"""
Approval domain types (``policy_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for multi-step approval requests: the request
lifecycle state machine, decision records, and the results returned by
approval, evaluation and escalation operations.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from other ``domain/`` modules.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only valid status transitions.
  Terminal states have no outgoing edges, so a retired request is
  immutable.
* ``ApprovalRequest.approvals`` is an append-only tuple; the service never
  records two decisions with the same ``(step_number, approver_id)``.
* ``current_step`` names a step of the workflow while the request is
  pending.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from policy_kernel.domain.workflow import ApprovalStep, Trigger, Workflow


# =========================================================================
# Approval Status Lifecycle
# =========================================================================


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.EXPIRED,
        ApprovalStatus.CANCELLED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.EXPIRED: frozenset(),
    ApprovalStatus.CANCELLED: frozenset(),
}

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.EXPIRED,
    ApprovalStatus.CANCELLED,
})


class ApprovalDecision(str, Enum):
    """Decision types an approver can record."""

    APPROVED = "approved"
    REJECTED = "rejected"


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class ApprovalDecisionRecord:
    """Immutable record of one approver's decision on one step."""

    step_number: int
    approver_id: str
    approver_role: str
    decision: ApprovalDecision
    timestamp: datetime
    comments: str | None = None
    signature: str | None = None


@dataclass(frozen=True)
class ApprovalRequest:
    """A running instance of a workflow gating one transaction."""

    id: str
    workflow_id: str
    account_id: str
    transaction_id: str
    current_step: int
    status: ApprovalStatus
    requested_by: str
    requested_at: datetime
    expires_at: datetime
    approvals: tuple[ApprovalDecisionRecord, ...] = ()
    completed_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    version: int = 1

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPROVAL_STATUSES

    def decisions_for_step(self, step_number: int) -> tuple[ApprovalDecisionRecord, ...]:
        return tuple(d for d in self.approvals if d.step_number == step_number)

    def has_decided(self, step_number: int, approver_id: str) -> bool:
        return any(
            d.step_number == step_number and d.approver_id == approver_id
            for d in self.approvals
        )


# =========================================================================
# Operation results
# =========================================================================


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of an approve/reject/cancel call."""

    request: ApprovalRequest
    is_complete: bool
    next_step: ApprovalStep | None = None


@dataclass(frozen=True)
class ApprovalEvaluation:
    """Whether a transaction must go through an approval workflow."""

    requires_approval: bool
    matched_workflow: Workflow | None = None
    matched_triggers: tuple[Trigger, ...] = ()
    estimated_steps: int = 0
    estimated_time_minutes: float = 0


@dataclass(frozen=True)
class RequestFilters:
    """Filters for listing an account's approval requests."""

    status: ApprovalStatus | None = None
    workflow_id: str | None = None
    requested_by: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int | None = None


# =========================================================================
# Escalation
# =========================================================================


class EscalationAction(str, Enum):
    """What the sweeper did to an overdue request."""

    ADVANCED = "advanced"
    NOTIFIED = "notified"
    EXPIRED = "expired"


@dataclass(frozen=True)
class EscalationResult:
    """One overdue request handled by a sweep."""

    request_id: str
    action: EscalationAction
    escalated_from: int
    escalated_to: int | None
    notified_roles: tuple[str, ...]
    success: bool = True
