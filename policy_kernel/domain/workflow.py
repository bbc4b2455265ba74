"""
Workflow domain types (``policy_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects describing approval workflows: ordered approval steps,
trigger groups, and the workflow lifecycle state machine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from ``domain/conditions``.

Invariants enforced
-------------------
* Steps are held sorted ascending by ``step_number`` with unique numbers
  (``Workflow.__post_init__`` sorts; ``validate_workflow_definition``
  reports duplicates).
* ``WORKFLOW_TRANSITIONS`` defines the only valid status changes.
  ``archived`` has no outgoing edges.
* A workflow may become ``active`` only with at least one step and at
  least one trigger.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from policy_kernel.domain.conditions import Condition


class WorkflowStatus(str, Enum):
    """Workflow lifecycle states."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


WORKFLOW_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.DRAFT: frozenset({
        WorkflowStatus.ACTIVE,
        WorkflowStatus.ARCHIVED,
    }),
    WorkflowStatus.ACTIVE: frozenset({
        WorkflowStatus.PAUSED,
        WorkflowStatus.ARCHIVED,
    }),
    WorkflowStatus.PAUSED: frozenset({
        WorkflowStatus.ACTIVE,
        WorkflowStatus.ARCHIVED,
    }),
    WorkflowStatus.ARCHIVED: frozenset(),
}


class TriggerType(str, Enum):
    """What kind of transaction attribute a trigger looks at."""

    TRANSACTION_AMOUNT = "transaction_amount"
    DESTINATION_TYPE = "destination_type"
    ASSET_TYPE = "asset_type"
    OPERATION_TYPE = "operation_type"
    TIME_BASED = "time_based"
    RISK_SCORE = "risk_score"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Trigger:
    """A conjunctive group of conditions.  A workflow fires on any trigger."""

    type: TriggerType
    conditions: tuple[Condition, ...] = ()


def _as_names(value: str | tuple[str, ...] | list[str] | None) -> tuple[str, ...]:
    # a bare string names one role or user
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class ApprovalStep:
    """One stage of a workflow.

    An approver qualifies when their role is in ``approver_roles`` OR their
    id is in ``approver_users``.  ``escalate_to`` lists roles notified when
    the last step times out.
    """

    step_number: int
    name: str
    approver_roles: tuple[str, ...] = ()
    approver_users: tuple[str, ...] = ()
    required_approvals: int = 1
    timeout_hours: float = 24
    escalate_on_timeout: bool = True
    escalate_to: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("approver_roles", "approver_users", "escalate_to"):
            object.__setattr__(self, name, _as_names(getattr(self, name)))


@dataclass(frozen=True)
class Workflow:
    """An approval policy owned by one account."""

    id: str
    account_id: str
    name: str
    description: str
    steps: tuple[ApprovalStep, ...]
    trigger_conditions: tuple[Trigger, ...]
    status: WorkflowStatus
    created_by: str
    created_at: datetime
    updated_at: datetime
    priority: int = 0
    version: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "steps", tuple(sorted(self.steps, key=lambda s: s.step_number))
        )

    @property
    def specificity(self) -> int:
        """Total number of conditions across all triggers."""
        return sum(len(t.conditions) for t in self.trigger_conditions)

    def get_step(self, step_number: int) -> ApprovalStep | None:
        for step in self.steps:
            if step.step_number == step_number:
                return step
        return None


@dataclass(frozen=True)
class WorkflowUpdate:
    """Partial edit of a workflow.  ``None`` means unchanged."""

    name: str | None = None
    description: str | None = None
    steps: tuple[ApprovalStep, ...] | None = None
    trigger_conditions: tuple[Trigger, ...] | None = None
    priority: int | None = None


def validate_workflow_definition(
    steps: tuple[ApprovalStep, ...],
    triggers: tuple[Trigger, ...],
    *,
    for_activation: bool,
) -> list[str]:
    """Return a list of problems with a workflow definition (empty if valid)."""
    errors: list[str] = []
    numbers = [s.step_number for s in steps]
    if len(numbers) != len(set(numbers)):
        errors.append("step numbers must be unique")
    for step in steps:
        if step.required_approvals < 1:
            errors.append(f"step {step.step_number}: required_approvals must be >= 1")
        if step.timeout_hours <= 0:
            errors.append(f"step {step.step_number}: timeout_hours must be > 0")
        if not step.approver_roles and not step.approver_users:
            errors.append(f"step {step.step_number}: no approver roles or users")
    if for_activation:
        if not steps:
            errors.append("workflow must have at least one step")
        if not triggers:
            errors.append("workflow must have at least one trigger")
    return errors
