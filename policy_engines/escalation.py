"""
policy_engines.escalation -- Decide what happens to an overdue request.

Responsibility:
    Given a pending request whose deadline has passed, its workflow, and the
    current time, produce an ``EscalationPlan``: advance to the next step,
    notify the escalation roles and restart the window, or expire.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Decision table (first match wins):
        1. current step missing or ``escalate_on_timeout`` false -> EXPIRED
        2. a next step exists -> ADVANCED, deadline = now + next.timeout
        3. ``escalate_to`` non-empty -> NOTIFIED, same step,
           deadline = now + current.timeout
        4. otherwise -> EXPIRED
    - Every new deadline is strictly after ``now``, so a plan applied at
      ``now`` leaves the request ineligible for an immediate second sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from policy_engines.approval import next_step, step_deadline
from policy_kernel.domain.approval import ApprovalRequest, EscalationAction
from policy_kernel.domain.workflow import Workflow


@dataclass(frozen=True)
class EscalationPlan:
    action: EscalationAction
    from_step: int
    to_step: int | None
    expires_at: datetime | None
    notified_roles: tuple[str, ...]


def is_overdue(request: ApprovalRequest, now: datetime) -> bool:
    return now > request.expires_at


def plan_escalation(
    workflow: Workflow | None,
    request: ApprovalRequest,
    now: datetime,
) -> EscalationPlan:
    """Plan the handling of an overdue pending request."""
    current = workflow.get_step(request.current_step) if workflow is not None else None

    if current is None or not current.escalate_on_timeout:
        return _expire(request)

    successor = next_step(workflow, current.step_number)
    if successor is not None:
        return EscalationPlan(
            action=EscalationAction.ADVANCED,
            from_step=current.step_number,
            to_step=successor.step_number,
            expires_at=step_deadline(now, successor),
            notified_roles=tuple(successor.approver_roles),
        )

    if current.escalate_to:
        return EscalationPlan(
            action=EscalationAction.NOTIFIED,
            from_step=current.step_number,
            to_step=current.step_number,
            expires_at=step_deadline(now, current),
            notified_roles=tuple(current.escalate_to),
        )

    return _expire(request)


def _expire(request: ApprovalRequest) -> EscalationPlan:
    return EscalationPlan(
        action=EscalationAction.EXPIRED,
        from_step=request.current_step,
        to_step=None,
        expires_at=None,
        notified_roles=(),
    )
