"""
policy_engines.approval -- Pure approval step arithmetic.

Responsibility:
    Authorization of an approver at a step, quorum counting, successor-step
    lookup, and deadline computation for the approval state machine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import policy_kernel/domain/ types.  The current time is a
    parameter, never read from a clock here.

Invariants enforced:
    - An approver qualifies by role OR by explicit user id.
    - Quorum counts only ``approved`` decisions recorded at the given step.
    - The successor of a step is the next step in ascending step_number
      order, which need not be ``step_number + 1``.
    - A step's deadline is computed when the step becomes current.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from policy_kernel.domain.approval import ApprovalDecision, ApprovalRequest
from policy_kernel.domain.workflow import ApprovalStep, Workflow


def is_authorized(step: ApprovalStep, approver_id: str, approver_role: str) -> bool:
    """Whether the approver may decide at ``step``."""
    return approver_role in step.approver_roles or approver_id in step.approver_users


def approved_count(request: ApprovalRequest, step_number: int) -> int:
    """Number of ``approved`` decisions recorded at ``step_number``."""
    return sum(
        1
        for d in request.decisions_for_step(step_number)
        if d.decision == ApprovalDecision.APPROVED
    )


def quorum_reached(step: ApprovalStep, request: ApprovalRequest) -> bool:
    return approved_count(request, step.step_number) >= step.required_approvals


def next_step(workflow: Workflow, step_number: int) -> ApprovalStep | None:
    """The step following ``step_number`` in ascending order, if any."""
    for step in workflow.steps:
        if step.step_number > step_number:
            return step
    return None


def step_deadline(now: datetime, step: ApprovalStep) -> datetime:
    """Deadline for a step that becomes current at ``now``."""
    return now + timedelta(hours=step.timeout_hours)


def estimate_minutes(workflow: Workflow) -> float:
    """Worst-case time to completion: the sum of every step timeout."""
    return sum(step.timeout_hours for step in workflow.steps) * 60
