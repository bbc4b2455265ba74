"""Builders for workflow steps and triggers shared across test modules."""

from decimal import Decimal

from policy_kernel.domain.conditions import Condition
from policy_kernel.domain.workflow import ApprovalStep, Trigger, TriggerType


def make_step(
    step_number: int = 1,
    roles: tuple[str, ...] = ("risk_manager",),
    users: tuple[str, ...] = (),
    required: int = 1,
    timeout_hours: float = 4,
    escalate_on_timeout: bool = True,
    escalate_to: tuple[str, ...] = (),
    name: str | None = None,
) -> ApprovalStep:
    return ApprovalStep(
        step_number=step_number,
        name=name or f"Step {step_number}",
        approver_roles=roles,
        approver_users=users,
        required_approvals=required,
        timeout_hours=timeout_hours,
        escalate_on_timeout=escalate_on_timeout,
        escalate_to=escalate_to,
    )


def amount_trigger(threshold="100000", operator="greater_than") -> Trigger:
    return Trigger(
        type=TriggerType.TRANSACTION_AMOUNT,
        conditions=(Condition("amount", operator, Decimal(str(threshold))),),
    )


def destination_trigger(destination_type="external") -> Trigger:
    return Trigger(
        type=TriggerType.DESTINATION_TYPE,
        conditions=(Condition("destinationType", "equals", destination_type),),
    )
