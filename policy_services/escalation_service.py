"""
policy_services.escalation_service -- Timeout-driven escalation sweep.

Responsibility:
    Visits every pending request whose step deadline has passed and
    applies the plan computed by ``policy_engines.escalation``: advance to
    the next step, notify the escalation roles and restart the window, or
    expire the request.

Architecture position:
    Services -- stateful orchestration.  Scheduling is not done here; the
    caller or ``EscalationScheduler`` decides when to sweep.

Invariants enforced:
    - Sweeps are serialized by a sweep lock; each item additionally holds
      its request lock, so a sweep never interleaves with a decision on
      the same request.
    - Each item is re-read under its lock and skipped unless it is still
      pending and still overdue.
    - Every plan sets a deadline strictly after ``now`` or retires the
      request, so a second sweep at the same instant changes nothing.

Failure modes:
    - OptimisticLockError from another writer is recorded as an
      unsuccessful ``EscalationResult`` for that item; the sweep carries on.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime

from policy_engines.escalation import EscalationPlan, is_overdue, plan_escalation
from policy_kernel.domain.approval import (
    ApprovalRequest,
    ApprovalStatus,
    EscalationAction,
    EscalationResult,
)
from policy_kernel.domain.clock import Clock, SystemClock
from policy_kernel.domain.events import PolicyEventType
from policy_kernel.exceptions import OptimisticLockError
from policy_kernel.logging_config import LogContext, get_logger
from policy_kernel.repositories.base import ApprovalRequestRepository, WorkflowRepository
from policy_kernel.services.event_bus import EventBus
from policy_kernel.services.locks import KeyedLocks

logger = get_logger("services.escalation")

SYSTEM_ACTOR = "system"


class EscalationSweeper:
    """Applies escalation plans to overdue pending requests."""

    def __init__(
        self,
        workflows: WorkflowRepository,
        requests: ApprovalRequestRepository,
        events: EventBus,
        clock: Clock | None = None,
        request_locks: KeyedLocks | None = None,
    ) -> None:
        self._workflows = workflows
        self._requests = requests
        self._events = events
        self._clock = clock or SystemClock()
        self._request_locks = (
            request_locks if request_locks is not None else KeyedLocks("request")
        )
        self._sweep_lock = threading.Lock()

    def process_escalations(self) -> list[EscalationResult]:
        """Run one sweep.  Returns one result per request acted on."""
        with self._sweep_lock:
            now = self._clock.now()
            results: list[EscalationResult] = []

            for candidate in self._requests.list_pending():
                if not is_overdue(candidate, now):
                    continue
                result = self._process_one(candidate.id, now)
                if result is not None:
                    results.append(result)

            logger.info(
                "escalation_sweep_completed",
                extra={
                    "processed": len(results),
                    "advanced": sum(
                        1 for r in results if r.action == EscalationAction.ADVANCED
                    ),
                    "notified": sum(
                        1 for r in results if r.action == EscalationAction.NOTIFIED
                    ),
                    "expired": sum(
                        1 for r in results if r.action == EscalationAction.EXPIRED
                    ),
                    "failed": sum(1 for r in results if not r.success),
                },
            )
            return results

    def _process_one(self, request_id: str, now: datetime) -> EscalationResult | None:
        with LogContext.bind(request_id=request_id), \
                self._request_locks.hold(request_id):
            request = self._requests.get(request_id)
            if (
                request is None
                or request.status != ApprovalStatus.PENDING
                or not is_overdue(request, now)
            ):
                return None

            workflow = self._workflows.get(request.workflow_id)
            plan = plan_escalation(workflow, request, now)
            updated = self._apply(request, plan, now)

            try:
                self._requests.save(updated, expected_version=request.version)
            except OptimisticLockError:
                logger.warning(
                    "escalation_conflict",
                    extra={"action": plan.action.value},
                    exc_info=True,
                )
                return EscalationResult(
                    request_id=request_id,
                    action=plan.action,
                    escalated_from=plan.from_step,
                    escalated_to=plan.to_step,
                    notified_roles=plan.notified_roles,
                    success=False,
                )

            logger.info(
                "approval_request_escalated",
                extra={
                    "action": plan.action.value,
                    "escalated_from": plan.from_step,
                    "escalated_to": plan.to_step,
                    "notified_roles": list(plan.notified_roles),
                },
            )

        self._emit(updated, plan)
        return EscalationResult(
            request_id=request_id,
            action=plan.action,
            escalated_from=plan.from_step,
            escalated_to=plan.to_step,
            notified_roles=plan.notified_roles,
        )

    @staticmethod
    def _apply(request: ApprovalRequest, plan: EscalationPlan, now: datetime) -> ApprovalRequest:
        if plan.action == EscalationAction.EXPIRED:
            return replace(
                request,
                status=ApprovalStatus.EXPIRED,
                completed_at=now,
                version=request.version + 1,
            )
        return replace(
            request,
            current_step=plan.to_step,
            expires_at=plan.expires_at,
            version=request.version + 1,
        )

    def _emit(self, request: ApprovalRequest, plan: EscalationPlan) -> None:
        if plan.action == EscalationAction.EXPIRED:
            action = "expire"
            details = {"step_number": plan.from_step, "reason": "timeout"}
        else:
            action = "escalate"
            details = {
                "from": plan.from_step,
                "to": plan.to_step,
                "notified_roles": list(plan.notified_roles),
                "notification_only": plan.action == EscalationAction.NOTIFIED,
                "reason": "timeout",
            }
        self._events.emit(
            PolicyEventType.APPROVAL_DECISION,
            account_id=request.account_id,
            actor_id=SYSTEM_ACTOR,
            action=action,
            resource="approval_request",
            resource_id=request.id,
            details=details,
        )
