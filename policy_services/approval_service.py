"""
policy_services.approval_service -- Multi-step approval request lifecycle.

Responsibility:
    Decides whether a transaction needs approval, opens approval requests
    against active workflows, and records approvals, rejections and
    cancellations.  Quorum, authorization and step succession rules are
    delegated to the pure ``policy_engines.approval`` functions.

Architecture position:
    Services -- stateful orchestration over the workflow and request
    repositories.

Invariants enforced:
    - Requests are created only on ``active`` workflows and start at the
      first step, with ``expires_at`` computed from that step's timeout.
    - Decision checks run in a fixed order: not found, not pending, past
      deadline, workflow/step missing, unauthorized, already decided.
    - A decision past the deadline retires the request as ``expired``
      before the error is raised.
    - One decision per ``(step_number, approver_id)``.
    - A request leaves ``pending`` exactly once.
    - approve/reject/cancel on one request are serialized by a
      per-request lock; request creation is serialized per account.

Failure modes:
    - ApprovalRequestNotFoundError, WorkflowNotFoundError,
      ApprovalStepNotFoundError for missing entities.
    - WorkflowNotActiveError when opening a request on a non-active workflow.
    - ApprovalAlreadyResolvedError when the request is no longer pending.
    - ApprovalExpiredError when the step deadline has passed.
    - UnauthorizedApproverError when neither role nor id qualifies.
    - AlreadyDecidedError on a repeat decision at the same step.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from policy_engines.approval import (
    approved_count,
    estimate_minutes,
    is_authorized,
    next_step,
    quorum_reached,
    step_deadline,
)
from policy_engines.trigger_matching import select_workflow
from policy_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalDecisionRecord,
    ApprovalEvaluation,
    ApprovalRequest,
    ApprovalResult,
    ApprovalStatus,
    RequestFilters,
)
from policy_kernel.domain.clock import Clock, SystemClock
from policy_kernel.domain.conditions import TransactionContext
from policy_kernel.domain.events import PolicyEventType
from policy_kernel.domain.workflow import ApprovalStep, Workflow, WorkflowStatus
from policy_kernel.exceptions import (
    AlreadyDecidedError,
    ApprovalAlreadyResolvedError,
    ApprovalExpiredError,
    ApprovalRequestNotFoundError,
    ApprovalStepNotFoundError,
    UnauthorizedApproverError,
    WorkflowNotActiveError,
    WorkflowNotFoundError,
)
from policy_kernel.logging_config import LogContext, get_logger
from policy_kernel.repositories.base import ApprovalRequestRepository, WorkflowRepository
from policy_kernel.services.event_bus import EventBus
from policy_kernel.services.locks import KeyedLocks
from policy_kernel.utils.ids import REQUEST_PREFIX, IdGenerator

logger = get_logger("services.approval")

SYSTEM_ACTOR = "system"


class ApprovalService:
    """Manages approval request/decision lifecycle."""

    def __init__(
        self,
        workflows: WorkflowRepository,
        requests: ApprovalRequestRepository,
        events: EventBus,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        request_locks: KeyedLocks | None = None,
        account_locks: KeyedLocks | None = None,
    ) -> None:
        self._workflows = workflows
        self._requests = requests
        self._events = events
        self._clock = clock or SystemClock()
        self._ids = id_generator or IdGenerator()
        self._request_locks = (
            request_locks if request_locks is not None else KeyedLocks("request")
        )
        self._account_locks = (
            account_locks if account_locks is not None else KeyedLocks("account")
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def find_matching_workflow(
        self,
        account_id: str,
        tx: TransactionContext,
    ) -> Workflow | None:
        """The active workflow that gates ``tx``, or ``None``."""
        selection = select_workflow(
            workflows=self._workflows.list_for_account(account_id),
            tx=tx,
        )
        logger.info(
            "POLICY_TRIGGER_TRACE",
            extra={
                "trace_type": "POLICY_TRIGGER_TRACE",
                "account_id": account_id,
                "transaction_id": tx.id,
                "admissible_workflows": list(selection.admissible),
                "selected_workflow": (
                    selection.workflow.id if selection.workflow else None
                ),
                "matched_trigger_count": len(selection.matched_triggers),
                "reason": selection.reason,
            },
        )
        return selection.workflow

    def should_trigger_approval(
        self,
        account_id: str,
        tx: TransactionContext,
    ) -> ApprovalEvaluation:
        selection = select_workflow(
            workflows=self._workflows.list_for_account(account_id),
            tx=tx,
        )
        workflow = selection.workflow
        if workflow is None:
            return ApprovalEvaluation(requires_approval=False)

        return ApprovalEvaluation(
            requires_approval=True,
            matched_workflow=workflow,
            matched_triggers=selection.matched_triggers,
            estimated_steps=len(workflow.steps),
            estimated_time_minutes=estimate_minutes(workflow),
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def create_request(
        self,
        workflow_id: str,
        transaction_id: str,
        requested_by: str,
        metadata: dict[str, Any] | None = None,
    ) -> ApprovalRequest:
        """Open a request at the workflow's first step."""
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        with self._account_locks.hold(workflow.account_id):
            workflow = self._workflows.get(workflow_id)
            if workflow is None:
                raise WorkflowNotFoundError(workflow_id)
            if workflow.status != WorkflowStatus.ACTIVE:
                raise WorkflowNotActiveError(workflow_id, workflow.status.value)

            first = workflow.steps[0]
            now = self._clock.now()
            request = ApprovalRequest(
                id=self._ids.new_id(REQUEST_PREFIX),
                workflow_id=workflow_id,
                account_id=workflow.account_id,
                transaction_id=transaction_id,
                current_step=first.step_number,
                status=ApprovalStatus.PENDING,
                requested_by=requested_by,
                requested_at=now,
                expires_at=step_deadline(now, first),
                metadata=dict(metadata or {}),
            )
            self._requests.add(request)

        self._events.emit(
            PolicyEventType.APPROVAL_REQUESTED,
            account_id=request.account_id,
            actor_id=requested_by,
            action="create_request",
            resource="approval_request",
            resource_id=request.id,
            details={"workflow_name": workflow.name, "transaction_id": transaction_id},
        )
        logger.info(
            "approval_request_created",
            extra={
                "request_id": request.id,
                "workflow_id": workflow_id,
                "account_id": request.account_id,
                "transaction_id": transaction_id,
                "current_step": request.current_step,
                "expires_at": request.expires_at,
            },
        )
        return request

    def get_request(self, request_id: str) -> ApprovalRequest | None:
        return self._requests.get(request_id)

    def list_requests(
        self,
        account_id: str,
        filters: RequestFilters | None = None,
    ) -> list[ApprovalRequest]:
        """The account's requests, newest first.  ``limit`` applies last."""
        filters = filters or RequestFilters()
        requests = self._requests.list_for_account(account_id)

        if filters.status is not None:
            requests = [r for r in requests if r.status == filters.status]
        if filters.workflow_id is not None:
            requests = [r for r in requests if r.workflow_id == filters.workflow_id]
        if filters.requested_by is not None:
            requests = [r for r in requests if r.requested_by == filters.requested_by]
        if filters.start_date is not None:
            requests = [r for r in requests if r.requested_at >= filters.start_date]
        if filters.end_date is not None:
            requests = [r for r in requests if r.requested_at <= filters.end_date]

        # Stable sort over creation order; same-instant requests list newest first.
        requests = list(reversed(requests))
        requests.sort(key=lambda r: r.requested_at, reverse=True)

        if filters.limit is not None:
            requests = requests[: filters.limit]
        return requests

    def get_pending_requests(
        self,
        approver_id: str,
        approver_role: str,
    ) -> list[ApprovalRequest]:
        """Pending requests the approver may decide on and has not yet."""
        result: list[ApprovalRequest] = []
        for request in self._requests.list_pending():
            workflow = self._workflows.get(request.workflow_id)
            if workflow is None:
                continue
            step = workflow.get_step(request.current_step)
            if step is None:
                continue
            if not is_authorized(step, approver_id, approver_role):
                continue
            if request.has_decided(request.current_step, approver_id):
                continue
            result.append(request)
        return result

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def approve(
        self,
        request_id: str,
        approver_id: str,
        approver_role: str,
        comments: str | None = None,
        signature: str | None = None,
    ) -> ApprovalResult:
        """Record an approval at the current step.

        When the step's quorum is reached the request advances to the next
        step with a fresh deadline, or finishes as ``approved`` if this was
        the last step.
        """
        with LogContext.bind(request_id=request_id, actor_id=approver_id), \
                self._request_locks.hold(request_id):
            request, workflow, step = self._check_decision(
                request_id, approver_id, approver_role,
            )

            now = self._clock.now()
            record = ApprovalDecisionRecord(
                step_number=step.step_number,
                approver_id=approver_id,
                approver_role=approver_role,
                decision=ApprovalDecision.APPROVED,
                timestamp=now,
                comments=comments,
                signature=signature,
            )
            decided = replace(request, approvals=request.approvals + (record,))

            successor: ApprovalStep | None = None
            if not quorum_reached(step, decided):
                updated = replace(decided, version=request.version + 1)
                action = "approve"
                details: dict[str, Any] = {
                    "step_number": step.step_number,
                    "approvals": approved_count(decided, step.step_number),
                    "required_approvals": step.required_approvals,
                    "comments": comments,
                }
            else:
                successor = next_step(workflow, step.step_number)
                if successor is not None:
                    updated = replace(
                        decided,
                        current_step=successor.step_number,
                        expires_at=step_deadline(now, successor),
                        version=request.version + 1,
                    )
                    action = "step_completed"
                    details = {
                        "step_number": step.step_number,
                        "next_step": successor.step_number,
                    }
                else:
                    updated = replace(
                        decided,
                        status=ApprovalStatus.APPROVED,
                        completed_at=now,
                        version=request.version + 1,
                    )
                    action = "request_approved"
                    details = {"total_steps": len(workflow.steps)}

            self._requests.save(updated, expected_version=request.version)

            logger.info(
                "approval_decision_recorded",
                extra={
                    "decision": ApprovalDecision.APPROVED.value,
                    "step_number": step.step_number,
                    "outcome": action,
                    "new_status": updated.status.value,
                    "current_step": updated.current_step,
                },
            )

        self._emit_decision(updated, approver_id, approver_role, action, details)
        return ApprovalResult(
            request=updated,
            is_complete=updated.status == ApprovalStatus.APPROVED,
            next_step=successor,
        )

    def reject(
        self,
        request_id: str,
        approver_id: str,
        approver_role: str,
        reason: str,
    ) -> ApprovalResult:
        """Record a rejection.  One authorized rejection ends the request."""
        with LogContext.bind(request_id=request_id, actor_id=approver_id), \
                self._request_locks.hold(request_id):
            request, _workflow, step = self._check_decision(
                request_id, approver_id, approver_role,
            )

            now = self._clock.now()
            record = ApprovalDecisionRecord(
                step_number=step.step_number,
                approver_id=approver_id,
                approver_role=approver_role,
                decision=ApprovalDecision.REJECTED,
                timestamp=now,
                comments=reason,
            )
            updated = replace(
                request,
                approvals=request.approvals + (record,),
                status=ApprovalStatus.REJECTED,
                completed_at=now,
                version=request.version + 1,
            )
            self._requests.save(updated, expected_version=request.version)

            logger.info(
                "approval_decision_recorded",
                extra={
                    "decision": ApprovalDecision.REJECTED.value,
                    "step_number": step.step_number,
                    "outcome": "reject",
                    "new_status": updated.status.value,
                },
            )

        self._emit_decision(
            updated,
            approver_id,
            approver_role,
            "reject",
            {"step_number": step.step_number, "reason": reason},
        )
        return ApprovalResult(request=updated, is_complete=True)

    def cancel(
        self,
        request_id: str,
        cancelled_by: str,
        reason: str | None = None,
    ) -> ApprovalResult:
        """Withdraw a pending request."""
        with LogContext.bind(request_id=request_id, actor_id=cancelled_by), \
                self._request_locks.hold(request_id):
            request = self._require_request(request_id)
            if request.status != ApprovalStatus.PENDING:
                raise ApprovalAlreadyResolvedError(request_id, request.status.value)

            updated = replace(
                request,
                status=ApprovalStatus.CANCELLED,
                completed_at=self._clock.now(),
                metadata={
                    **request.metadata,
                    "cancelled_by": cancelled_by,
                    "cancellation_reason": reason,
                },
                version=request.version + 1,
            )
            self._requests.save(updated, expected_version=request.version)

            logger.info("approval_request_cancelled", extra={"reason": reason})

        self._emit_decision(updated, cancelled_by, None, "cancel", {"reason": reason})
        return ApprovalResult(request=updated, is_complete=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_request(self, request_id: str) -> ApprovalRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise ApprovalRequestNotFoundError(request_id)
        return request

    def _check_decision(
        self,
        request_id: str,
        approver_id: str,
        approver_role: str,
    ) -> tuple[ApprovalRequest, Workflow, ApprovalStep]:
        """Run the shared approve/reject checks.  Caller holds the request lock."""
        request = self._require_request(request_id)

        if request.status != ApprovalStatus.PENDING:
            raise ApprovalAlreadyResolvedError(request_id, request.status.value)

        now = self._clock.now()
        if now > request.expires_at:
            self._expire_on_decision(request)
            raise ApprovalExpiredError(request_id, request.expires_at.isoformat())

        workflow = self._workflows.get(request.workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(request.workflow_id)
        step = workflow.get_step(request.current_step)
        if step is None:
            raise ApprovalStepNotFoundError(workflow.id, request.current_step)

        if not is_authorized(step, approver_id, approver_role):
            logger.warning(
                "approval_unauthorized",
                extra={
                    "approver_role": approver_role,
                    "step_number": step.step_number,
                },
            )
            raise UnauthorizedApproverError(
                request_id, step.step_number, approver_id, approver_role,
            )

        if request.has_decided(step.step_number, approver_id):
            raise AlreadyDecidedError(request_id, step.step_number, approver_id)

        return request, workflow, step

    def _expire_on_decision(self, request: ApprovalRequest) -> None:
        expired = replace(
            request,
            status=ApprovalStatus.EXPIRED,
            completed_at=self._clock.now(),
            version=request.version + 1,
        )
        self._requests.save(expired, expected_version=request.version)
        logger.info(
            "approval_request_expired",
            extra={
                "current_step": request.current_step,
                "expires_at": request.expires_at,
                "trigger": "decision",
            },
        )
        self._emit_decision(
            expired,
            SYSTEM_ACTOR,
            None,
            "expire",
            {"step_number": request.current_step, "reason": "deadline_passed"},
        )

    def _emit_decision(
        self,
        request: ApprovalRequest,
        actor_id: str,
        actor_role: str | None,
        action: str,
        details: dict[str, Any],
    ) -> None:
        self._events.emit(
            PolicyEventType.APPROVAL_DECISION,
            account_id=request.account_id,
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            resource="approval_request",
            resource_id=request.id,
            details=details,
        )
