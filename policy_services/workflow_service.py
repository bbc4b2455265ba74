"""
policy_services.workflow_service -- Workflow definition lifecycle.

Responsibility:
    Creates, edits and moves approval workflows through
    draft -> active <-> paused -> archived, and installs the configured
    default workflows on an account.

Architecture position:
    Services -- stateful orchestration.  Reads and writes through the
    repository ports; delegates validation to the kernel domain.

Invariants enforced:
    - Status changes follow ``WORKFLOW_TRANSITIONS``.
    - Activation requires at least one step and at least one trigger.
    - Archived workflows are never edited.
    - Archiving is refused while any request on the workflow is pending.
    - A step edit may not remove a step a pending request currently sits on.
    - Every write is version checked; mutations of one account's workflows
      are serialized by a per-account lock.

Failure modes:
    - WorkflowNotFoundError for an unknown workflow id.
    - WorkflowArchivedError when editing an archived workflow.
    - InvalidWorkflowTransitionError for a status change outside the table.
    - WorkflowValidationError for an invalid definition or step edit.
    - PendingRequestsExistError when archiving with pending requests.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from policy_config import load_workflow_templates
from policy_config.bridges import template_steps, template_triggers
from policy_config.schema import WorkflowTemplateDef
from policy_kernel.domain.clock import Clock, SystemClock
from policy_kernel.domain.events import PolicyEventType
from policy_kernel.domain.workflow import (
    WORKFLOW_TRANSITIONS,
    ApprovalStep,
    Trigger,
    Workflow,
    WorkflowStatus,
    WorkflowUpdate,
    validate_workflow_definition,
)
from policy_kernel.exceptions import (
    InvalidWorkflowTransitionError,
    PendingRequestsExistError,
    WorkflowArchivedError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from policy_kernel.logging_config import LogContext, get_logger
from policy_kernel.repositories.base import ApprovalRequestRepository, WorkflowRepository
from policy_kernel.services.event_bus import EventBus
from policy_kernel.services.locks import KeyedLocks
from policy_kernel.utils.ids import WORKFLOW_PREFIX, IdGenerator

logger = get_logger("services.workflow")


class WorkflowService:
    """Manages approval workflow definitions for all accounts."""

    def __init__(
        self,
        workflows: WorkflowRepository,
        requests: ApprovalRequestRepository,
        events: EventBus,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        account_locks: KeyedLocks | None = None,
    ) -> None:
        self._workflows = workflows
        self._requests = requests
        self._events = events
        self._clock = clock or SystemClock()
        self._ids = id_generator or IdGenerator()
        self._account_locks = (
            account_locks if account_locks is not None else KeyedLocks("account")
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._workflows.get(workflow_id)

    def list_workflows(
        self,
        account_id: str,
        status: WorkflowStatus | None = None,
    ) -> list[Workflow]:
        """The account's workflows in creation order, optionally by status."""
        workflows = self._workflows.list_for_account(account_id)
        if status is not None:
            workflows = [w for w in workflows if w.status == status]
        return workflows

    # ------------------------------------------------------------------
    # Definition
    # ------------------------------------------------------------------

    def create_workflow(
        self,
        account_id: str,
        name: str,
        description: str,
        trigger_conditions: tuple[Trigger, ...] | list[Trigger],
        steps: tuple[ApprovalStep, ...] | list[ApprovalStep],
        created_by: str,
        priority: int = 0,
    ) -> Workflow:
        """Create a workflow in ``draft`` status."""
        workflow_id = self._ids.new_id(WORKFLOW_PREFIX)
        steps = tuple(steps)
        trigger_conditions = tuple(trigger_conditions)

        errors = validate_workflow_definition(
            steps, trigger_conditions, for_activation=False,
        )
        if errors:
            raise WorkflowValidationError(workflow_id, errors)

        now = self._clock.now()
        workflow = Workflow(
            id=workflow_id,
            account_id=account_id,
            name=name,
            description=description,
            steps=steps,
            trigger_conditions=trigger_conditions,
            status=WorkflowStatus.DRAFT,
            created_by=created_by,
            created_at=now,
            updated_at=now,
            priority=priority,
        )

        with self._account_locks.hold(account_id):
            self._workflows.add(workflow)

        logger.info(
            "workflow_created",
            extra={
                "workflow_id": workflow_id,
                "account_id": account_id,
                "workflow_name": name,
                "step_count": len(workflow.steps),
                "trigger_count": len(trigger_conditions),
            },
        )
        return workflow

    def update_workflow(
        self,
        workflow_id: str,
        update: WorkflowUpdate,
        updated_by: str,
    ) -> Workflow:
        """Apply a partial edit.  Fields left ``None`` are unchanged."""
        account_id = self._require(workflow_id).account_id

        with self._account_locks.hold(account_id):
            workflow = self._require(workflow_id)
            if workflow.status == WorkflowStatus.ARCHIVED:
                raise WorkflowArchivedError(workflow_id)

            steps = workflow.steps if update.steps is None else tuple(update.steps)
            triggers = (
                workflow.trigger_conditions
                if update.trigger_conditions is None
                else tuple(update.trigger_conditions)
            )

            errors = validate_workflow_definition(
                steps,
                triggers,
                for_activation=workflow.status == WorkflowStatus.ACTIVE,
            )
            if update.steps is not None:
                errors.extend(self._orphaned_step_errors(workflow_id, steps))
            if errors:
                raise WorkflowValidationError(workflow_id, errors)

            changes: dict[str, Any] = {
                "steps": steps,
                "trigger_conditions": triggers,
                "updated_at": self._clock.now(),
                "version": workflow.version + 1,
            }
            if update.name is not None:
                changes["name"] = update.name
            if update.description is not None:
                changes["description"] = update.description
            if update.priority is not None:
                changes["priority"] = update.priority

            updated = replace(workflow, **changes)
            self._workflows.save(updated, expected_version=workflow.version)

        changed = sorted(
            name for name in ("name", "description", "steps", "trigger_conditions", "priority")
            if getattr(update, name) is not None
        )
        self._events.emit(
            PolicyEventType.WORKFLOW_UPDATED,
            account_id=updated.account_id,
            actor_id=updated_by,
            action="update_workflow",
            resource="workflow",
            resource_id=workflow_id,
            details={"changed_fields": changed},
        )
        logger.info(
            "workflow_updated",
            extra={
                "workflow_id": workflow_id,
                "account_id": updated.account_id,
                "changed_fields": changed,
                "version": updated.version,
            },
        )
        return updated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate_workflow(self, workflow_id: str, activated_by: str) -> Workflow:
        return self._transition(
            workflow_id, WorkflowStatus.ACTIVE, activated_by, "activate_workflow",
        )

    def pause_workflow(
        self,
        workflow_id: str,
        paused_by: str,
        reason: str | None = None,
    ) -> Workflow:
        return self._transition(
            workflow_id,
            WorkflowStatus.PAUSED,
            paused_by,
            "pause_workflow",
            details={"reason": reason},
        )

    def archive_workflow(self, workflow_id: str, archived_by: str) -> Workflow:
        return self._transition(
            workflow_id, WorkflowStatus.ARCHIVED, archived_by, "archive_workflow",
        )

    def initialize_default_workflows(
        self,
        account_id: str,
        created_by: str,
        templates: tuple[WorkflowTemplateDef, ...] | None = None,
    ) -> list[Workflow]:
        """Create and activate the configured workflow templates."""
        if templates is None:
            templates = load_workflow_templates()

        created: list[Workflow] = []
        for template in templates:
            workflow = self.create_workflow(
                account_id=account_id,
                name=template.name,
                description=template.description,
                trigger_conditions=template_triggers(template),
                steps=template_steps(template),
                created_by=created_by,
                priority=template.priority,
            )
            created.append(self.activate_workflow(workflow.id, created_by))

        logger.info(
            "default_workflows_initialized",
            extra={"account_id": account_id, "workflow_count": len(created)},
        )
        return created

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, workflow_id: str) -> Workflow:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def _pending_count(self, workflow_id: str) -> int:
        return len(self._requests.list_pending_for_workflow(workflow_id))

    def _orphaned_step_errors(
        self,
        workflow_id: str,
        steps: tuple[ApprovalStep, ...],
    ) -> list[str]:
        numbers = {s.step_number for s in steps}
        return [
            f"step {r.current_step} is current for pending request {r.id}"
            for r in self._requests.list_pending_for_workflow(workflow_id)
            if r.current_step not in numbers
        ]

    def _transition(
        self,
        workflow_id: str,
        target: WorkflowStatus,
        actor_id: str,
        action: str,
        details: dict[str, Any] | None = None,
    ) -> Workflow:
        account_id = self._require(workflow_id).account_id

        with LogContext.bind(account_id=account_id, workflow_id=workflow_id), \
                self._account_locks.hold(account_id):
            workflow = self._require(workflow_id)

            if target not in WORKFLOW_TRANSITIONS[workflow.status]:
                raise InvalidWorkflowTransitionError(
                    workflow_id, workflow.status.value, target.value,
                )

            if target == WorkflowStatus.ACTIVE:
                errors = validate_workflow_definition(
                    workflow.steps, workflow.trigger_conditions, for_activation=True,
                )
                if errors:
                    raise WorkflowValidationError(workflow_id, errors)

            if target == WorkflowStatus.ARCHIVED:
                pending = self._pending_count(workflow_id)
                if pending:
                    raise PendingRequestsExistError(workflow_id, pending)

            updated = replace(
                workflow,
                status=target,
                updated_at=self._clock.now(),
                version=workflow.version + 1,
            )
            self._workflows.save(updated, expected_version=workflow.version)

            logger.info(
                "workflow_status_changed",
                extra={
                    "from_status": workflow.status.value,
                    "to_status": target.value,
                    "actor_id": actor_id,
                },
            )

        self._events.emit(
            PolicyEventType.WORKFLOW_UPDATED,
            account_id=updated.account_id,
            actor_id=actor_id,
            action=action,
            resource="workflow",
            resource_id=workflow_id,
            details={"name": updated.name, **(details or {})},
        )
        return updated
