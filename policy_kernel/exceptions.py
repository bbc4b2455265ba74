"""
Typed Exception Hierarchy for the Policy Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Approval and monitoring failures are part of the public contract: an API
layer must tell "request not found" from "approver not authorized" from
"request already expired" without parsing message strings.

Every exception in this module:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes

Example:
    try:
        service.approve(request_id, approver_id, role)
    except UnauthorizedApproverError as e:
        api_response(code=e.code, role=e.approver_role, step=e.step_number)
    except NotFoundError as e:
        api_response(code=e.code, status=404)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PolicyKernelError (base)
    |
    +-- NotFoundError
    |   +-- WorkflowNotFoundError
    |   +-- ApprovalRequestNotFoundError
    |   +-- ApprovalStepNotFoundError
    |   +-- MonitorNotFoundError
    |   +-- MonitoringRuleNotFoundError
    |   +-- AlertNotFoundError
    |
    +-- InvalidStateError
    |   +-- WorkflowArchivedError
    |   +-- WorkflowNotActiveError
    |   +-- InvalidWorkflowTransitionError
    |   +-- ApprovalAlreadyResolvedError
    |   +-- MonitorAlreadyExistsError
    |
    +-- UnauthorizedError
    |   +-- UnauthorizedApproverError
    |
    +-- AlreadyDecidedError
    |
    +-- ExpiredError
    |   +-- ApprovalExpiredError
    |
    +-- ValidationFailedError
    |   +-- WorkflowValidationError
    |   +-- PendingRequestsExistError
    |   +-- InvalidConditionError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------------
NotFound        | WORKFLOW_NOT_FOUND            | Workflow id unknown
                | APPROVAL_REQUEST_NOT_FOUND    | Request id unknown
                | APPROVAL_STEP_NOT_FOUND       | Current step missing from workflow
                | MONITOR_NOT_FOUND             | No monitor for the account
                | MONITORING_RULE_NOT_FOUND     | Rule id unknown on the monitor
                | ALERT_NOT_FOUND               | Alert id unknown
----------------|-------------------------------|-------------------------------------
InvalidState    | WORKFLOW_ARCHIVED             | Editing an archived workflow
                | WORKFLOW_NOT_ACTIVE           | Creating a request on a non-active workflow
                | INVALID_WORKFLOW_TRANSITION   | Illegal workflow status change
                | APPROVAL_ALREADY_RESOLVED     | Deciding on a terminal request
                | MONITOR_ALREADY_EXISTS        | Second monitor for one account
----------------|-------------------------------|-------------------------------------
Unauthorized    | UNAUTHORIZED_APPROVER         | Role/user not allowed at the step
----------------|-------------------------------|-------------------------------------
AlreadyDecided  | ALREADY_DECIDED               | Same approver, same step, twice
----------------|-------------------------------|-------------------------------------
Expired         | APPROVAL_EXPIRED              | Decision after the step deadline
----------------|-------------------------------|-------------------------------------
Validation      | WORKFLOW_VALIDATION_FAILED    | Steps/triggers fail validation
                | PENDING_REQUESTS_EXIST        | Archiving with pending requests
                | INVALID_CONDITION             | Malformed condition definition
----------------|-------------------------------|-------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Stale version on write
----------------|-------------------------------|-------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Modifying an append-only record

===============================================================================
"""


class PolicyKernelError(Exception):
    """
    Base exception for all policy kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "POLICY_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(PolicyKernelError):
    """Base exception for lookups that found nothing."""

    code: str = "NOT_FOUND"


class WorkflowNotFoundError(NotFoundError):
    """Workflow with given ID was not found."""

    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class ApprovalRequestNotFoundError(NotFoundError):
    """Approval request with given ID was not found."""

    code: str = "APPROVAL_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class ApprovalStepNotFoundError(NotFoundError):
    """The request's current step no longer exists on its workflow."""

    code: str = "APPROVAL_STEP_NOT_FOUND"

    def __init__(self, workflow_id: str, step_number: int):
        self.workflow_id = workflow_id
        self.step_number = step_number
        super().__init__(
            f"Step {step_number} not found on workflow {workflow_id}"
        )


class MonitorNotFoundError(NotFoundError):
    """No transaction monitor exists for the account."""

    code: str = "MONITOR_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Monitor not found for account: {account_id}")


class MonitoringRuleNotFoundError(NotFoundError):
    """Monitoring rule with given ID was not found on the monitor."""

    code: str = "MONITORING_RULE_NOT_FOUND"

    def __init__(self, account_id: str, rule_id: str):
        self.account_id = account_id
        self.rule_id = rule_id
        super().__init__(
            f"Monitoring rule {rule_id} not found for account {account_id}"
        )


class AlertNotFoundError(NotFoundError):
    """Transaction alert with given ID was not found."""

    code: str = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")


# Invalid-state exceptions


class InvalidStateError(PolicyKernelError):
    """Base exception for operations not allowed in the current state."""

    code: str = "INVALID_STATE"


class WorkflowArchivedError(InvalidStateError):
    """Archived workflows cannot be modified."""

    code: str = "WORKFLOW_ARCHIVED"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow {workflow_id} is archived and cannot be modified")


class WorkflowNotActiveError(InvalidStateError):
    """Approval requests can only be created on active workflows."""

    code: str = "WORKFLOW_NOT_ACTIVE"

    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(
            f"Workflow {workflow_id} is {status}, not active"
        )


class InvalidWorkflowTransitionError(InvalidStateError):
    """Workflow status change not allowed by the lifecycle."""

    code: str = "INVALID_WORKFLOW_TRANSITION"

    def __init__(self, workflow_id: str, from_status: str, to_status: str):
        self.workflow_id = workflow_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid workflow transition for {workflow_id}: "
            f"{from_status} -> {to_status}"
        )


class ApprovalAlreadyResolvedError(InvalidStateError):
    """The approval request is no longer pending."""

    code: str = "APPROVAL_ALREADY_RESOLVED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Approval request {request_id} is already {status}"
        )


class MonitorAlreadyExistsError(InvalidStateError):
    """The account already has a transaction monitor."""

    code: str = "MONITOR_ALREADY_EXISTS"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Monitor already exists for account: {account_id}")


# Authorization exceptions


class UnauthorizedError(PolicyKernelError):
    """Base exception for authorization failures."""

    code: str = "UNAUTHORIZED"


class UnauthorizedApproverError(UnauthorizedError):
    """Approver's role and id are both outside the step's approver lists."""

    code: str = "UNAUTHORIZED_APPROVER"

    def __init__(
        self,
        request_id: str,
        step_number: int,
        approver_id: str,
        approver_role: str,
    ):
        self.request_id = request_id
        self.step_number = step_number
        self.approver_id = approver_id
        self.approver_role = approver_role
        super().__init__(
            f"Approver {approver_id} ({approver_role}) is not authorized "
            f"for step {step_number} of request {request_id}"
        )


class AlreadyDecidedError(PolicyKernelError):
    """The approver already recorded a decision on this step."""

    code: str = "ALREADY_DECIDED"

    def __init__(self, request_id: str, step_number: int, approver_id: str):
        self.request_id = request_id
        self.step_number = step_number
        self.approver_id = approver_id
        super().__init__(
            f"Approver {approver_id} already decided on step {step_number} "
            f"of request {request_id}"
        )


# Expiry exceptions


class ExpiredError(PolicyKernelError):
    """Base exception for deadline violations."""

    code: str = "EXPIRED"


class ApprovalExpiredError(ExpiredError):
    """The current step's deadline has passed."""

    code: str = "APPROVAL_EXPIRED"

    def __init__(self, request_id: str, expires_at: str):
        self.request_id = request_id
        self.expires_at = expires_at
        super().__init__(
            f"Approval request {request_id} expired at {expires_at}"
        )


# Validation exceptions


class ValidationFailedError(PolicyKernelError):
    """Base exception for rejected definitions and edits."""

    code: str = "VALIDATION_FAILED"


class WorkflowValidationError(ValidationFailedError):
    """Workflow definition failed validation."""

    code: str = "WORKFLOW_VALIDATION_FAILED"

    def __init__(self, workflow_id: str, errors: list[str]):
        self.workflow_id = workflow_id
        self.errors = errors
        super().__init__(
            f"Workflow {workflow_id} failed validation: {'; '.join(errors)}"
        )


class PendingRequestsExistError(ValidationFailedError):
    """Workflow still has pending approval requests."""

    code: str = "PENDING_REQUESTS_EXIST"

    def __init__(self, workflow_id: str, pending_count: int):
        self.workflow_id = workflow_id
        self.pending_count = pending_count
        super().__init__(
            f"Workflow {workflow_id} has {pending_count} pending request(s)"
        )


class InvalidConditionError(ValidationFailedError):
    """Condition definition is malformed."""

    code: str = "INVALID_CONDITION"

    def __init__(self, field: str, operator: str, reason: str):
        self.field = field
        self.operator = operator
        self.reason = reason
        super().__init__(
            f"Invalid condition on '{field}' ({operator}): {reason}"
        )


# Concurrency exceptions


class ConcurrencyError(PolicyKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, "
            "entity was modified by another writer"
        )


# Immutability exceptions


class ImmutabilityError(PolicyKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Approval decisions are append-only once recorded.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
