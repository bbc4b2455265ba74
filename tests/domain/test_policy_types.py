"""
Tests for the pure domain layer.

Validates:
- Condition operator normalization and logic coercion
- Workflow step ordering, specificity and step lookup
- ApprovalStep role and user coercion
- validate_workflow_definition for drafts and for activation
- WORKFLOW_TRANSITIONS and APPROVAL_TRANSITIONS tables
- ApprovalRequest decision helpers
- Identifier formats
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from policy_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalDecision,
    ApprovalDecisionRecord,
    ApprovalRequest,
    ApprovalStatus,
)
from policy_kernel.domain.conditions import Condition, ConditionLogic, ConditionOperator
from policy_kernel.domain.workflow import (
    WORKFLOW_TRANSITIONS,
    Workflow,
    WorkflowStatus,
    validate_workflow_definition,
)
from policy_kernel.utils.ids import IdGenerator, SequentialIdGenerator
from tests.factories import amount_trigger, make_step

_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestConditionNormalization:

    def test_known_operator_becomes_enum(self):
        condition = Condition("amount", "greater_than", 10)

        assert condition.operator is ConditionOperator.GREATER_THAN
        assert condition.is_known_operator is True

    @pytest.mark.parametrize(
        "alias, canonical",
        [
            ("greater_than_or_equals", ConditionOperator.GREATER_OR_EQUAL),
            ("less_than_or_equals", ConditionOperator.LESS_OR_EQUAL),
        ],
    )
    def test_long_spellings(self, alias, canonical):
        assert Condition("amount", alias, 10).operator is canonical

    def test_logic_string_becomes_enum(self):
        assert Condition("amount", "equals", 1, logic="or").logic is ConditionLogic.OR

    def test_conditions_are_frozen(self):
        condition = Condition("amount", "equals", 1)
        with pytest.raises(FrozenInstanceError):
            condition.field = "type"


class TestWorkflowShape:

    def _workflow(self, *steps) -> Workflow:
        return Workflow(
            id="wf-1",
            account_id="acct-1",
            name="wf",
            description="",
            steps=tuple(steps),
            trigger_conditions=(amount_trigger(),),
            status=WorkflowStatus.DRAFT,
            created_by="admin",
            created_at=_NOW,
            updated_at=_NOW,
        )

    def test_steps_sorted_by_number(self):
        workflow = self._workflow(make_step(3), make_step(1), make_step(2))
        assert [s.step_number for s in workflow.steps] == [1, 2, 3]

    def test_get_step(self):
        workflow = self._workflow(make_step(1), make_step(5))

        assert workflow.get_step(5).step_number == 5
        assert workflow.get_step(2) is None

    def test_single_role_string_is_one_name(self):
        step = make_step(1, roles="risk_manager", users="cfo-1", escalate_to="admin")

        assert step.approver_roles == ("risk_manager",)
        assert step.approver_users == ("cfo-1",)
        assert step.escalate_to == ("admin",)

    def test_role_lists_become_tuples(self):
        step = make_step(1, roles=["risk_manager", "cfo"], escalate_to=None)

        assert step.approver_roles == ("risk_manager", "cfo")
        assert step.escalate_to == ()


class TestValidateWorkflowDefinition:

    def test_valid_definition(self):
        errors = validate_workflow_definition(
            (make_step(1), make_step(2)), (amount_trigger(),), for_activation=True,
        )
        assert errors == []

    def test_draft_may_be_empty(self):
        assert validate_workflow_definition((), (), for_activation=False) == []

    def test_activation_needs_steps_and_triggers(self):
        errors = validate_workflow_definition((), (), for_activation=True)

        assert "workflow must have at least one step" in errors
        assert "workflow must have at least one trigger" in errors

    def test_duplicate_step_numbers(self):
        errors = validate_workflow_definition(
            (make_step(1), make_step(1)), (), for_activation=False,
        )
        assert errors == ["step numbers must be unique"]

    def test_step_field_rules(self):
        bad = make_step(2, roles=(), users=(), required=0, timeout_hours=0)

        errors = validate_workflow_definition((bad,), (), for_activation=False)

        assert "step 2: required_approvals must be >= 1" in errors
        assert "step 2: timeout_hours must be > 0" in errors
        assert "step 2: no approver roles or users" in errors

    def test_user_list_alone_is_enough(self):
        step = make_step(roles=(), users=("cfo-7",))
        assert validate_workflow_definition((step,), (), for_activation=False) == []


class TestTransitionTables:

    def test_archived_is_final(self):
        assert WORKFLOW_TRANSITIONS[WorkflowStatus.ARCHIVED] == frozenset()

    def test_draft_cannot_pause(self):
        assert WorkflowStatus.PAUSED not in WORKFLOW_TRANSITIONS[WorkflowStatus.DRAFT]

    def test_active_and_paused_toggle(self):
        assert WorkflowStatus.PAUSED in WORKFLOW_TRANSITIONS[WorkflowStatus.ACTIVE]
        assert WorkflowStatus.ACTIVE in WORKFLOW_TRANSITIONS[WorkflowStatus.PAUSED]

    def test_terminal_approval_states_have_no_exits(self):
        for status in TERMINAL_APPROVAL_STATUSES:
            assert APPROVAL_TRANSITIONS[status] == frozenset()

    def test_pending_reaches_every_terminal_state(self):
        assert APPROVAL_TRANSITIONS[ApprovalStatus.PENDING] == TERMINAL_APPROVAL_STATUSES


class TestApprovalRequestHelpers:

    def _request(self, *decisions) -> ApprovalRequest:
        return ApprovalRequest(
            id="request-1",
            workflow_id="wf-1",
            account_id="acct-1",
            transaction_id="tx-1",
            current_step=1,
            status=ApprovalStatus.PENDING,
            requested_by="trader-1",
            requested_at=_NOW,
            expires_at=_NOW + timedelta(hours=4),
            approvals=tuple(decisions),
        )

    def _decision(self, step, approver):
        return ApprovalDecisionRecord(
            step_number=step,
            approver_id=approver,
            approver_role="risk_manager",
            decision=ApprovalDecision.APPROVED,
            timestamp=_NOW,
        )

    def test_has_decided_is_per_step(self):
        request = self._request(self._decision(1, "rm-1"))

        assert request.has_decided(1, "rm-1") is True
        assert request.has_decided(2, "rm-1") is False
        assert request.has_decided(1, "rm-2") is False

    def test_decisions_for_step(self):
        request = self._request(
            self._decision(1, "rm-1"), self._decision(2, "co-1"), self._decision(1, "rm-2"),
        )
        assert [d.approver_id for d in request.decisions_for_step(1)] == ["rm-1", "rm-2"]

    def test_pending_is_not_terminal(self):
        assert self._request().is_terminal is False


class TestIds:

    def test_uuid_ids_are_prefixed_and_unique(self):
        generator = IdGenerator()
        first, second = generator.new_id("workflow"), generator.new_id("workflow")

        assert first.startswith("workflow_")
        assert len(first) == len("workflow_") + 32
        assert first != second

    def test_sequential_ids_per_prefix(self):
        generator = SequentialIdGenerator()

        assert generator.new_id("request") == "request_0001"
        assert generator.new_id("request") == "request_0002"
        assert generator.new_id("alert") == "alert_0001"
