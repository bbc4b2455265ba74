"""
Hypothesis-based property tests for the engines and the approval lifecycle.

Properties fuzzed here:
- evaluate_condition is total: any value, operator and target yields a bool
- Numeric comparisons agree with Decimal arithmetic on numeric strings
- Risk scores stay within [0, cap] for any rule set
- Escalation plans either retire the request or set a deadline after now
- Canonical hashing ignores dict key order
- Random decision sequences keep the approval state machine consistent
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from policy_engines.conditions import evaluate_condition
from policy_engines.escalation import plan_escalation
from policy_engines.risk_scoring import score
from policy_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalRequest,
    ApprovalStatus,
    EscalationAction,
)
from policy_kernel.domain.clock import DeterministicClock
from policy_kernel.domain.conditions import Condition, ConditionOperator
from policy_kernel.domain.monitoring import MonitoringRule, RuleAction, RuleType
from policy_kernel.domain.workflow import Workflow, WorkflowStatus
from policy_kernel.exceptions import PolicyKernelError
from policy_kernel.utils.ids import SequentialIdGenerator
from policy_kernel.utils.serialization import hash_payload
from policy_services.policy_engine import PolicyEngine
from tests.factories import amount_trigger, make_step

_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.floats(allow_nan=True, allow_infinity=True),
    st.decimals(allow_nan=True, allow_infinity=True),
    st.text(max_size=20),
)
_values = st.one_of(
    _scalars,
    st.lists(_scalars, max_size=5),
    st.dictionaries(st.text(max_size=5), _scalars, max_size=3),
)
_operators = st.one_of(
    st.sampled_from(list(ConditionOperator)),
    st.sampled_from(["greater_than_or_equals", "less_than_or_equals", "between", ""]),
    st.text(max_size=10),
)
_amounts = st.decimals(
    min_value=Decimal("-1e12"),
    max_value=Decimal("1e12"),
    allow_nan=False,
    allow_infinity=False,
    places=4,
)


class TestConditionTotality:

    @given(value=_values, operator=_operators, target=_values)
    @settings(max_examples=300)
    def test_never_raises(self, value, operator, target):
        assert evaluate_condition(value, operator, target) in (True, False)

    @given(left=_amounts, right=_amounts)
    def test_numeric_strings_compare_as_decimals(self, left, right):
        assert evaluate_condition(str(left), "greater_than", str(right)) is (left > right)
        assert evaluate_condition(left, "less_or_equal", right) is (left <= right)


def _rule(n, priority):
    return MonitoringRule(
        id=f"rule_{n:04d}",
        name=f"Rule {n}",
        description="",
        type=RuleType.CUSTOM,
        conditions=(Condition("amount", "greater_than", 0),),
        action=RuleAction.FLAG,
        priority=priority,
        enabled=True,
        created_by="system",
        created_at=_NOW,
        updated_at=_NOW,
    )


class TestRiskScoreBounds:

    @given(priorities=st.lists(st.integers(min_value=0, max_value=1000), max_size=30))
    def test_score_within_cap(self, priorities):
        rules = [_rule(n, p) for n, p in enumerate(priorities)]

        result = score(rules)

        assert Decimal("0") <= result <= Decimal("100")

    @given(
        priorities=st.lists(st.integers(min_value=0, max_value=100), max_size=10),
        cap=st.integers(min_value=1, max_value=500),
    )
    def test_uncapped_sum_is_exact(self, priorities, cap):
        rules = [_rule(n, p) for n, p in enumerate(priorities)]
        expected = sum((Decimal(p) / 10 for p in priorities), Decimal("0"))

        assert score(rules, Decimal(cap)) == min(expected, Decimal(cap))


_steps = st.lists(
    st.builds(
        lambda number, hours, escalate, notify: make_step(
            number,
            timeout_hours=hours,
            escalate_on_timeout=escalate,
            escalate_to=("admin",) if notify else (),
        ),
        number=st.integers(min_value=1, max_value=20),
        hours=st.integers(min_value=1, max_value=720),
        escalate=st.booleans(),
        notify=st.booleans(),
    ),
    min_size=1,
    max_size=5,
    unique_by=lambda s: s.step_number,
)


class TestEscalationPlans:

    @given(
        steps=_steps,
        pick=st.integers(min_value=0, max_value=4),
        overdue_minutes=st.integers(min_value=1, max_value=60 * 24 * 30),
    )
    def test_plan_retires_or_moves_deadline_forward(self, steps, pick, overdue_minutes):
        workflow = Workflow(
            id="workflow_0001",
            account_id="acct-1",
            name="wf",
            description="",
            steps=tuple(steps),
            trigger_conditions=(amount_trigger(),),
            status=WorkflowStatus.ACTIVE,
            created_by="admin-1",
            created_at=_NOW,
            updated_at=_NOW,
        )
        current = workflow.steps[pick % len(workflow.steps)]
        request = ApprovalRequest(
            id="request_0001",
            workflow_id=workflow.id,
            account_id="acct-1",
            transaction_id="tx-1",
            current_step=current.step_number,
            status=ApprovalStatus.PENDING,
            requested_by="trader-1",
            requested_at=_NOW,
            expires_at=_NOW + timedelta(hours=current.timeout_hours),
        )
        now = request.expires_at + timedelta(minutes=overdue_minutes)

        plan = plan_escalation(workflow, request, now)

        if plan.action == EscalationAction.EXPIRED:
            assert plan.expires_at is None
        else:
            assert plan.expires_at > now
            assert workflow.get_step(plan.to_step) is not None
            assert plan.to_step >= current.step_number


class TestCanonicalHash:

    @given(st.dictionaries(st.text(max_size=8), st.integers(), max_size=8))
    def test_key_order_irrelevant(self, data):
        reversed_data = dict(reversed(list(data.items())))
        assert hash_payload(data) == hash_payload(reversed_data)


_decisions = st.lists(
    st.one_of(
        st.tuples(
            st.just("approve"),
            st.sampled_from(["rm-1", "rm-2", "rm-3", "co-1"]),
            st.sampled_from(["risk_manager", "compliance_officer", "trader"]),
        ),
        st.tuples(st.just("reject"), st.sampled_from(["rm-1", "co-1"]), st.just("risk_manager")),
        st.tuples(st.just("wait"), st.integers(min_value=1, max_value=6), st.just("")),
        st.tuples(st.just("sweep"), st.just(""), st.just("")),
    ),
    max_size=15,
)


class TestApprovalStateMachine:

    @given(ops=_decisions)
    @settings(max_examples=100, deadline=None)
    def test_decision_sequences_stay_consistent(self, ops):
        clock = DeterministicClock()
        engine = PolicyEngine.in_memory(clock=clock, id_generator=SequentialIdGenerator())
        workflow = engine.workflows.create_workflow(
            account_id="acct-1",
            name="wf",
            description="",
            trigger_conditions=(amount_trigger(),),
            steps=(
                make_step(1, required=2),
                make_step(2, roles=("compliance_officer",), escalate_on_timeout=False),
            ),
            created_by="admin-1",
        )
        engine.workflows.activate_workflow(workflow.id, "admin-1")
        request = engine.approvals.create_request(workflow.id, "tx-1", "trader-1")
        terminal_status = None

        for kind, who, role in ops:
            try:
                if kind == "approve":
                    engine.approvals.approve(request.id, who, role)
                elif kind == "reject":
                    engine.approvals.reject(request.id, who, role, "no")
                elif kind == "wait":
                    clock.advance_hours(who)
                else:
                    engine.process_escalations()
            except PolicyKernelError:
                pass

            stored = engine.approvals.get_request(request.id)
            keys = [(d.step_number, d.approver_id) for d in stored.approvals]
            assert len(keys) == len(set(keys))

            if terminal_status is not None:
                assert stored.status == terminal_status
            elif stored.is_terminal:
                terminal_status = stored.status
                assert stored.completed_at is not None
            else:
                step = workflow.get_step(stored.current_step)
                approved = [
                    d for d in stored.decisions_for_step(step.step_number)
                    if d.decision == ApprovalDecision.APPROVED
                ]
                assert len(approved) < step.required_approvals
                assert stored.expires_at is not None

        if terminal_status == ApprovalStatus.APPROVED:
            for step in workflow.steps:
                approved = [
                    d for d in stored.decisions_for_step(step.step_number)
                    if d.decision == ApprovalDecision.APPROVED
                ]
                assert len(approved) >= step.required_approvals
