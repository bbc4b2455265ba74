"""
Tests for workflow selection (policy_engines.trigger_matching).

Validates:
- Only active workflows are admissible
- ANY trigger / ALL conditions semantics
- Precedence: specificity, then priority, then creation order
- WorkflowSelection carries admissible ids and a reason
- POLICY_ENGINE_TRACE is emitted per call
"""

from datetime import datetime, timezone
from decimal import Decimal

from policy_engines.trigger_matching import (
    matching_triggers,
    rank_workflows,
    select_workflow,
)
from policy_kernel.domain.conditions import Condition, TransactionContext
from policy_kernel.domain.workflow import Trigger, TriggerType, Workflow, WorkflowStatus
from tests.factories import amount_trigger, destination_trigger, make_step

_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_workflow(
    workflow_id: str,
    triggers: tuple[Trigger, ...],
    status: WorkflowStatus = WorkflowStatus.ACTIVE,
    priority: int = 0,
) -> Workflow:
    return Workflow(
        id=workflow_id,
        account_id="acct-1",
        name=workflow_id,
        description="",
        steps=(make_step(),),
        trigger_conditions=triggers,
        status=status,
        created_by="admin",
        created_at=_NOW,
        updated_at=_NOW,
        priority=priority,
    )


def _tx(amount="150000", destination_type="internal", **metadata) -> TransactionContext:
    return TransactionContext(
        id="tx-1",
        type="transfer",
        amount=Decimal(amount),
        currency="USD",
        destination_type=destination_type,
        metadata=metadata,
    )


class TestAdmissibility:

    def test_no_workflows(self):
        selection = select_workflow(workflows=[], tx=_tx())

        assert selection.workflow is None
        assert selection.admissible == ()
        assert selection.reason == "no active workflows"

    def test_non_active_workflows_are_ignored(self):
        workflows = [
            make_workflow("wf-draft", (amount_trigger(),), WorkflowStatus.DRAFT),
            make_workflow("wf-paused", (amount_trigger(),), WorkflowStatus.PAUSED),
            make_workflow("wf-archived", (amount_trigger(),), WorkflowStatus.ARCHIVED),
        ]

        selection = select_workflow(workflows=workflows, tx=_tx())

        assert selection.workflow is None
        assert selection.admissible == ()

    def test_no_trigger_matches(self):
        workflows = [make_workflow("wf-1", (amount_trigger(),))]

        selection = select_workflow(workflows=workflows, tx=_tx("5000"))

        assert selection.workflow is None
        assert selection.admissible == ("wf-1",)
        assert selection.reason == "no active workflow trigger matched"


class TestTriggerSemantics:

    def test_any_trigger_matches(self):
        workflow = make_workflow(
            "wf-1", (amount_trigger(), destination_trigger("external")),
        )

        triggers = matching_triggers(workflow, _tx("10", destination_type="external"))

        assert len(triggers) == 1
        assert triggers[0].type == TriggerType.DESTINATION_TYPE

    def test_all_conditions_within_trigger(self):
        trigger = Trigger(
            type=TriggerType.CUSTOM,
            conditions=(
                Condition("amount", "greater_than", Decimal("1000")),
                Condition("destinationType", "equals", "external"),
            ),
        )
        workflow = make_workflow("wf-1", (trigger,))

        assert matching_triggers(workflow, _tx("5000", "external")) == (trigger,)
        assert matching_triggers(workflow, _tx("5000", "internal")) == ()

    def test_matched_triggers_reported(self):
        workflow = make_workflow("wf-1", (amount_trigger(), amount_trigger("200000")))

        selection = select_workflow(workflows=[workflow], tx=_tx("150000"))

        assert selection.workflow.id == "wf-1"
        assert selection.matched_triggers == (amount_trigger(),)


class TestPrecedence:

    def test_more_specific_workflow_wins(self):
        general = make_workflow("wf-general", (amount_trigger(),), priority=10)
        specific = make_workflow(
            "wf-specific",
            (
                Trigger(
                    type=TriggerType.CUSTOM,
                    conditions=(
                        Condition("amount", "greater_than", Decimal("100000")),
                        Condition("destinationType", "equals", "external"),
                    ),
                ),
            ),
        )

        selection = select_workflow(
            workflows=[general, specific], tx=_tx("150000", "external"),
        )

        assert selection.workflow.id == "wf-specific"

    def test_priority_breaks_specificity_tie(self):
        low = make_workflow("wf-low", (amount_trigger(),), priority=1)
        high = make_workflow("wf-high", (amount_trigger("50000"),), priority=5)

        selection = select_workflow(workflows=[low, high], tx=_tx())

        assert selection.workflow.id == "wf-high"
        assert selection.reason == "specificity=1 priority=5"

    def test_creation_order_is_final_tie_break(self):
        first = make_workflow("wf-first", (amount_trigger(),))
        second = make_workflow("wf-second", (amount_trigger("50000"),))

        assert select_workflow(workflows=[first, second], tx=_tx()).workflow.id == "wf-first"
        assert select_workflow(workflows=[second, first], tx=_tx()).workflow.id == "wf-second"

    def test_rank_is_stable(self):
        workflows = [make_workflow(f"wf-{i}", (amount_trigger(),)) for i in range(5)]

        assert [w.id for w in rank_workflows(workflows)] == [f"wf-{i}" for i in range(5)]

    def test_specificity_counts_conditions_across_triggers(self):
        workflow = make_workflow(
            "wf-1", (amount_trigger(), destination_trigger(), amount_trigger("5")),
        )

        assert workflow.specificity == 3


class TestTracing:

    def test_engine_trace_emitted(self, captured_logs):
        select_workflow(workflows=[make_workflow("wf-1", (amount_trigger(),))], tx=_tx())

        traces = [r for r in captured_logs() if r["message"] == "POLICY_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "trigger_matching"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_fingerprint_is_deterministic(self, captured_logs):
        workflows = [make_workflow("wf-1", (amount_trigger(),))]
        select_workflow(workflows=workflows, tx=_tx())
        select_workflow(workflows=workflows, tx=_tx())

        traces = [r for r in captured_logs() if r["message"] == "POLICY_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
