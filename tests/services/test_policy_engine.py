"""
Tests for the PolicyEngine composition root.

Validates:
- Services share one clock, id generator and event bus
- on_event() subscription and unsubscription
- The full gate-approve-monitor flow over SQLAlchemy repositories
- from_settings() builds a working engine from EngineSettings
"""

from dataclasses import replace
from decimal import Decimal

from policy_config import get_engine_settings
from policy_kernel.db.engine import get_session_factory, reset_engine
from policy_kernel.domain.approval import ApprovalStatus, EscalationAction
from policy_kernel.domain.clock import DeterministicClock
from policy_kernel.domain.conditions import TransactionContext
from policy_kernel.domain.monitoring import AlertStatus
from policy_kernel.utils.ids import SequentialIdGenerator
from policy_services.policy_engine import PolicyEngine
from tests.conftest import TEST_ACCOUNT_ID, TEST_ADMIN_ID
from tests.factories import amount_trigger, make_step


def _tx(amount, tx_id="tx-1", **metadata):
    return TransactionContext(
        id=tx_id,
        type="transfer",
        amount=Decimal(amount),
        currency="USD",
        metadata=metadata,
    )


class TestWiring:

    def test_services_share_clock(self, engine, clock, active_workflow):
        workflow = active_workflow()
        clock.advance_hours(3)

        request = engine.approvals.create_request(workflow.id, "tx-1", "trader-1")

        assert request.requested_at == clock.now()

    def test_one_id_sequence(self, engine, active_workflow):
        workflow = active_workflow()
        request = engine.approvals.create_request(workflow.id, "tx-1", "trader-1")

        assert workflow.id == "workflow_0001"
        assert request.id == "request_0001"

    def test_on_event_and_unsubscribe(self, engine, active_workflow):
        seen = []
        unsubscribe = engine.on_event(seen.append)
        workflow = active_workflow()

        unsubscribe()
        engine.approvals.create_request(workflow.id, "tx-1", "trader-1")

        assert [e.action for e in seen] == ["activate_workflow"]

    def test_event_ids_and_timestamps(self, engine, clock, active_workflow, recorded_events):
        active_workflow()

        event = recorded_events[0]
        assert event.id == "event_0001"
        assert event.timestamp == clock.now()

    def test_scheduler_uses_engine_sweeper(self, engine, clock, active_workflow):
        workflow = active_workflow(steps=(make_step(1), make_step(2)))
        engine.approvals.create_request(workflow.id, "tx-1", "trader-1")
        clock.advance_hours(5)

        results = engine.create_scheduler().tick()

        assert [r.action for r in results] == [EscalationAction.ADVANCED]


class TestSqlEndToEnd:

    def test_gate_approve_and_monitor(self, sql_session_factory):
        clock = DeterministicClock()
        engine = PolicyEngine.with_sql(
            sql_session_factory, clock=clock, id_generator=SequentialIdGenerator(),
        )
        events = []
        engine.on_event(events.append)

        engine.workflows.initialize_default_workflows(TEST_ACCOUNT_ID, TEST_ADMIN_ID)
        engine.monitoring.create_monitor(TEST_ACCOUNT_ID)

        tx = _tx("150000")
        evaluation = engine.approvals.should_trigger_approval(TEST_ACCOUNT_ID, tx)
        assert evaluation.requires_approval is True
        assert evaluation.matched_workflow.name == "Large Transaction Approval"

        request = engine.approvals.create_request(evaluation.matched_workflow.id, tx.id, "trader-1")
        engine.approvals.approve(request.id, "rm-1", "risk_manager")
        result = engine.approvals.approve(request.id, "co-1", "compliance_officer")

        assert result.is_complete is True
        stored = engine.approvals.get_request(request.id)
        assert stored.status == ApprovalStatus.APPROVED
        assert [d.approver_id for d in stored.approvals] == ["rm-1", "co-1"]

        check = engine.monitoring.check_transaction(TEST_ACCOUNT_ID, tx)
        assert check.risk_score == Decimal("10")
        alert = check.alerts[0]
        engine.monitoring.review_alert(alert.id, "analyst-1", AlertStatus.FALSE_POSITIVE)

        stats = engine.monitoring.get_statistics(TEST_ACCOUNT_ID)
        assert stats.total_transactions == 1
        assert stats.alerts_resolved == 1
        assert events[-1].action == "review_alert"

    def test_escalation_sweep(self, sql_session_factory):
        clock = DeterministicClock()
        engine = PolicyEngine.with_sql(
            sql_session_factory, clock=clock, id_generator=SequentialIdGenerator(),
        )
        workflow = engine.workflows.create_workflow(
            account_id=TEST_ACCOUNT_ID,
            name="Two Step",
            description="",
            trigger_conditions=(amount_trigger(),),
            steps=(make_step(1), make_step(2, escalate_on_timeout=False)),
            created_by=TEST_ADMIN_ID,
        )
        engine.workflows.activate_workflow(workflow.id, TEST_ADMIN_ID)
        request = engine.approvals.create_request(workflow.id, "tx-1", "trader-1")

        clock.advance_hours(5)
        assert engine.process_escalations()[0].action == EscalationAction.ADVANCED
        clock.advance_hours(5)
        assert engine.process_escalations()[0].action == EscalationAction.EXPIRED

        assert engine.approvals.get_request(request.id).status == ApprovalStatus.EXPIRED


class TestFromSettings:

    def test_builds_engine_on_configured_database(self, tmp_path):
        settings = replace(
            get_engine_settings(),
            database_url=f"sqlite:///{tmp_path / 'policy.db'}",
            sweep_interval_seconds=5,
        )
        try:
            engine = PolicyEngine.from_settings(settings, clock=DeterministicClock())
            engine.monitoring.create_monitor("acct-file")

            assert engine.monitoring.get_monitor("acct-file") is not None
            assert engine.create_scheduler()._interval == 5
        finally:
            reset_engine()

    def test_repositories_use_module_session_factory(self, tmp_path):
        settings = replace(
            get_engine_settings(), database_url=f"sqlite:///{tmp_path / 'policy.db'}",
        )
        try:
            engine = PolicyEngine.from_settings(settings, clock=DeterministicClock())
            factory = get_session_factory()

            assert engine.workflows._workflows._session_factory is factory
            assert engine.approvals._requests._session_factory is factory
        finally:
            reset_engine()
