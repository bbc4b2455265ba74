"""
Pytest fixtures for the transaction policy engine test suite.

Provides:
- Structured logging configured once per session, plus a ``captured_logs``
  fixture that returns emitted records as parsed JSON dicts
- A DeterministicClock and sequential id generator so deadlines and ids
  are reproducible
- An in-memory PolicyEngine with an event recorder
- An in-memory SQLite session factory for the SQLAlchemy repositories
- Transaction and active-workflow factories
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from policy_kernel.db.engine import create_tables
from policy_kernel.domain.clock import DeterministicClock
from policy_kernel.domain.conditions import TransactionContext
from policy_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from policy_kernel.utils.ids import SequentialIdGenerator
from policy_services.policy_engine import PolicyEngine
from tests.factories import amount_trigger, make_step

TEST_ACCOUNT_ID = "acct-test"
TEST_ADMIN_ID = "admin-1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture policy_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.approvals.approve(...)
            logs = captured_logs()
            assert any(r["message"] == "approval_decision_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("policy_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def clock():
    """Clock fixed at 2024-01-01 12:00 UTC until advanced."""
    return DeterministicClock()


@pytest.fixture
def ids():
    return SequentialIdGenerator()


@pytest.fixture
def engine(clock, ids):
    """PolicyEngine over in-memory repositories with the bundled defaults."""
    return PolicyEngine.in_memory(clock=clock, id_generator=ids)


@pytest.fixture
def recorded_events(engine):
    """Every event the engine publishes, in order."""
    events = []
    unsubscribe = engine.on_event(events.append)
    yield events
    unsubscribe()


@pytest.fixture
def sql_session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    db_engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    create_tables(db_engine)
    yield sessionmaker(bind=db_engine, expire_on_commit=False)
    db_engine.dispose()


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_tx():
    """Factory for TransactionContext with sensible defaults.

    Extra keyword arguments that are not TransactionContext fields land in
    ``metadata`` (e.g. ``transaction_count_1h=12``).
    """
    counter = {"n": 0}
    fields = {
        "type", "currency", "source", "destination",
        "destination_type", "risk_score", "timestamp",
    }

    def _make(amount="1000", **kwargs) -> TransactionContext:
        counter["n"] += 1
        direct = {k: v for k, v in kwargs.items() if k in fields}
        metadata = {k: v for k, v in kwargs.items() if k not in fields}
        direct.setdefault("type", "transfer")
        direct.setdefault("currency", "USD")
        return TransactionContext(
            id=f"tx-{counter['n']:03d}",
            amount=Decimal(str(amount)),
            metadata=metadata,
            **direct,
        )

    return _make


@pytest.fixture
def active_workflow(engine):
    """Factory: create and activate a workflow on the test account."""

    def _create(
        steps=None,
        triggers=None,
        name="Large Transaction Approval",
        priority=0,
        account_id=TEST_ACCOUNT_ID,
    ):
        workflow = engine.workflows.create_workflow(
            account_id=account_id,
            name=name,
            description=f"{name} (test)",
            trigger_conditions=triggers if triggers is not None else (amount_trigger(),),
            steps=steps if steps is not None else (make_step(),),
            created_by=TEST_ADMIN_ID,
            priority=priority,
        )
        return engine.workflows.activate_workflow(workflow.id, TEST_ADMIN_ID)

    return _create
