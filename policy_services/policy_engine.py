"""
policy_services.policy_engine -- Central wiring for the policy services.

Responsibility:
    Creates the event bus, the lock registries and every policy service
    exactly once, over one set of repositories and one clock, and exposes
    them as public attributes.

Architecture position:
    Services -- top of the service layer.  The only place where services
    are constructed and composed.

Invariants enforced:
    - Single-instance lifecycle: one bus, one clock, one request lock
      registry shared by the approval service and the sweeper, one
      account lock registry shared by workflow and approval services.
    - DI transparency: all wiring is visible in ``__init__``.

Usage:
    engine = PolicyEngine.in_memory()
    engine.on_event(print)

    engine.workflows.initialize_default_workflows("acct-1", "admin-1")
    evaluation = engine.approvals.should_trigger_approval("acct-1", tx)
    request = engine.approvals.create_request(
        evaluation.matched_workflow.id, tx.id, "trader-1",
    )
    engine.approvals.approve(request.id, "rm-1", "risk_manager")
    engine.process_escalations()

    engine.monitoring.create_monitor("acct-1")
    engine.monitoring.check_transaction("acct-1", tx)
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from policy_config import get_engine_settings
from policy_config.bridges import monitoring_config_from_def
from policy_config.schema import EngineSettings
from policy_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from policy_kernel.domain.approval import EscalationResult
from policy_kernel.domain.clock import Clock, SystemClock
from policy_kernel.logging_config import get_logger
from policy_kernel.repositories.base import (
    AlertRepository,
    ApprovalRequestRepository,
    MonitorRepository,
    WorkflowRepository,
)
from policy_kernel.repositories.memory import (
    InMemoryAlertRepository,
    InMemoryApprovalRequestRepository,
    InMemoryMonitorRepository,
    InMemoryWorkflowRepository,
)
from policy_kernel.repositories.sql import (
    SqlAlertRepository,
    SqlApprovalRequestRepository,
    SqlMonitorRepository,
    SqlWorkflowRepository,
)
from policy_kernel.services.event_bus import EventBus, EventSubscriber
from policy_kernel.services.locks import KeyedLocks
from policy_kernel.utils.ids import IdGenerator
from policy_services.approval_service import ApprovalService
from policy_services.escalation_scheduler import EscalationScheduler
from policy_services.escalation_service import EscalationSweeper
from policy_services.monitoring_service import MonitoringService
from policy_services.workflow_service import WorkflowService

logger = get_logger("services.policy_engine")


class PolicyEngine:
    """Composition root for workflow, approval, escalation and monitoring.

    Contract:
        Receives the four repositories plus optional clock, id generator
        and engine settings.  Constructs every service once and exposes
        them as ``workflows``, ``approvals``, ``escalations`` and
        ``monitoring``.

    Non-goals:
        - Does NOT own the database engine or session lifecycle.
        - Does NOT start the escalation scheduler; ``create_scheduler``
          returns one for the caller to start.
    """

    def __init__(
        self,
        workflow_repository: WorkflowRepository,
        request_repository: ApprovalRequestRepository,
        monitor_repository: MonitorRepository,
        alert_repository: AlertRepository,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.ids = id_generator or IdGenerator()
        self.settings = settings or get_engine_settings()

        self.events = EventBus(clock=self.clock, id_generator=self.ids)
        self.request_locks = KeyedLocks("request")
        self.account_locks = KeyedLocks("account")
        self.monitor_locks = KeyedLocks("monitor")

        self.workflows = WorkflowService(
            workflow_repository,
            request_repository,
            self.events,
            clock=self.clock,
            id_generator=self.ids,
            account_locks=self.account_locks,
        )
        self.approvals = ApprovalService(
            workflow_repository,
            request_repository,
            self.events,
            clock=self.clock,
            id_generator=self.ids,
            request_locks=self.request_locks,
            account_locks=self.account_locks,
        )
        self.escalations = EscalationSweeper(
            workflow_repository,
            request_repository,
            self.events,
            clock=self.clock,
            request_locks=self.request_locks,
        )
        self.monitoring = MonitoringService(
            monitor_repository,
            alert_repository,
            self.events,
            clock=self.clock,
            id_generator=self.ids,
            account_locks=self.monitor_locks,
            default_config=monitoring_config_from_def(self.settings.monitoring),
            risk_score_cap=self.settings.risk_score_cap,
        )

        logger.info(
            "policy_engine_initialized",
            extra={
                "workflow_repository": type(workflow_repository).__name__,
                "sweep_interval_seconds": self.settings.sweep_interval_seconds,
            },
        )

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def in_memory(
        cls,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        settings: EngineSettings | None = None,
    ) -> PolicyEngine:
        return cls(
            InMemoryWorkflowRepository(),
            InMemoryApprovalRequestRepository(),
            InMemoryMonitorRepository(),
            InMemoryAlertRepository(),
            clock=clock,
            id_generator=id_generator,
            settings=settings,
        )

    @classmethod
    def with_sql(
        cls,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
        settings: EngineSettings | None = None,
    ) -> PolicyEngine:
        """Engine over SQLAlchemy repositories.  Tables must already exist."""
        return cls(
            SqlWorkflowRepository(session_factory),
            SqlApprovalRequestRepository(session_factory),
            SqlMonitorRepository(session_factory),
            SqlAlertRepository(session_factory),
            clock=clock,
            id_generator=id_generator,
            settings=settings,
        )

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ) -> PolicyEngine:
        """Engine over the database named in ``settings.database_url``.

        Initializes the module-level SQLAlchemy engine and creates the
        tables if they do not exist.
        """
        settings = settings or get_engine_settings()
        init_engine_from_url(settings.database_url)
        create_tables()
        return cls.with_sql(
            get_session_factory(),
            clock=clock,
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Events and sweeping
    # ------------------------------------------------------------------

    def on_event(self, callback: EventSubscriber) -> Callable[[], None]:
        """Subscribe to every policy event.  Returns an unsubscribe function."""
        return self.events.subscribe(callback)

    def process_escalations(self) -> list[EscalationResult]:
        return self.escalations.process_escalations()

    def create_scheduler(self) -> EscalationScheduler:
        return EscalationScheduler(
            self.escalations,
            sweep_interval_seconds=self.settings.sweep_interval_seconds,
        )
