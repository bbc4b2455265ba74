"""
SQLAlchemy repositories (``policy_kernel.repositories.sql``).

Responsibility:
    Persist workflows, approval requests (with append-only decisions),
    monitors with their rules, and alerts through the ORM models.

Architecture position:
    Kernel > Repositories.  May import from db/, models/, domain/.

Invariants enforced:
    - Optimistic concurrency: every ``save`` is an
      ``UPDATE ... WHERE version = :expected``; zero affected rows raises
      ``OptimisticLockError`` and rolls the unit of work back.
    - Decisions are only ever INSERTed.  New decisions are the tail of the
      DTO's ``approvals`` tuple beyond what is already stored.
    - Listing is ordered by the surrogate key, i.e. creation order.

Failure modes:
    - OptimisticLockError on stale writes.
    - IntegrityError on duplicate ids or duplicate (request, step, approver)
      decisions.

Each call opens its own session through ``session_scope`` and commits on
success.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from policy_kernel.db.engine import session_scope
from policy_kernel.domain.approval import ApprovalRequest, ApprovalStatus
from policy_kernel.domain.monitoring import TransactionAlert, TransactionMonitor
from policy_kernel.domain.workflow import Workflow
from policy_kernel.exceptions import OptimisticLockError
from policy_kernel.logging_config import get_logger
from policy_kernel.models.approval import ApprovalDecisionModel, ApprovalRequestModel
from policy_kernel.models.monitoring import (
    MonitoringRuleModel,
    TransactionAlertModel,
    TransactionMonitorModel,
    statistics_to_dict,
)
from policy_kernel.models.workflow import WorkflowModel
from policy_kernel.utils.serialization import monitoring_config_to_dict

logger = get_logger("repositories.sql")


def _versioned_update(
    session: Session,
    model: type,
    key_column: Any,
    key: str,
    expected_version: int,
    values: dict[str, Any],
    entity_type: str,
) -> None:
    stmt = (
        update(model)
        .where(key_column == key, model.version == expected_version)
        .values({getattr(model, name): value for name, value in values.items()})
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount == 0:
        logger.warning(
            "optimistic_lock_conflict",
            extra={
                "entity_type": entity_type,
                "entity_id": key,
                "expected_version": expected_version,
            },
        )
        raise OptimisticLockError(entity_type, key, expected_version)


class _SqlRepository:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)


class SqlWorkflowRepository(_SqlRepository):
    def add(self, workflow: Workflow) -> None:
        with self._scope() as session:
            session.add(WorkflowModel.from_dto(workflow))

    def get(self, workflow_id: str) -> Workflow | None:
        with self._scope() as session:
            model = session.execute(
                select(WorkflowModel).where(WorkflowModel.workflow_id == workflow_id)
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def list_for_account(self, account_id: str) -> list[Workflow]:
        with self._scope() as session:
            models = session.execute(
                select(WorkflowModel)
                .where(WorkflowModel.account_id == account_id)
                .order_by(WorkflowModel.id)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def save(self, workflow: Workflow, expected_version: int) -> None:
        with self._scope() as session:
            _versioned_update(
                session,
                WorkflowModel,
                WorkflowModel.workflow_id,
                workflow.id,
                expected_version,
                WorkflowModel.update_values(workflow),
                "Workflow",
            )


class SqlApprovalRequestRepository(_SqlRepository):
    def add(self, request: ApprovalRequest) -> None:
        with self._scope() as session:
            session.add(ApprovalRequestModel.from_dto(request))
            session.flush()
            for decision in request.approvals:
                session.add(ApprovalDecisionModel.from_dto(request.id, decision))

    def get(self, request_id: str) -> ApprovalRequest | None:
        with self._scope() as session:
            model = session.execute(
                select(ApprovalRequestModel).where(
                    ApprovalRequestModel.request_id == request_id
                )
            ).scalar_one_or_none()
            return model.to_dto() if model is not None else None

    def list_for_account(self, account_id: str) -> list[ApprovalRequest]:
        return self._list(ApprovalRequestModel.account_id == account_id)

    def list_pending(self) -> list[ApprovalRequest]:
        return self._list(ApprovalRequestModel.status == ApprovalStatus.PENDING.value)

    def list_pending_for_workflow(self, workflow_id: str) -> list[ApprovalRequest]:
        return self._list(
            ApprovalRequestModel.workflow_id == workflow_id,
            ApprovalRequestModel.status == ApprovalStatus.PENDING.value,
        )

    def save(self, request: ApprovalRequest, expected_version: int) -> None:
        with self._scope() as session:
            _versioned_update(
                session,
                ApprovalRequestModel,
                ApprovalRequestModel.request_id,
                request.id,
                expected_version,
                ApprovalRequestModel.update_values(request),
                "ApprovalRequest",
            )
            stored = session.execute(
                select(func.count())
                .select_from(ApprovalDecisionModel)
                .where(ApprovalDecisionModel.request_id == request.id)
            ).scalar_one()
            for decision in request.approvals[stored:]:
                session.add(ApprovalDecisionModel.from_dto(request.id, decision))

    def _list(self, *criteria: Any) -> list[ApprovalRequest]:
        with self._scope() as session:
            models = session.execute(
                select(ApprovalRequestModel)
                .where(*criteria)
                .order_by(ApprovalRequestModel.id)
            ).scalars().all()
            return [m.to_dto() for m in models]


class SqlMonitorRepository(_SqlRepository):
    def add(self, monitor: TransactionMonitor) -> None:
        with self._scope() as session:
            session.add(TransactionMonitorModel.from_dto(monitor))

    def get_for_account(self, account_id: str) -> TransactionMonitor | None:
        with self._scope() as session:
            model = self._load(session, account_id)
            return model.to_dto() if model is not None else None

    def save(self, monitor: TransactionMonitor, expected_version: int) -> None:
        with self._scope() as session:
            _versioned_update(
                session,
                TransactionMonitorModel,
                TransactionMonitorModel.account_id,
                monitor.account_id,
                expected_version,
                {
                    "enabled": monitor.enabled,
                    "config": monitoring_config_to_dict(monitor.config),
                    "statistics": statistics_to_dict(monitor.statistics),
                    "version": monitor.version,
                },
                "TransactionMonitor",
            )
            self._sync_rules(session, monitor)

    @staticmethod
    def _load(session: Session, account_id: str) -> TransactionMonitorModel | None:
        return session.execute(
            select(TransactionMonitorModel).where(
                TransactionMonitorModel.account_id == account_id
            )
        ).scalar_one_or_none()

    @staticmethod
    def _sync_rules(session: Session, monitor: TransactionMonitor) -> None:
        existing = {
            m.rule_id: m
            for m in session.execute(
                select(MonitoringRuleModel).where(
                    MonitoringRuleModel.account_id == monitor.account_id
                )
            ).scalars()
        }
        wanted = {r.id for r in monitor.rules}
        for rule_id, model in existing.items():
            if rule_id not in wanted:
                session.delete(model)
        for rule in monitor.rules:
            model = existing.get(rule.id)
            if model is None:
                session.add(MonitoringRuleModel.from_dto(monitor.account_id, rule))
                continue
            model.name = rule.name
            model.description = rule.description
            model.enabled = rule.enabled
            model.priority = rule.priority
            model.action = rule.action.value
            model.updated_at = rule.updated_at


class SqlAlertRepository(_SqlRepository):
    def add(self, alert: TransactionAlert) -> None:
        with self._scope() as session:
            session.add(TransactionAlertModel.from_dto(alert))

    def get(self, alert_id: str) -> TransactionAlert | None:
        with self._scope() as session:
            model = self._load(session, alert_id)
            return model.to_dto() if model is not None else None

    def list_for_account(self, account_id: str) -> list[TransactionAlert]:
        with self._scope() as session:
            models = session.execute(
                select(TransactionAlertModel)
                .where(TransactionAlertModel.account_id == account_id)
                .order_by(TransactionAlertModel.id)
            ).scalars().all()
            return [m.to_dto() for m in models]

    def save(self, alert: TransactionAlert) -> None:
        with self._scope() as session:
            model = self._load(session, alert.id)
            if model is None:
                session.add(TransactionAlertModel.from_dto(alert))
            else:
                model.apply(alert)

    @staticmethod
    def _load(session: Session, alert_id: str) -> TransactionAlertModel | None:
        return session.execute(
            select(TransactionAlertModel).where(TransactionAlertModel.alert_id == alert_id)
        ).scalar_one_or_none()
