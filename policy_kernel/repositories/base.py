"""
Repository ports (``policy_kernel.repositories.base``).

Responsibility
--------------
Narrow storage interfaces, one per aggregate, so the services never depend
on a concrete store.  ``memory`` and ``sql`` provide the two implementations.

Contract (all implementations)
------------------------------
* ``get`` returns ``None`` for unknown ids; it never raises.
* ``list_*`` return entities in creation order.
* ``save(entity, expected_version)`` replaces the stored entity only when
  its stored version equals ``expected_version``; otherwise raises
  ``OptimisticLockError``.  Callers pass the version they read and store
  the successor with ``version + 1``.
"""

from __future__ import annotations

from typing import Protocol

from policy_kernel.domain.approval import ApprovalRequest
from policy_kernel.domain.monitoring import TransactionAlert, TransactionMonitor
from policy_kernel.domain.workflow import Workflow


class WorkflowRepository(Protocol):
    def add(self, workflow: Workflow) -> None: ...

    def get(self, workflow_id: str) -> Workflow | None: ...

    def list_for_account(self, account_id: str) -> list[Workflow]: ...

    def save(self, workflow: Workflow, expected_version: int) -> None: ...


class ApprovalRequestRepository(Protocol):
    def add(self, request: ApprovalRequest) -> None: ...

    def get(self, request_id: str) -> ApprovalRequest | None: ...

    def list_for_account(self, account_id: str) -> list[ApprovalRequest]: ...

    def list_pending(self) -> list[ApprovalRequest]: ...

    def list_pending_for_workflow(self, workflow_id: str) -> list[ApprovalRequest]: ...

    def save(self, request: ApprovalRequest, expected_version: int) -> None: ...


class MonitorRepository(Protocol):
    def add(self, monitor: TransactionMonitor) -> None: ...

    def get_for_account(self, account_id: str) -> TransactionMonitor | None: ...

    def save(self, monitor: TransactionMonitor, expected_version: int) -> None: ...


class AlertRepository(Protocol):
    def add(self, alert: TransactionAlert) -> None: ...

    def get(self, alert_id: str) -> TransactionAlert | None: ...

    def list_for_account(self, account_id: str) -> list[TransactionAlert]: ...

    def save(self, alert: TransactionAlert) -> None: ...
