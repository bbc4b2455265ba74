"""
In-memory repositories (``policy_kernel.repositories.memory``).

Dict-backed stores for tests and single-process use.  Python dicts keep
insertion order, which is the creation order the ``list_*`` contract asks
for.  Entities are frozen dataclasses, so handing out stored references is
safe.  An internal lock makes each call atomic; the services still hold
their own per-entity locks around read-modify-write sequences.
"""

from __future__ import annotations

import threading

from policy_kernel.domain.approval import ApprovalRequest, ApprovalStatus
from policy_kernel.domain.monitoring import TransactionAlert, TransactionMonitor
from policy_kernel.domain.workflow import Workflow
from policy_kernel.exceptions import OptimisticLockError


class InMemoryWorkflowRepository:
    def __init__(self) -> None:
        self._items: dict[str, Workflow] = {}
        self._lock = threading.Lock()

    def add(self, workflow: Workflow) -> None:
        with self._lock:
            if workflow.id in self._items:
                raise ValueError(f"Duplicate workflow id: {workflow.id}")
            self._items[workflow.id] = workflow

    def get(self, workflow_id: str) -> Workflow | None:
        return self._items.get(workflow_id)

    def list_for_account(self, account_id: str) -> list[Workflow]:
        with self._lock:
            return [w for w in self._items.values() if w.account_id == account_id]

    def save(self, workflow: Workflow, expected_version: int) -> None:
        with self._lock:
            current = self._items.get(workflow.id)
            if current is None or current.version != expected_version:
                raise OptimisticLockError("Workflow", workflow.id, expected_version)
            self._items[workflow.id] = workflow


class InMemoryApprovalRequestRepository:
    def __init__(self) -> None:
        self._items: dict[str, ApprovalRequest] = {}
        self._lock = threading.Lock()

    def add(self, request: ApprovalRequest) -> None:
        with self._lock:
            if request.id in self._items:
                raise ValueError(f"Duplicate request id: {request.id}")
            self._items[request.id] = request

    def get(self, request_id: str) -> ApprovalRequest | None:
        return self._items.get(request_id)

    def list_for_account(self, account_id: str) -> list[ApprovalRequest]:
        with self._lock:
            return [r for r in self._items.values() if r.account_id == account_id]

    def list_pending(self) -> list[ApprovalRequest]:
        with self._lock:
            return [
                r for r in self._items.values()
                if r.status == ApprovalStatus.PENDING
            ]

    def list_pending_for_workflow(self, workflow_id: str) -> list[ApprovalRequest]:
        with self._lock:
            return [
                r for r in self._items.values()
                if r.workflow_id == workflow_id and r.status == ApprovalStatus.PENDING
            ]

    def save(self, request: ApprovalRequest, expected_version: int) -> None:
        with self._lock:
            current = self._items.get(request.id)
            if current is None or current.version != expected_version:
                raise OptimisticLockError("ApprovalRequest", request.id, expected_version)
            self._items[request.id] = request


class InMemoryMonitorRepository:
    def __init__(self) -> None:
        self._items: dict[str, TransactionMonitor] = {}
        self._lock = threading.Lock()

    def add(self, monitor: TransactionMonitor) -> None:
        with self._lock:
            if monitor.account_id in self._items:
                raise ValueError(f"Duplicate monitor for account: {monitor.account_id}")
            self._items[monitor.account_id] = monitor

    def get_for_account(self, account_id: str) -> TransactionMonitor | None:
        return self._items.get(account_id)

    def save(self, monitor: TransactionMonitor, expected_version: int) -> None:
        with self._lock:
            current = self._items.get(monitor.account_id)
            if current is None or current.version != expected_version:
                raise OptimisticLockError("TransactionMonitor", monitor.id, expected_version)
            self._items[monitor.account_id] = monitor


class InMemoryAlertRepository:
    def __init__(self) -> None:
        self._items: dict[str, TransactionAlert] = {}
        self._lock = threading.Lock()

    def add(self, alert: TransactionAlert) -> None:
        with self._lock:
            self._items[alert.id] = alert

    def get(self, alert_id: str) -> TransactionAlert | None:
        return self._items.get(alert_id)

    def list_for_account(self, account_id: str) -> list[TransactionAlert]:
        with self._lock:
            return [a for a in self._items.values() if a.account_id == account_id]

    def save(self, alert: TransactionAlert) -> None:
        with self._lock:
            self._items[alert.id] = alert
