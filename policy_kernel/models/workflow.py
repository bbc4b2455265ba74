"""
Module: policy_kernel.models.workflow
Responsibility: ORM persistence for approval workflows.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Status values are limited by a check constraint.
    - ``version`` backs optimistic concurrency: the repository updates
      ``WHERE version = expected`` and treats zero affected rows as a conflict.
    - Steps and triggers are stored as JSON documents, decoded back into
      frozen domain objects (Decimal condition values survive the round trip).

Failure modes:
    - IntegrityError on duplicate workflow_id.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from policy_kernel.db.base import Base, UTCDateTime
from policy_kernel.utils.serialization import (
    step_from_dict,
    step_to_dict,
    trigger_from_dict,
    trigger_to_dict,
)

if TYPE_CHECKING:
    from policy_kernel.domain.workflow import Workflow


class WorkflowModel(Base):
    """Persistent approval workflow.

    Guarantees:
        - Rows are returned in insertion order (surrogate ``id``), which is
          the creation order used for trigger matching.
    """

    __tablename__ = "policy_workflows"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'active', 'paused', 'archived')",
            name="ck_policy_workflows_valid_status",
        ),
        Index("ix_policy_workflows_account_status", "account_id", "status"),
    )

    workflow_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    trigger_conditions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return (
            f"<Workflow {self.workflow_id} account={self.account_id} "
            f"status={self.status} v{self.version}>"
        )

    def to_dto(self) -> Workflow:
        """Convert ORM model to frozen domain DTO."""
        from policy_kernel.domain.workflow import Workflow as WorkflowDTO
        from policy_kernel.domain.workflow import WorkflowStatus

        return WorkflowDTO(
            id=self.workflow_id,
            account_id=self.account_id,
            name=self.name,
            description=self.description,
            steps=tuple(step_from_dict(s) for s in self.steps),
            trigger_conditions=tuple(trigger_from_dict(t) for t in self.trigger_conditions),
            status=WorkflowStatus(self.status),
            priority=self.priority,
            created_by=self.created_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Workflow) -> WorkflowModel:
        """Create ORM model from domain DTO."""
        return cls(
            workflow_id=dto.id,
            account_id=dto.account_id,
            name=dto.name,
            description=dto.description,
            steps=[step_to_dict(s) for s in dto.steps],
            trigger_conditions=[trigger_to_dict(t) for t in dto.trigger_conditions],
            status=dto.status.value,
            priority=dto.priority,
            created_by=dto.created_by,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            version=dto.version,
        )

    @staticmethod
    def update_values(dto: Workflow) -> dict[str, Any]:
        """Column values for a versioned UPDATE of this row."""
        return {
            "name": dto.name,
            "description": dto.description,
            "steps": [step_to_dict(s) for s in dto.steps],
            "trigger_conditions": [trigger_to_dict(t) for t in dto.trigger_conditions],
            "status": dto.status.value,
            "priority": dto.priority,
            "updated_at": dto.updated_at,
            "version": dto.version,
        }
