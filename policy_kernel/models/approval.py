"""
Module: policy_kernel.models.approval
Responsibility: ORM persistence for approval requests and decisions.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Lifecycle: DB check constraint limits status values; the approval
      service enforces transition rules.
    - Decision uniqueness: UNIQUE(request_id, step_number, approver_id)
      prevents the same approver deciding twice on one step.
    - Decisions are append-only: UPDATE and DELETE raise
      ImmutabilityViolationError at the ORM level.
    - ``version`` backs optimistic concurrency on the request row.

Failure modes:
    - IntegrityError on duplicate approver decision.
    - ImmutabilityViolationError on decision UPDATE/DELETE.

Audit relevance:
    Approval decisions form the governance audit trail.  They are never
    modified once written.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from policy_kernel.db.base import Base, UTCDateTime
from policy_kernel.exceptions import ImmutabilityViolationError
from policy_kernel.utils.serialization import decode_value, encode_value

if TYPE_CHECKING:
    from policy_kernel.domain.approval import ApprovalDecisionRecord, ApprovalRequest


class ApprovalRequestModel(Base):
    """Persistent approval request.

    Contract:
        Terminal statuses (approved, rejected, expired, cancelled) are
        never changed once set.
    """

    __tablename__ = "policy_approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'expired', 'cancelled')",
            name="ck_policy_approval_requests_valid_status",
        ),
        Index("ix_policy_approval_requests_account", "account_id", "requested_at"),
        # Escalation sweep scans pending requests by deadline
        Index("ix_policy_approval_requests_expiry", "status", "expires_at"),
        Index("ix_policy_approval_requests_workflow", "workflow_id", "status"),
    )

    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    workflow_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(128), nullable=False)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    requested_by: Mapped[str] = mapped_column(String(128), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    request_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    decisions: Mapped[list["ApprovalDecisionModel"]] = relationship(
        "ApprovalDecisionModel",
        back_populates="request",
        primaryjoin="ApprovalRequestModel.request_id == ApprovalDecisionModel.request_id",
        order_by="ApprovalDecisionModel.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest {self.request_id} workflow={self.workflow_id} "
            f"step={self.current_step} status={self.status}>"
        )

    def to_dto(self) -> ApprovalRequest:
        """Convert ORM model to frozen domain DTO."""
        from policy_kernel.domain.approval import ApprovalRequest as ApprovalRequestDTO
        from policy_kernel.domain.approval import ApprovalStatus

        return ApprovalRequestDTO(
            id=self.request_id,
            workflow_id=self.workflow_id,
            account_id=self.account_id,
            transaction_id=self.transaction_id,
            current_step=self.current_step,
            status=ApprovalStatus(self.status),
            requested_by=self.requested_by,
            requested_at=self.requested_at,
            expires_at=self.expires_at,
            approvals=tuple(d.to_dto() for d in self.decisions),
            completed_at=self.completed_at,
            metadata=decode_value(self.request_metadata or {}),
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalRequest) -> ApprovalRequestModel:
        """Create ORM model from domain DTO (decisions are added separately)."""
        return cls(
            request_id=dto.id,
            workflow_id=dto.workflow_id,
            account_id=dto.account_id,
            transaction_id=dto.transaction_id,
            current_step=dto.current_step,
            status=dto.status.value,
            requested_by=dto.requested_by,
            requested_at=dto.requested_at,
            expires_at=dto.expires_at,
            completed_at=dto.completed_at,
            request_metadata=encode_value(dto.metadata),
            version=dto.version,
        )

    @staticmethod
    def update_values(dto: ApprovalRequest) -> dict[str, Any]:
        """Column values for a versioned UPDATE of this row."""
        return {
            "current_step": dto.current_step,
            "status": dto.status.value,
            "expires_at": dto.expires_at,
            "completed_at": dto.completed_at,
            "request_metadata": encode_value(dto.metadata),
            "version": dto.version,
        }


class ApprovalDecisionModel(Base):
    """Persistent approval decision record. Append-only.

    Guarantees:
        - UNIQUE(request_id, step_number, approver_id).
    """

    __tablename__ = "policy_approval_decisions"

    __table_args__ = (
        Index("ix_policy_approval_decisions_request_id", "request_id"),
        UniqueConstraint(
            "request_id", "step_number", "approver_id",
            name="uq_policy_approval_decisions_step_approver",
        ),
        CheckConstraint(
            "decision IN ('approved', 'rejected')",
            name="ck_policy_approval_decisions_valid_decision",
        ),
    )

    request_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("policy_approval_requests.request_id"),
        nullable=False,
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_id: Mapped[str] = mapped_column(String(128), nullable=False)
    approver_role: Mapped[str] = mapped_column(String(64), nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    request: Mapped["ApprovalRequestModel"] = relationship(
        "ApprovalRequestModel",
        back_populates="decisions",
        foreign_keys=[request_id],
        primaryjoin="ApprovalDecisionModel.request_id == ApprovalRequestModel.request_id",
    )

    def __repr__(self) -> str:
        return (
            f"<ApprovalDecision request={self.request_id} "
            f"step={self.step_number} approver={self.approver_id} "
            f"decision={self.decision}>"
        )

    def to_dto(self) -> ApprovalDecisionRecord:
        """Convert ORM model to frozen domain DTO."""
        from policy_kernel.domain.approval import ApprovalDecision
        from policy_kernel.domain.approval import ApprovalDecisionRecord as DecisionDTO

        return DecisionDTO(
            step_number=self.step_number,
            approver_id=self.approver_id,
            approver_role=self.approver_role,
            decision=ApprovalDecision(self.decision),
            timestamp=self.decided_at,
            comments=self.comments,
            signature=self.signature,
        )

    @classmethod
    def from_dto(cls, request_id: str, dto: ApprovalDecisionRecord) -> ApprovalDecisionModel:
        """Create ORM model from domain DTO."""
        return cls(
            request_id=request_id,
            step_number=dto.step_number,
            approver_id=dto.approver_id,
            approver_role=dto.approver_role,
            decision=dto.decision.value,
            comments=dto.comments,
            signature=dto.signature,
            decided_at=dto.timestamp,
        )


# =============================================================================
# ORM-Level Immutability for Decisions (Append-Only)
# =============================================================================


@event.listens_for(ApprovalDecisionModel, "before_update")
def prevent_decision_update(mapper, connection, target):
    """Prevent updates to approval decision records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalDecision",
        entity_id=f"{target.request_id}/{target.step_number}/{target.approver_id}",
        reason="Approval decisions are immutable -- cannot modify",
    )


@event.listens_for(ApprovalDecisionModel, "before_delete")
def prevent_decision_delete(mapper, connection, target):
    """Prevent deletion of approval decision records."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalDecision",
        entity_id=f"{target.request_id}/{target.step_number}/{target.approver_id}",
        reason="Approval decisions are immutable -- cannot delete",
    )
