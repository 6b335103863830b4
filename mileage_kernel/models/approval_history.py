"""
Module: mileage_kernel.models.approval_history
Responsibility: Append-only log of approve/reject actions on vouchers.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - Rows are never updated or deleted (ORM listeners below).
    - approver_role records the role in effect at the time of action; it is
      never re-derived from the registry afterwards.
    - action is 'approve' or 'reject': CHECK constraint.

Audit relevance:
    Ordered by acted_at, a voucher's history must follow the legal
    approval sequence supervisor -> vp -> coo (rejections may cut it short).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from mileage_kernel.db.base import Base, UUIDString, as_utc
from mileage_kernel.domain.voucher import (
    ApprovalAction,
    ApprovalHistoryRecord,
    ApproverRole,
)
from mileage_kernel.exceptions import ImmutabilityViolationError


class ApprovalHistoryModel(Base):
    """Persistent approval history entry. Append-only."""

    __tablename__ = "approval_history"

    __table_args__ = (
        Index("ix_approval_history_voucher_acted", "voucher_id", "acted_at"),
        CheckConstraint(
            "action IN ('approve', 'reject')",
            name="ck_approval_history_valid_action",
        ),
        CheckConstraint(
            "approver_role IN ('supervisor', 'vp', 'coo')",
            name="ck_approval_history_valid_role",
        ),
    )

    voucher_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("mileage_vouchers.id"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    approver_role: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    acted_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ApprovalHistory {self.id} voucher={self.voucher_id} "
            f"{self.approver_role}:{self.action}>"
        )

    def to_dto(self) -> ApprovalHistoryRecord:
        """Convert ORM model to frozen domain DTO."""
        return ApprovalHistoryRecord(
            id=self.id,
            voucher_id=self.voucher_id,
            approver_id=self.approver_id,
            approver_role=ApproverRole(self.approver_role),
            action=ApprovalAction(self.action),
            acted_at=as_utc(self.acted_at),
            comments=self.comments,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(ApprovalHistoryModel, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to approval history rows."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalHistory",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot modify",
    )


@event.listens_for(ApprovalHistoryModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of approval history rows."""
    raise ImmutabilityViolationError(
        entity_type="ApprovalHistory",
        entity_id=str(target.id),
        reason="Approval history is append-only -- cannot delete",
    )
