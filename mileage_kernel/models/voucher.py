"""
Module: mileage_kernel.models.voucher
Responsibility: ORM persistence for monthly mileage vouchers.

Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - At most one voucher per (employee_id, month): UNIQUE constraint.
    - status is one of the six workflow values: CHECK constraint.
    - total_miles is non-negative: CHECK constraint.
    - month is stored truncated to the first of the month (the service
      truncates before insert; a CHECK would be dialect-specific).

Failure modes:
    - IntegrityError on a concurrent duplicate (employee_id, month) insert;
      the workflow service absorbs it and re-reads the winning row.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mileage_kernel.db.base import TrackedBase, UUIDString, as_utc
from mileage_kernel.domain.voucher import VoucherRecord, VoucherStatus

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in VoucherStatus)


class MileageVoucherModel(TrackedBase):
    """Persistent monthly voucher.

    Status changes go through conditional UPDATEs in
    ``VoucherWorkflowService``; nothing else writes ``status``.
    """

    __tablename__ = "mileage_vouchers"

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "month",
            name="uq_mileage_vouchers_employee_month",
        ),
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_mileage_vouchers_valid_status",
        ),
        CheckConstraint(
            "total_miles >= 0",
            name="ck_mileage_vouchers_non_negative_miles",
        ),
        # Approval queue: WHERE status = ? ORDER BY submitted_at
        Index(
            "ix_mileage_vouchers_status_submitted",
            "status", "submitted_at",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    month: Mapped[date] = mapped_column(Date, nullable=False)
    total_miles: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=VoucherStatus.DRAFT.value,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    current_approver_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    employee_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    employee_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<MileageVoucher {self.id} employee={self.employee_id} "
            f"month={self.month} status={self.status}>"
        )

    def to_dto(self) -> VoucherRecord:
        """Convert ORM model to frozen domain DTO."""
        return VoucherRecord(
            id=self.id,
            employee_id=self.employee_id,
            month=self.month,
            total_miles=Decimal(self.total_miles),
            status=VoucherStatus(self.status),
            submitted_at=as_utc(self.submitted_at),
            rejection_reason=self.rejection_reason or "",
            current_approver_id=self.current_approver_id,
            employee_email=self.employee_email,
            employee_name=self.employee_name,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
        )
