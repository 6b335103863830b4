"""
Read paths for vouchers and their approval history.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select

from mileage_kernel.domain.voucher import (
    ApprovalHistoryRecord,
    VoucherRecord,
    month_start,
)
from mileage_kernel.exceptions import VoucherNotFoundError
from mileage_kernel.models.approval_history import ApprovalHistoryModel
from mileage_kernel.models.voucher import MileageVoucherModel
from mileage_kernel.selectors.base import BaseSelector


class VoucherSelector(BaseSelector):
    """Employee-facing voucher reads."""

    def get_voucher(self, voucher_id: UUID) -> VoucherRecord:
        """Raises VoucherNotFoundError when the id is unknown."""
        model = self.session.get(
            MileageVoucherModel, voucher_id, populate_existing=True,
        )
        if model is None:
            raise VoucherNotFoundError(str(voucher_id))
        return model.to_dto()

    def get_voucher_for_month(
        self,
        employee_id: UUID,
        month: date,
    ) -> VoucherRecord | None:
        """The employee's voucher for ``month``, or None if not created yet."""
        model = self.session.execute(
            select(MileageVoucherModel).where(
                MileageVoucherModel.employee_id == employee_id,
                MileageVoucherModel.month == month_start(month),
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_employee(self, employee_id: UUID) -> list[VoucherRecord]:
        """All of an employee's vouchers, most recent month first."""
        models = self.session.execute(
            select(MileageVoucherModel)
            .where(MileageVoucherModel.employee_id == employee_id)
            .order_by(MileageVoucherModel.month.desc())
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def history_for(self, voucher_id: UUID) -> list[ApprovalHistoryRecord]:
        """Approval history in the order the actions were taken."""
        models = self.session.execute(
            select(ApprovalHistoryModel)
            .where(ApprovalHistoryModel.voucher_id == voucher_id)
            .order_by(ApprovalHistoryModel.acted_at, ApprovalHistoryModel.id)
        ).scalars().all()
        return [m.to_dto() for m in models]
