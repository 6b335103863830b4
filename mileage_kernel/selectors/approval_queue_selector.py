"""
Module: mileage_kernel.selectors.approval_queue_selector
Responsibility: The approver's work queue.

A principal sees exactly one queue, keyed by their highest approver role
(coo > vp > supervisor): every voucher whose status is ``pending_<role>``,
oldest submission first.  A principal holding no approver role gets an
explicit ``has_approver_role=False`` result rather than an empty list.

Failure modes:
    - RoleRegistryUnavailableError when the role lookup fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select

from mileage_kernel.domain.authorization import (
    RoleRegistry,
    lookup_roles,
    resolve_queue_role,
)
from mileage_kernel.domain.voucher import (
    PENDING_STATUS_FOR_ROLE,
    ApproverRole,
    VoucherRecord,
)
from mileage_kernel.logging_config import get_logger
from mileage_kernel.models.voucher import MileageVoucherModel
from mileage_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.approval_queue")


@dataclass(frozen=True)
class ApprovalQueue:
    """Vouchers awaiting one principal's decision."""

    role: ApproverRole | None
    vouchers: tuple[VoucherRecord, ...] = field(default_factory=tuple)

    @property
    def has_approver_role(self) -> bool:
        return self.role is not None

    @classmethod
    def no_approver_role(cls) -> ApprovalQueue:
        return cls(role=None)

    def __len__(self) -> int:
        return len(self.vouchers)


class ApprovalQueueSelector(BaseSelector):
    """Pending vouchers for the caller's queue role."""

    def __init__(self, session, role_registry: RoleRegistry):
        super().__init__(session)
        self._roles = role_registry

    def list_pending_for(self, actor_id: UUID) -> ApprovalQueue:
        role = resolve_queue_role(lookup_roles(self._roles, actor_id))
        if role is None:
            logger.debug(
                "approval_queue_no_role",
                extra={"actor_id": str(actor_id)},
            )
            return ApprovalQueue.no_approver_role()

        return ApprovalQueue(role=role, vouchers=self.pending_for_role(role))

    def pending_for_role(self, role: ApproverRole) -> tuple[VoucherRecord, ...]:
        """Every voucher in ``pending_<role>``, oldest submission first."""
        status = PENDING_STATUS_FOR_ROLE[role]
        models = self.session.execute(
            select(MileageVoucherModel)
            .where(MileageVoucherModel.status == status.value)
            .order_by(
                MileageVoucherModel.submitted_at.asc(),
                MileageVoucherModel.id,
            )
            .execution_options(populate_existing=True)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)
