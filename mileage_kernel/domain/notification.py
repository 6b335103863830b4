"""
Notification planning (``mileage_kernel.domain.notification``).

Responsibility
--------------
Decides, for a committed transition, which notifications go out: which
action/template key, which recipient, and which voucher details travel
with it.  Delivery itself is the dispatcher's job; rendering belongs to
the notifier implementation.

Recipient selection:
    submit           -> supervisor e-mail supplied by the submitter
    approve (mid)    -> next-stage approver e-mail supplied by the approver
    approve (final)  -> employee e-mail, plus ``final_approval`` to the
                        accountant when an accountant e-mail is supplied
    reject           -> employee e-mail, carrying the rejection reason
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from mileage_kernel.domain.voucher import (
    ApproverRole,
    VoucherAction,
    VoucherRecord,
    VoucherTransition,
    awaiting_role,
)


class NotificationAction(str, Enum):
    """Template keys understood by notifiers."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    FINAL_APPROVAL = "final_approval"


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class VoucherSummary:
    """Voucher details carried by a notification."""

    voucher_id: UUID
    employee_id: UUID
    employee_name: str
    month: date
    total_miles: Decimal

    @classmethod
    def from_record(cls, voucher: VoucherRecord) -> VoucherSummary:
        return cls(
            voucher_id=voucher.id,
            employee_id=voucher.employee_id,
            employee_name=(
                voucher.employee_name
                or voucher.employee_email
                or str(voucher.employee_id)
            ),
            month=voucher.month,
            total_miles=voucher.total_miles,
        )


@dataclass(frozen=True)
class NotificationRequest:
    """One message to one recipient about one voucher action."""

    action: NotificationAction
    recipient: str
    summary: VoucherSummary
    next_approver_role: ApproverRole | None = None
    rejection_reason: str | None = None


@dataclass(frozen=True)
class NotificationOutcome:
    """Delivery result for a single request.  Failures are warnings."""

    request: NotificationRequest
    status: DeliveryStatus
    error: str = ""

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.SENT


class Notifier(Protocol):
    """Best-effort transport for notifications.  May raise; callers absorb it."""

    def notify(self, request: NotificationRequest) -> None:
        ...


def plan_notifications(
    transition: VoucherTransition,
    voucher: VoucherRecord,
    *,
    supervisor_email: str | None = None,
    next_recipient_email: str | None = None,
    accountant_email: str | None = None,
) -> tuple[NotificationRequest, ...]:
    """Build the notifications owed for ``transition`` on the post-transition ``voucher``.

    Requests with no known recipient are left out.
    """
    summary = VoucherSummary.from_record(voucher)
    requests: list[NotificationRequest] = []

    if transition.action == VoucherAction.SUBMIT:
        if supervisor_email:
            requests.append(NotificationRequest(
                action=NotificationAction.SUBMIT,
                recipient=supervisor_email,
                summary=summary,
                next_approver_role=ApproverRole.SUPERVISOR,
            ))

    elif transition.action == VoucherAction.APPROVE:
        if transition.is_final_approval:
            if voucher.employee_email:
                requests.append(NotificationRequest(
                    action=NotificationAction.APPROVE,
                    recipient=voucher.employee_email,
                    summary=summary,
                ))
            if accountant_email:
                requests.append(NotificationRequest(
                    action=NotificationAction.FINAL_APPROVAL,
                    recipient=accountant_email,
                    summary=summary,
                ))
        elif next_recipient_email:
            requests.append(NotificationRequest(
                action=NotificationAction.APPROVE,
                recipient=next_recipient_email,
                summary=summary,
                next_approver_role=awaiting_role(transition.to_status),
            ))

    elif transition.action == VoucherAction.REJECT:
        if voucher.employee_email:
            requests.append(NotificationRequest(
                action=NotificationAction.REJECT,
                recipient=voucher.employee_email,
                summary=summary,
                rejection_reason=voucher.rejection_reason,
            ))

    return tuple(requests)
