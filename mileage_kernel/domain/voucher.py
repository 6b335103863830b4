"""
Voucher domain types (``mileage_kernel.domain.voucher``).

Responsibility
--------------
Pure value objects for the mileage voucher approval workflow: the status
and role enums, the transition table that is the single source of truth
for legal moves, and the frozen DTOs returned to callers.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* ``status`` is always one of the six ``VoucherStatus`` values.
* ``VOUCHER_TRANSITIONS`` defines the only legal (status, action) moves.
  ``approved`` has no outgoing edge.
* The status string is the routing key: ``pending_<role>`` awaits exactly
  one ``ApproverRole``.
* Rejection always routes back through ``pending_supervisor`` on
  resubmission; there is no resume-from-stage edge.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =========================================================================
# Enums
# =========================================================================


class VoucherStatus(str, Enum):
    """Persisted voucher lifecycle states."""

    DRAFT = "draft"
    PENDING_SUPERVISOR = "pending_supervisor"
    PENDING_VP = "pending_vp"
    PENDING_COO = "pending_coo"
    APPROVED = "approved"
    REJECTED = "rejected"


class Role(str, Enum):
    """Role labels known to the role registry."""

    ADMIN = "admin"
    USER = "user"
    SUPERVISOR = "supervisor"
    VP = "vp"
    COO = "coo"
    ACCOUNTANT = "accountant"


class ApproverRole(str, Enum):
    """The three sequential approval stages."""

    SUPERVISOR = "supervisor"
    VP = "vp"
    COO = "coo"


class VoucherAction(str, Enum):
    """Actions that move a voucher between statuses."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


class ApprovalAction(str, Enum):
    """Actions recorded in the approval history log."""

    APPROVE = "approve"
    REJECT = "reject"


APPROVAL_CHAIN: tuple[ApproverRole, ...] = (
    ApproverRole.SUPERVISOR,
    ApproverRole.VP,
    ApproverRole.COO,
)

# Highest precedence first; used to pick a principal's queue.
QUEUE_ROLE_PRECEDENCE: tuple[ApproverRole, ...] = tuple(reversed(APPROVAL_CHAIN))

PENDING_STATUS_FOR_ROLE: dict[ApproverRole, VoucherStatus] = {
    ApproverRole.SUPERVISOR: VoucherStatus.PENDING_SUPERVISOR,
    ApproverRole.VP: VoucherStatus.PENDING_VP,
    ApproverRole.COO: VoucherStatus.PENDING_COO,
}

STAGE_ROLE_FOR_STATUS: dict[VoucherStatus, ApproverRole] = {
    status: role for role, status in PENDING_STATUS_FOR_ROLE.items()
}

SUBMITTABLE_STATUSES: frozenset[VoucherStatus] = frozenset({
    VoucherStatus.DRAFT,
    VoucherStatus.REJECTED,
})

PENDING_STATUSES: frozenset[VoucherStatus] = frozenset(STAGE_ROLE_FOR_STATUS)

TERMINAL_STATUSES: frozenset[VoucherStatus] = frozenset({VoucherStatus.APPROVED})


# =========================================================================
# Transition table
# =========================================================================


@dataclass(frozen=True)
class VoucherTransition:
    """One legal edge of the voucher state machine.

    ``required_role`` is None for owner-only actions (submit).
    """

    from_status: VoucherStatus
    action: VoucherAction
    to_status: VoucherStatus
    required_role: ApproverRole | None = None

    @property
    def is_final_approval(self) -> bool:
        return (
            self.action == VoucherAction.APPROVE
            and self.to_status == VoucherStatus.APPROVED
        )


VOUCHER_TRANSITIONS: tuple[VoucherTransition, ...] = (
    VoucherTransition(
        VoucherStatus.DRAFT, VoucherAction.SUBMIT, VoucherStatus.PENDING_SUPERVISOR,
    ),
    VoucherTransition(
        VoucherStatus.REJECTED, VoucherAction.SUBMIT, VoucherStatus.PENDING_SUPERVISOR,
    ),
    VoucherTransition(
        VoucherStatus.PENDING_SUPERVISOR, VoucherAction.APPROVE,
        VoucherStatus.PENDING_VP, ApproverRole.SUPERVISOR,
    ),
    VoucherTransition(
        VoucherStatus.PENDING_VP, VoucherAction.APPROVE,
        VoucherStatus.PENDING_COO, ApproverRole.VP,
    ),
    VoucherTransition(
        VoucherStatus.PENDING_COO, VoucherAction.APPROVE,
        VoucherStatus.APPROVED, ApproverRole.COO,
    ),
    VoucherTransition(
        VoucherStatus.PENDING_SUPERVISOR, VoucherAction.REJECT,
        VoucherStatus.REJECTED, ApproverRole.SUPERVISOR,
    ),
    VoucherTransition(
        VoucherStatus.PENDING_VP, VoucherAction.REJECT,
        VoucherStatus.REJECTED, ApproverRole.VP,
    ),
    VoucherTransition(
        VoucherStatus.PENDING_COO, VoucherAction.REJECT,
        VoucherStatus.REJECTED, ApproverRole.COO,
    ),
)

_TRANSITION_INDEX: dict[tuple[VoucherStatus, VoucherAction], VoucherTransition] = {
    (t.from_status, t.action): t for t in VOUCHER_TRANSITIONS
}


def find_transition(
    status: VoucherStatus,
    action: VoucherAction,
) -> VoucherTransition | None:
    """Return the legal transition for ``action`` from ``status``, if any."""
    return _TRANSITION_INDEX.get((status, action))


def awaiting_role(status: VoucherStatus) -> ApproverRole | None:
    """Role whose decision a voucher in ``status`` is waiting for."""
    return STAGE_ROLE_FOR_STATUS.get(status)


def month_start(value: date) -> date:
    """Truncate a date (or datetime) to the first day of its month."""
    if isinstance(value, datetime):
        value = value.date()
    return value.replace(day=1)


# =========================================================================
# Display names
# =========================================================================


STATUS_DISPLAY_NAMES: dict[VoucherStatus, str] = {
    VoucherStatus.DRAFT: "Draft",
    VoucherStatus.PENDING_SUPERVISOR: "Pending Supervisor",
    VoucherStatus.PENDING_VP: "Pending VP",
    VoucherStatus.PENDING_COO: "Pending COO",
    VoucherStatus.APPROVED: "Approved",
    VoucherStatus.REJECTED: "Returned for Corrections",
}

ROLE_DISPLAY_NAMES: dict[ApproverRole, str] = {
    ApproverRole.SUPERVISOR: "Supervisor",
    ApproverRole.VP: "Vice President",
    ApproverRole.COO: "Chief Operations Officer",
}


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class Principal:
    """An already-authenticated caller, as handed over by the identity provider."""

    principal_id: UUID
    email: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class VoucherRecord:
    """Immutable snapshot of a mileage voucher."""

    id: UUID
    employee_id: UUID
    month: date
    total_miles: Decimal
    status: VoucherStatus
    submitted_at: datetime | None = None
    rejection_reason: str = ""
    current_approver_id: UUID | None = None
    employee_email: str | None = None
    employee_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def awaiting_role(self) -> ApproverRole | None:
        return awaiting_role(self.status)


@dataclass(frozen=True)
class ApprovalHistoryRecord:
    """One approve/reject action taken on a voucher. Immutable."""

    id: UUID
    voucher_id: UUID
    approver_id: UUID
    approver_role: ApproverRole
    action: ApprovalAction
    acted_at: datetime
    comments: str | None = None
