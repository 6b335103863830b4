"""
Kernel domain layer: pure value objects and rules for the voucher workflow.

Nothing in this package performs I/O.
"""

from mileage_kernel.domain.authorization import (
    AuthorizationResult,
    RoleRegistry,
    StaticRoleRegistry,
    authorize,
    authorize_owner,
    lookup_roles,
    resolve_queue_role,
)
from mileage_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from mileage_kernel.domain.notification import (
    DeliveryStatus,
    NotificationAction,
    NotificationOutcome,
    NotificationRequest,
    Notifier,
    VoucherSummary,
    plan_notifications,
)
from mileage_kernel.domain.voucher import (
    APPROVAL_CHAIN,
    VOUCHER_TRANSITIONS,
    ApprovalAction,
    ApprovalHistoryRecord,
    ApproverRole,
    Principal,
    Role,
    VoucherAction,
    VoucherRecord,
    VoucherStatus,
    VoucherTransition,
    awaiting_role,
    find_transition,
    month_start,
)

__all__ = [
    "APPROVAL_CHAIN",
    "VOUCHER_TRANSITIONS",
    "ApprovalAction",
    "ApprovalHistoryRecord",
    "ApproverRole",
    "AuthorizationResult",
    "Clock",
    "DeliveryStatus",
    "DeterministicClock",
    "NotificationAction",
    "NotificationOutcome",
    "NotificationRequest",
    "Notifier",
    "Principal",
    "Role",
    "RoleRegistry",
    "StaticRoleRegistry",
    "SystemClock",
    "VoucherAction",
    "VoucherRecord",
    "VoucherStatus",
    "VoucherSummary",
    "VoucherTransition",
    "authorize",
    "authorize_owner",
    "awaiting_role",
    "find_transition",
    "lookup_roles",
    "month_start",
    "plan_notifications",
    "resolve_queue_role",
]
