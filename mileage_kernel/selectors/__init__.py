"""
Selectors -- read-only query services returning DTOs.
"""

from mileage_kernel.selectors.approval_queue_selector import (
    ApprovalQueue,
    ApprovalQueueSelector,
)
from mileage_kernel.selectors.base import BaseSelector
from mileage_kernel.selectors.role_selector import RoleSelector, UserRoles
from mileage_kernel.selectors.trip_selector import (
    MileageTotalProvider,
    TripSelector,
)
from mileage_kernel.selectors.voucher_selector import VoucherSelector

__all__ = [
    "ApprovalQueue",
    "ApprovalQueueSelector",
    "BaseSelector",
    "MileageTotalProvider",
    "RoleSelector",
    "TripSelector",
    "UserRoles",
    "VoucherSelector",
]
