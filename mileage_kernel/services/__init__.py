"""
Services -- stateful operations that write to the voucher store.
"""

from mileage_kernel.services.base import BaseService
from mileage_kernel.services.notification_dispatcher import NotificationDispatcher
from mileage_kernel.services.role_assignment_service import RoleAssignmentService
from mileage_kernel.services.voucher_workflow_service import (
    VoucherActionResult,
    VoucherWorkflowService,
)

__all__ = [
    "BaseService",
    "NotificationDispatcher",
    "RoleAssignmentService",
    "VoucherActionResult",
    "VoucherWorkflowService",
]
