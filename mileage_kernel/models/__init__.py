"""ORM models.  Importing this package registers every table on Base.metadata."""

from mileage_kernel.models.approval_history import ApprovalHistoryModel
from mileage_kernel.models.role_assignment import RoleAssignmentModel
from mileage_kernel.models.trip import TripModel
from mileage_kernel.models.voucher import MileageVoucherModel

__all__ = [
    "ApprovalHistoryModel",
    "MileageVoucherModel",
    "RoleAssignmentModel",
    "TripModel",
]
