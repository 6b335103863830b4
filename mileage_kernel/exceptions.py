"""
Typed Exception Hierarchy for the Mileage Kernel.

Every error raised by the voucher workflow is a typed exception with a
machine-readable ``code`` class attribute and structured attributes, so
callers catch by type and report by code instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MileageKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- VoucherNotFoundError
    |
    +-- AuthorizationError
    |   +-- ForbiddenError
    |   +-- NotOwnerError
    |   +-- ProtectedRoleError
    |
    +-- ConflictError
    |   +-- VoucherInFlightError
    |
    +-- DuplicateRoleAssignmentError
    |
    +-- DependencyError
    |   +-- RoleRegistryUnavailableError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Bad e-mail, empty reason, negative miles
Not found       | VOUCHER_NOT_FOUND           | Voucher id does not exist
Authorization   | FORBIDDEN                   | Actor lacks the stage role
                | NOT_OWNER                   | Submit by someone other than the owner
                | PROTECTED_ROLE              | admin/user role through assignment path
Conflict        | VOUCHER_CONFLICT            | Status changed since it was read
                | VOUCHER_IN_FLIGHT           | Submit on a pending/approved voucher
                | DUPLICATE_ROLE_ASSIGNMENT   | User already holds the role
Dependency      | ROLE_REGISTRY_UNAVAILABLE   | Role lookup failed (fail closed)
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a history row

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        result = workflow.approve_voucher(voucher_id, actor_id, next_email)
    except ConflictError:
        # State moved under us: re-read the voucher and let the user retry.
        ...
    except AuthorizationError as e:
        api_response(code=e.code)

ConflictError is recoverable by the caller re-reading and retrying; the
workflow never retries on its own.
"""


class MileageKernelError(Exception):
    """
    Base exception for all mileage kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "MILEAGE_KERNEL_ERROR"


# Validation


class ValidationError(MileageKernelError):
    """Caller input is malformed; nothing was written."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


# Not found


class NotFoundError(MileageKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class VoucherNotFoundError(NotFoundError):
    """Voucher with given ID was not found."""

    code: str = "VOUCHER_NOT_FOUND"

    def __init__(self, voucher_id: str):
        self.voucher_id = voucher_id
        super().__init__(f"Voucher not found: {voucher_id}")


# Authorization


class AuthorizationError(MileageKernelError):
    """Base exception for authorization failures."""

    code: str = "AUTHORIZATION_ERROR"


class ForbiddenError(AuthorizationError):
    """Actor does not hold the role required for the attempted action."""

    code: str = "FORBIDDEN"

    def __init__(self, actor_id: str, required_role: str, reason: str = ""):
        self.actor_id = actor_id
        self.required_role = required_role
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} is not permitted to act as {required_role}"
            + (f": {reason}" if reason else "")
        )


class NotOwnerError(AuthorizationError):
    """Owner-only operation attempted by another principal."""

    code: str = "NOT_OWNER"

    def __init__(self, voucher_id: str, actor_id: str):
        self.voucher_id = voucher_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} does not own voucher {voucher_id}"
        )


class ProtectedRoleError(AuthorizationError):
    """Attempt to grant or revoke a role that the assignment path may not touch."""

    code: str = "PROTECTED_ROLE"

    def __init__(self, role: str, reason: str):
        self.role = role
        self.reason = reason
        super().__init__(f"Role '{role}' is protected: {reason}")


# Conflict


class ConflictError(MileageKernelError):
    """
    The voucher state changed since the caller observed it.

    Recoverable: re-read and retry.
    """

    code: str = "VOUCHER_CONFLICT"

    def __init__(self, voucher_id: str, expected_status: str, message: str | None = None):
        self.voucher_id = voucher_id
        self.expected_status = expected_status
        super().__init__(
            message
            or f"Voucher {voucher_id} state changed (expected {expected_status}), please refresh"
        )


class VoucherInFlightError(ConflictError):
    """Submit attempted while the voucher is pending or already approved."""

    code: str = "VOUCHER_IN_FLIGHT"

    def __init__(self, voucher_id: str, current_status: str):
        self.current_status = current_status
        super().__init__(
            voucher_id,
            expected_status="draft|rejected",
            message=(
                f"Voucher {voucher_id} is already {current_status} "
                "and cannot be submitted again"
            ),
        )


class DuplicateRoleAssignmentError(MileageKernelError):
    """User already holds the role being assigned."""

    code: str = "DUPLICATE_ROLE_ASSIGNMENT"

    def __init__(self, user_id: str, role: str):
        self.user_id = user_id
        self.role = role
        super().__init__(f"User {user_id} already has role '{role}'")


# Dependency


class DependencyError(MileageKernelError):
    """Base exception for failures of external collaborators."""

    code: str = "DEPENDENCY_ERROR"


class RoleRegistryUnavailableError(DependencyError):
    """Role lookup failed; the operation is denied (fail closed)."""

    code: str = "ROLE_REGISTRY_UNAVAILABLE"

    def __init__(self, principal_id: str, cause: str):
        self.principal_id = principal_id
        self.cause = cause
        super().__init__(
            f"Could not resolve roles for {principal_id}: {cause}"
        )


# Immutability


class ImmutabilityError(MileageKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
