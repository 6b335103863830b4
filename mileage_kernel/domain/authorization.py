"""
Voucher authorization (``mileage_kernel.domain.authorization``).

Responsibility
--------------
One authorization function, ``authorize``, reused by every approval
transition, plus the owner check for submission and the queue-role
resolution used by the approval queue view.  Results are tagged
``AuthorizationResult`` values; the service turns a denial into a typed
exception.

Architecture position
---------------------
**Kernel domain layer** -- pure.  Role lookup itself is behind the
``RoleRegistry`` protocol so the kernel never knows where roles live.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from mileage_kernel.domain.voucher import (
    QUEUE_ROLE_PRECEDENCE,
    ApproverRole,
)
from mileage_kernel.exceptions import (
    MileageKernelError,
    RoleRegistryUnavailableError,
)

_APPROVER_ROLE_VALUES: frozenset[str] = frozenset(r.value for r in ApproverRole)


class RoleRegistry(Protocol):
    """Read-only role lookup consumed by the workflow."""

    def roles_of(self, principal_id: UUID) -> frozenset[str]:
        """Return every role label assigned to ``principal_id``."""
        ...


@dataclass(frozen=True)
class AuthorizationResult:
    """Tagged outcome of an authorization check."""

    granted: bool
    required_role: ApproverRole | None = None
    acting_role: ApproverRole | None = None
    reason: str = ""

    @classmethod
    def allow(cls, role: ApproverRole | None = None) -> AuthorizationResult:
        return cls(granted=True, required_role=role, acting_role=role)

    @classmethod
    def deny(
        cls,
        reason: str,
        required_role: ApproverRole | None = None,
    ) -> AuthorizationResult:
        return cls(granted=False, required_role=required_role, reason=reason)


def authorize(
    required_role: ApproverRole,
    actor_roles: Iterable[str],
) -> AuthorizationResult:
    """Check that the actor holds ``required_role``.

    Holding a higher-stage role does not grant a lower stage: a COO acting
    on a ``pending_supervisor`` voucher is denied, never processed ahead.
    """
    roles = frozenset(actor_roles)
    if required_role.value in roles:
        return AuthorizationResult.allow(required_role)

    held = sorted(roles & _APPROVER_ROLE_VALUES)
    if held:
        reason = (
            f"voucher is awaiting {required_role.value}; "
            f"actor holds {', '.join(held)}"
        )
    else:
        reason = "actor holds no approver role"
    return AuthorizationResult.deny(reason, required_role)


def authorize_owner(owner_id: UUID, actor_id: UUID) -> AuthorizationResult:
    """Owner-only operations (submit) require the actor to own the voucher."""
    if owner_id == actor_id:
        return AuthorizationResult.allow()
    return AuthorizationResult.deny("actor is not the voucher owner")


def resolve_queue_role(actor_roles: Iterable[str]) -> ApproverRole | None:
    """Highest-precedence approver role (coo > vp > supervisor), or None."""
    roles = frozenset(actor_roles)
    for role in QUEUE_ROLE_PRECEDENCE:
        if role.value in roles:
            return role
    return None


class StaticRoleRegistry:
    """In-memory ``RoleRegistry`` backed by a mapping.

    Used for embedding the workflow where roles come from a token claim
    rather than the ``user_roles`` table.
    """

    def __init__(self, assignments: Mapping[UUID, Iterable[str]] | None = None):
        self._assignments: dict[UUID, frozenset[str]] = {
            principal: frozenset(roles)
            for principal, roles in (assignments or {}).items()
        }

    def grant(self, principal_id: UUID, *roles: str) -> None:
        current = self._assignments.get(principal_id, frozenset())
        self._assignments[principal_id] = current | frozenset(roles)

    def roles_of(self, principal_id: UUID) -> frozenset[str]:
        return self._assignments.get(principal_id, frozenset())


def lookup_roles(registry: RoleRegistry, principal_id: UUID) -> frozenset[str]:
    """Fetch roles, failing closed when the registry cannot answer."""
    try:
        return frozenset(registry.roles_of(principal_id))
    except MileageKernelError:
        raise
    except Exception as exc:
        raise RoleRegistryUnavailableError(
            str(principal_id), f"{type(exc).__name__}: {exc}",
        ) from exc
