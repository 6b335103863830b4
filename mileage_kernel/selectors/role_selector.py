"""
Role lookups backed by the ``user_roles`` table.

``RoleSelector`` is the production ``RoleRegistry``: side-effect free and
read-only.  The implicit ``user`` role is never stored, so it never appears
in ``roles_of``.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select

from mileage_kernel.models.role_assignment import RoleAssignmentModel
from mileage_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class UserRoles:
    """A principal and the roles stored for them."""

    user_id: UUID
    roles: tuple[str, ...]


class RoleSelector(BaseSelector):
    """Read-only role registry over ``user_roles``."""

    def roles_of(self, principal_id: UUID) -> frozenset[str]:
        rows = self.session.execute(
            select(RoleAssignmentModel.role).where(
                RoleAssignmentModel.user_id == principal_id,
            )
        ).scalars().all()
        return frozenset(rows)

    def has_role(self, principal_id: UUID, role: str) -> bool:
        return role in self.roles_of(principal_id)

    def list_users_with_roles(self) -> list[UserRoles]:
        """Every principal that holds at least one stored role."""
        rows = self.session.execute(
            select(RoleAssignmentModel.user_id, RoleAssignmentModel.role)
            .order_by(RoleAssignmentModel.user_id, RoleAssignmentModel.role)
        ).all()

        grouped: dict[UUID, list[str]] = {}
        for user_id, role in rows:
            grouped.setdefault(user_id, []).append(role)
        return [
            UserRoles(user_id=user_id, roles=tuple(roles))
            for user_id, roles in grouped.items()
        ]
