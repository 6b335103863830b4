"""
mileage_kernel.services.role_assignment_service -- Role administration.

Responsibility:
    Grants and revokes approver/accountant roles in ``user_roles``.  The
    voucher workflow itself never grants or revokes roles.

Invariants enforced:
    - Only a principal holding ``admin`` may assign or remove roles.
    - ``admin`` is never assigned or removed through this path.
    - ``user`` is the implicit default and is never stored.
    - A role is held at most once per principal (service check + UNIQUE).

Failure modes:
    - ForbiddenError: caller is not an admin.
    - ProtectedRoleError: attempt to assign/remove ``admin`` or ``user``.
    - DuplicateRoleAssignmentError: principal already holds the role.
    - ValidationError: unknown role label.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mileage_kernel.domain.authorization import RoleRegistry, lookup_roles
from mileage_kernel.domain.voucher import Role
from mileage_kernel.exceptions import (
    DuplicateRoleAssignmentError,
    ForbiddenError,
    ProtectedRoleError,
    ValidationError,
)
from mileage_kernel.logging_config import LogContext, get_logger
from mileage_kernel.models.role_assignment import RoleAssignmentModel
from mileage_kernel.selectors.role_selector import RoleSelector, UserRoles
from mileage_kernel.services.base import BaseService

logger = get_logger("services.role_assignment")


def _parse_role(role: Role | str) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise ValidationError("role", f"unknown role '{role}'") from None


def _check_assignable(role: Role) -> None:
    if role == Role.ADMIN:
        raise ProtectedRoleError(role.value, "admin cannot be assigned or removed")
    if role == Role.USER:
        raise ProtectedRoleError(role.value, "user is the implicit default role")


class RoleAssignmentService(BaseService[RoleAssignmentModel]):
    """Admin-only management of stored roles."""

    def __init__(
        self,
        session: Session,
        role_registry: RoleRegistry | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, auto_commit=auto_commit)
        self._selector = RoleSelector(session)
        self._roles = role_registry or self._selector

    def assign_role(
        self,
        admin_id: UUID,
        user_id: UUID,
        role: Role | str,
    ) -> None:
        role = _parse_role(role)
        with LogContext.bind(actor_id=str(admin_id), operation="assign_role"):
            self._require_admin(admin_id)
            _check_assignable(role)
            try:
                if self._selector.has_role(user_id, role.value):
                    raise DuplicateRoleAssignmentError(str(user_id), role.value)
                self.session.add(RoleAssignmentModel(
                    id=uuid4(), user_id=user_id, role=role.value,
                ))
                try:
                    self.session.flush()
                except IntegrityError:
                    raise DuplicateRoleAssignmentError(str(user_id), role.value) from None
                self._commit()
            except Exception:
                self._rollback()
                raise

            logger.info(
                "role_assigned",
                extra={"user_id": str(user_id), "role": role.value},
            )

    def remove_role(
        self,
        admin_id: UUID,
        user_id: UUID,
        role: Role | str,
    ) -> bool:
        """Revoke ``role``.  Returns False when the principal did not hold it."""
        role = _parse_role(role)
        with LogContext.bind(actor_id=str(admin_id), operation="remove_role"):
            self._require_admin(admin_id)
            _check_assignable(role)
            try:
                result = self.session.execute(
                    delete(RoleAssignmentModel).where(
                        RoleAssignmentModel.user_id == user_id,
                        RoleAssignmentModel.role == role.value,
                    )
                )
                self._commit()
            except Exception:
                self._rollback()
                raise

            removed = result.rowcount > 0
            logger.info(
                "role_removed",
                extra={"user_id": str(user_id), "role": role.value, "removed": removed},
            )
            return removed

    def list_users_with_roles(self) -> list[UserRoles]:
        return self._selector.list_users_with_roles()

    def _require_admin(self, admin_id: UUID) -> None:
        if Role.ADMIN.value not in lookup_roles(self._roles, admin_id):
            logger.warning(
                "role_change_denied",
                extra={"reason": "caller is not an admin"},
            )
            raise ForbiddenError(str(admin_id), Role.ADMIN.value, "caller is not an admin")
