"""
Module: mileage_kernel.models.role_assignment
Responsibility: ORM persistence for principal -> role assignments.

Invariants enforced:
    - UNIQUE(user_id, role): a role is held at most once.
    - The implicit 'user' role is never stored: CHECK constraint.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from mileage_kernel.db.base import Base, UUIDString


class RoleAssignmentModel(Base):
    """One stored role label for one principal."""

    __tablename__ = "user_roles"

    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
        CheckConstraint(
            "role IN ('admin', 'supervisor', 'vp', 'coo', 'accountant')",
            name="ck_user_roles_stored_role",
        ),
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RoleAssignment {self.user_id}:{self.role}>"
