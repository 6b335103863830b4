"""
Tests for RoleAssignmentService -- admin-only role administration.
"""

from uuid import uuid4

import pytest

from mileage_kernel.domain.voucher import Role
from mileage_kernel.exceptions import (
    DuplicateRoleAssignmentError,
    ForbiddenError,
    ProtectedRoleError,
    ValidationError,
)
from mileage_kernel.models.role_assignment import RoleAssignmentModel
from mileage_kernel.selectors.role_selector import RoleSelector
from mileage_kernel.services.role_assignment_service import RoleAssignmentService


@pytest.fixture
def admin_id(session):
    admin = uuid4()
    session.add(RoleAssignmentModel(user_id=admin, role="admin"))
    session.commit()
    return admin


@pytest.fixture
def role_admin(session):
    return RoleAssignmentService(session)


class TestAssignRole:

    def test_assign(self, session, role_admin, admin_id):
        user = uuid4()
        role_admin.assign_role(admin_id, user, "supervisor")
        role_admin.assign_role(admin_id, user, Role.VP)

        assert RoleSelector(session).roles_of(user) == frozenset({"supervisor", "vp"})

    def test_logs_assignment(self, role_admin, admin_id, captured_logs):
        user = uuid4()
        role_admin.assign_role(admin_id, user, "accountant")

        records = [r for r in captured_logs() if r["message"] == "role_assigned"]
        assert len(records) == 1
        assert records[0]["role"] == "accountant"
        assert records[0]["user_id"] == str(user)

    def test_duplicate_rejected(self, session, role_admin, admin_id):
        user = uuid4()
        role_admin.assign_role(admin_id, user, "coo")

        with pytest.raises(DuplicateRoleAssignmentError):
            role_admin.assign_role(admin_id, user, "coo")

        assert RoleSelector(session).roles_of(user) == frozenset({"coo"})

    def test_non_admin_forbidden(self, session, role_admin):
        caller = uuid4()
        session.add(RoleAssignmentModel(user_id=caller, role="coo"))
        session.commit()

        with pytest.raises(ForbiddenError):
            role_admin.assign_role(caller, uuid4(), "supervisor")

    @pytest.mark.parametrize("role", ["admin", "user"])
    def test_protected_roles(self, role_admin, admin_id, role):
        with pytest.raises(ProtectedRoleError):
            role_admin.assign_role(admin_id, uuid4(), role)

    def test_unknown_role(self, role_admin, admin_id):
        with pytest.raises(ValidationError) as exc_info:
            role_admin.assign_role(admin_id, uuid4(), "cfo")
        assert exc_info.value.field == "role"


class TestRemoveRole:

    def test_remove(self, session, role_admin, admin_id):
        user = uuid4()
        role_admin.assign_role(admin_id, user, "supervisor")

        assert role_admin.remove_role(admin_id, user, "supervisor") is True
        assert RoleSelector(session).roles_of(user) == frozenset()

    def test_remove_role_not_held(self, role_admin, admin_id):
        assert role_admin.remove_role(admin_id, uuid4(), "vp") is False

    def test_admin_cannot_be_removed(self, session, role_admin, admin_id):
        with pytest.raises(ProtectedRoleError):
            role_admin.remove_role(admin_id, admin_id, "admin")
        assert RoleSelector(session).has_role(admin_id, "admin")

    def test_non_admin_forbidden(self, role_admin):
        with pytest.raises(ForbiddenError):
            role_admin.remove_role(uuid4(), uuid4(), "vp")


class TestListUsers:

    def test_lists_everyone_with_a_stored_role(self, role_admin, admin_id):
        user = uuid4()
        role_admin.assign_role(admin_id, user, "vp")

        listed = {u.user_id: u.roles for u in role_admin.list_users_with_roles()}

        assert listed == {admin_id: ("admin",), user: ("vp",)}
