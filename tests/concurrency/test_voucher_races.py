"""
Concurrent actions on the same voucher, one session per thread.

Two approvers race on one voucher: both read it in its pending state
(held together by a barrier inside the role lookup), then both attempt
the conditional status UPDATE.  Exactly one wins; the other gets a
ConflictError and writes nothing.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import func, select

from mileage_kernel.domain.authorization import StaticRoleRegistry
from mileage_kernel.domain.clock import DeterministicClock
from mileage_kernel.domain.voucher import VoucherStatus
from mileage_kernel.exceptions import ConflictError
from mileage_kernel.models.approval_history import ApprovalHistoryModel
from mileage_kernel.models.voucher import MileageVoucherModel
from mileage_kernel.services.voucher_workflow_service import VoucherWorkflowService


class BarrierRoleRegistry:
    """Role lookup that blocks until every racing thread has reached it."""

    def __init__(self, inner: StaticRoleRegistry, parties: int):
        self._inner = inner
        self._barrier = threading.Barrier(parties, timeout=10)

    def roles_of(self, principal_id):
        self._barrier.wait()
        return self._inner.roles_of(principal_id)


class BarrierTotals:
    """Total-miles provider that holds racing get-or-create calls together."""

    def __init__(self, parties: int, miles: str = "88"):
        self._barrier = threading.Barrier(parties, timeout=10)
        self._miles = Decimal(miles)

    def total_miles(self, employee_id, month):
        self._barrier.wait()
        return self._miles


def _race(session_factory, calls):
    """Run each ``call(service_session)`` on its own thread and session.

    Returns a list of (result, exception) pairs in call order.
    """

    def _run(call):
        session = session_factory()
        try:
            return call(session), None
        except Exception as exc:
            return None, exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        futures = [pool.submit(_run, call) for call in calls]
        return [f.result(timeout=30) for f in futures]


def _history_rows(session_factory, voucher_id):
    with session_factory() as session:
        return session.execute(
            select(func.count(ApprovalHistoryModel.id)).where(
                ApprovalHistoryModel.voucher_id == voucher_id,
            )
        ).scalar_one()


def _status(session_factory, voucher_id):
    with session_factory() as session:
        return session.get(MileageVoucherModel, voucher_id).status


class TestApprovalRace:

    def test_two_supervisors_approve_once(self, session_factory, actors, submitted_voucher):
        voucher = submitted_voucher()
        second_supervisor = uuid4()
        actors.registry.grant(second_supervisor, "supervisor")
        registry = BarrierRoleRegistry(actors.registry, parties=2)

        def _approve(approver):
            def call(session):
                service = VoucherWorkflowService(
                    session, registry, clock=DeterministicClock(),
                )
                return service.approve_voucher(
                    voucher.id, approver, next_recipient_email="vp@x.com",
                )
            return call

        outcomes = _race(
            session_factory,
            [_approve(actors.supervisor), _approve(second_supervisor)],
        )

        successes = [r for r, e in outcomes if e is None]
        failures = [e for r, e in outcomes if e is not None]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], ConflictError)
        assert successes[0].status == VoucherStatus.PENDING_VP
        assert _status(session_factory, voucher.id) == VoucherStatus.PENDING_VP.value
        assert _history_rows(session_factory, voucher.id) == 1

    def test_approve_against_reject(self, session_factory, actors, submitted_voucher):
        voucher = submitted_voucher()
        second_supervisor = uuid4()
        actors.registry.grant(second_supervisor, "supervisor")
        registry = BarrierRoleRegistry(actors.registry, parties=2)

        def approve(session):
            return VoucherWorkflowService(session, registry).approve_voucher(
                voucher.id, actors.supervisor, next_recipient_email="vp@x.com",
            )

        def reject(session):
            return VoucherWorkflowService(session, registry).reject_voucher(
                voucher.id, second_supervisor, "duplicate trip on the 4th",
            )

        outcomes = _race(session_factory, [approve, reject])

        winners = [r for r, e in outcomes if e is None]
        losers = [e for r, e in outcomes if e is not None]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], ConflictError)
        assert _status(session_factory, voucher.id) == winners[0].status.value
        assert _history_rows(session_factory, voucher.id) == 1


class TestGetOrCreateRace:

    def test_single_voucher_per_month(self, session_factory, actors):
        employee_id = actors.employee.principal_id
        totals = BarrierTotals(parties=2)

        def get_or_create(session):
            service = VoucherWorkflowService(
                session, actors.registry, total_provider=totals,
            )
            return service.get_or_create_voucher(employee_id, date(2025, 3, 17))

        outcomes = _race(session_factory, [get_or_create, get_or_create])

        assert [e for _, e in outcomes] == [None, None]
        first, second = (r for r, _ in outcomes)
        assert first.id == second.id
        assert first.status == VoucherStatus.DRAFT
        assert first.month == date(2025, 3, 1)

        with session_factory() as session:
            count = session.execute(
                select(func.count(MileageVoucherModel.id)).where(
                    MileageVoucherModel.employee_id == employee_id,
                )
            ).scalar_one()
        assert count == 1
