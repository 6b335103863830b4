"""
Pytest fixtures for the mileage kernel test suite.

Provides:
- A SQLite file database per test (real transactions, real file locking)
- Deterministic clock, static role registry, recording notifier
- Voucher factories that walk the workflow to a given status
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest

from mileage_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from mileage_kernel.domain.authorization import StaticRoleRegistry
from mileage_kernel.domain.clock import DeterministicClock
from mileage_kernel.domain.voucher import Principal
from mileage_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from mileage_kernel.services.notification_dispatcher import NotificationDispatcher
from mileage_kernel.services.voucher_workflow_service import VoucherWorkflowService

MARCH_2025 = date(2025, 3, 1)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture mileage_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.submit_voucher(...)
            logs = captured_logs()
            assert any(r["message"] == "voucher_submitted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mileage_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite file database with all tables created."""
    engine = init_engine_from_url(
        f"sqlite:///{tmp_path / 'mileage.db'}",
        sqlite_busy_timeout=15.0,
    )
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine):
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def session_factory(db_engine):
    """Session factory for tests that need one session per thread."""
    return get_session_factory()


# =============================================================================
# Clock, roles, notifications
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


class RecordingNotifier:
    """Notifier that records every request; optionally fails or stalls."""

    def __init__(self):
        self.requests = []
        self.fail_with: Exception | None = None
        self.block: threading.Event | None = None
        self._lock = threading.Lock()

    def notify(self, request):
        if self.block is not None:
            self.block.wait(timeout=10)
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            self.requests.append(request)

    def actions(self):
        return [(r.action.value, r.recipient) for r in self.requests]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    dispatcher = NotificationDispatcher(notifier, timeout_seconds=2.0)
    yield dispatcher
    if notifier.block is not None:
        notifier.block.set()
    dispatcher.shutdown(wait=True)


@dataclass
class Actors:
    """The cast of a voucher's life: one employee and one of each approver."""

    employee: Principal
    supervisor: UUID
    vp: UUID
    coo: UUID
    accountant: UUID
    admin: UUID
    outsider: UUID
    registry: StaticRoleRegistry = field(default_factory=StaticRoleRegistry)


@pytest.fixture
def actors():
    registry = StaticRoleRegistry()
    cast = Actors(
        employee=Principal(uuid4(), "employee@x.com"),
        supervisor=uuid4(),
        vp=uuid4(),
        coo=uuid4(),
        accountant=uuid4(),
        admin=uuid4(),
        outsider=uuid4(),
        registry=registry,
    )
    registry.grant(cast.supervisor, "supervisor")
    registry.grant(cast.vp, "vp")
    registry.grant(cast.coo, "coo")
    registry.grant(cast.accountant, "accountant")
    registry.grant(cast.admin, "admin")
    return cast


@pytest.fixture
def workflow(session, actors, dispatcher, deterministic_clock):
    """VoucherWorkflowService wired to the test session and static roles."""
    return VoucherWorkflowService(
        session,
        actors.registry,
        dispatcher=dispatcher,
        clock=deterministic_clock,
    )


# =============================================================================
# Voucher factories
# =============================================================================


@pytest.fixture
def draft_voucher(workflow, actors):
    """Create (or fetch) the employee's March 2025 draft."""

    def _create(miles="120.5", employee=None, month=MARCH_2025):
        employee = employee or actors.employee
        return workflow.get_or_create_voucher(
            employee.principal_id, month, total_miles=Decimal(miles),
        )

    return _create


@pytest.fixture
def submitted_voucher(workflow, actors, draft_voucher, deterministic_clock):
    """A voucher submitted to the supervisor."""

    def _create(miles="120.5", employee=None, month=MARCH_2025):
        employee = employee or actors.employee
        draft = draft_voucher(miles=miles, employee=employee, month=month)
        result = workflow.submit_voucher(draft.id, employee, "sup@x.com")
        deterministic_clock.advance(60)
        return result.voucher

    return _create


@pytest.fixture
def voucher_at(workflow, actors, submitted_voucher, deterministic_clock):
    """Walk a fresh voucher forward to ``pending_vp`` / ``pending_coo`` / ``approved``."""

    def _walk(status: str):
        voucher = submitted_voucher()
        if status == "pending_supervisor":
            return voucher
        voucher = workflow.approve_voucher(
            voucher.id, actors.supervisor, next_recipient_email="vp@x.com",
        ).voucher
        deterministic_clock.advance(60)
        if status == "pending_vp":
            return voucher
        voucher = workflow.approve_voucher(
            voucher.id, actors.vp, next_recipient_email="coo@x.com",
        ).voucher
        deterministic_clock.advance(60)
        if status == "pending_coo":
            return voucher
        voucher = workflow.approve_voucher(voucher.id, actors.coo).voucher
        deterministic_clock.advance(60)
        return voucher

    return _walk
