"""
mileage_services.voucher_orchestrator -- Central wiring for the voucher workflow.

Responsibility:
    Turns a ``MileageConfig`` into a running workflow: engine, notifier,
    dispatcher, role registry and the kernel services.  Each kernel
    service is created exactly once per orchestrator and shares one
    Session and one Clock.

Usage:
    from mileage_config import get_active_config
    from mileage_kernel.db import session_scope
    from mileage_services.voucher_orchestrator import (
        VoucherOrchestrator, build_dispatcher, init_database,
    )

    config = get_active_config()
    init_database(config)
    dispatcher = build_dispatcher(config)   # one per process

    with session_scope() as session:
        orchestrator = VoucherOrchestrator(session, config, dispatcher=dispatcher)
        orchestrator.workflow.submit_voucher(voucher_id, principal, "sup@x.com")

    An orchestrator that builds its own dispatcher owns its thread pool and
    must be closed:

        orchestrator = VoucherOrchestrator(session, config)
        try:
            ...
        finally:
            orchestrator.close()
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from mileage_config.schema import MileageConfig
from mileage_kernel.db.engine import init_engine_from_url
from mileage_kernel.domain.authorization import RoleRegistry
from mileage_kernel.domain.clock import Clock, SystemClock
from mileage_kernel.domain.notification import Notifier
from mileage_kernel.logging_config import configure_logging, get_logger
from mileage_kernel.selectors.role_selector import RoleSelector
from mileage_kernel.selectors.voucher_selector import VoucherSelector
from mileage_kernel.services.notification_dispatcher import NotificationDispatcher
from mileage_kernel.services.role_assignment_service import RoleAssignmentService
from mileage_kernel.services.voucher_workflow_service import VoucherWorkflowService
from mileage_services.email_notifier import LoggingNotifier, SmtpEmailNotifier

logger = get_logger("services.voucher_orchestrator")


def init_database(config: MileageConfig) -> Engine:
    """Configure logging at the configured level, then initialize the engine."""
    configure_logging(level=config.log_level)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )


def build_notifier(config: MileageConfig) -> Notifier:
    """SMTP when a relay is configured, otherwise a log-only notifier."""
    notifications = config.notifications
    if config.smtp is None:
        logger.info("smtp_not_configured", extra={"config_id": config.config_id})
        return LoggingNotifier(notifications.app_url)
    return SmtpEmailNotifier(
        config.smtp,
        notifications.app_url,
        timeout_seconds=notifications.timeout_seconds,
    )


def build_dispatcher(
    config: MileageConfig,
    notifier: Notifier | None = None,
) -> NotificationDispatcher | None:
    """Dispatcher for the configured notifier, or None when notifications are off."""
    notifications = config.notifications
    if not notifications.enabled:
        return None
    return NotificationDispatcher(
        notifier or build_notifier(config),
        timeout_seconds=notifications.timeout_seconds,
        max_workers=notifications.max_workers,
    )


class VoucherOrchestrator:
    """Creates and holds the kernel services for one session.

    Contract:
        Every service shares ``session`` and ``clock``.  The role registry
        defaults to ``RoleSelector`` over the same session.  ``close()``
        shuts down the dispatcher only when this orchestrator built it.
    """

    def __init__(
        self,
        session: Session,
        config: MileageConfig,
        notifier: Notifier | None = None,
        role_registry: RoleRegistry | None = None,
        clock: Clock | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.config = config

        self.role_registry = role_registry or RoleSelector(session)
        self._owns_dispatcher = dispatcher is None
        self.dispatcher = dispatcher or build_dispatcher(config, notifier)
        self.vouchers = VoucherSelector(session)
        self.workflow = VoucherWorkflowService(
            session,
            self.role_registry,
            dispatcher=self.dispatcher,
            clock=self._clock,
        )
        self.role_admin = RoleAssignmentService(
            session,
            role_registry=self.role_registry,
        )

    def close(self) -> None:
        if self._owns_dispatcher and self.dispatcher is not None:
            self.dispatcher.shutdown(wait=False)
