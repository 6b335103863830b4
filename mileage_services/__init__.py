"""
mileage_services -- Outer wiring for the voucher workflow.

Responsibility:
    E-mail rendering and SMTP transport for notifications, and the
    orchestrator that builds kernel services from configuration.

    Dependency direction:
        mileage_services/ -> mileage_kernel/, mileage_config/  (allowed)
        mileage_kernel/   -> mileage_services/                 (FORBIDDEN)
"""

from mileage_services.email_notifier import LoggingNotifier, SmtpEmailNotifier
from mileage_services.email_templates import RenderedEmail, render_email
from mileage_services.voucher_orchestrator import (
    VoucherOrchestrator,
    build_dispatcher,
    build_notifier,
    init_database,
)

__all__ = [
    "LoggingNotifier",
    "RenderedEmail",
    "SmtpEmailNotifier",
    "VoucherOrchestrator",
    "build_dispatcher",
    "build_notifier",
    "init_database",
    "render_email",
]
