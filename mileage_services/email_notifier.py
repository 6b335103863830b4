"""
mileage_services.email_notifier -- SMTP transport for workflow notifications.

``SmtpEmailNotifier`` implements the kernel's ``Notifier`` protocol.  It
raises on any delivery problem; the kernel's dispatcher turns that into a
warning on the action result.
"""

from __future__ import annotations

import smtplib
from collections.abc import Callable
from email.message import EmailMessage

from mileage_config.schema import SmtpConfig
from mileage_kernel.domain.notification import NotificationRequest
from mileage_kernel.logging_config import get_logger
from mileage_services.email_templates import RenderedEmail, render_email

logger = get_logger("services.email_notifier")


def build_message(rendered: RenderedEmail, sender: str) -> EmailMessage:
    """Multipart text/HTML message for one rendered e-mail."""
    message = EmailMessage()
    message["From"] = sender
    message["To"] = rendered.recipient
    message["Subject"] = rendered.subject
    message.set_content(rendered.text_body)
    message.add_alternative(rendered.html_body, subtype="html")
    return message


class SmtpEmailNotifier:
    """Renders each request and sends it through an SMTP relay."""

    def __init__(
        self,
        smtp: SmtpConfig,
        app_url: str,
        timeout_seconds: float = 5.0,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    ):
        self._smtp = smtp
        self._app_url = app_url
        self._timeout = timeout_seconds
        self._smtp_factory = smtp_factory

    def notify(self, request: NotificationRequest) -> None:
        rendered = render_email(request, self._app_url)
        message = build_message(rendered, self._smtp.sender)

        with self._smtp_factory(
            self._smtp.host, self._smtp.port, timeout=self._timeout,
        ) as client:
            if self._smtp.use_tls:
                client.starttls()
            if self._smtp.username:
                client.login(self._smtp.username, self._smtp.password or "")
            client.send_message(message)

        logger.info(
            "email_sent",
            extra={
                "action": request.action.value,
                "recipient": request.recipient,
                "subject": rendered.subject,
            },
        )


class LoggingNotifier:
    """Notifier that only logs what would have been sent.

    Used when no SMTP relay is configured.
    """

    def __init__(self, app_url: str):
        self._app_url = app_url

    def notify(self, request: NotificationRequest) -> None:
        rendered = render_email(request, self._app_url)
        logger.info(
            "email_suppressed",
            extra={
                "action": request.action.value,
                "recipient": request.recipient,
                "subject": rendered.subject,
            },
        )
