"""
Tests for notification e-mail rendering and the SMTP / logging notifiers.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mileage_config.schema import SmtpConfig
from mileage_kernel.domain.notification import (
    NotificationAction,
    NotificationRequest,
    VoucherSummary,
)
from mileage_kernel.domain.voucher import ApproverRole
from mileage_services.email_notifier import (
    LoggingNotifier,
    SmtpEmailNotifier,
    build_message,
)
from mileage_services.email_templates import format_miles, render_email

APP_URL = "https://mileage.example.com/"


def _request(action, recipient="someone@x.com", next_role=None, reason=None, miles="120.5"):
    return NotificationRequest(
        action=action,
        recipient=recipient,
        summary=VoucherSummary(
            voucher_id=uuid4(),
            employee_id=uuid4(),
            employee_name="Jamie Rivera",
            month=date(2025, 3, 1),
            total_miles=Decimal(miles),
        ),
        next_approver_role=next_role,
        rejection_reason=reason,
    )


class TestTemplateSelection:

    def test_submit(self):
        request = _request(NotificationAction.SUBMIT, next_role=ApproverRole.SUPERVISOR)
        email = render_email(request, APP_URL)

        assert email.subject == "Mileage Voucher Pending Approval - Jamie Rivera (March 2025)"
        assert email.heading == "Mileage Voucher Awaiting Your Approval"
        assert email.cta_text == "Review & Approve"
        assert email.cta_url == (
            f"https://mileage.example.com/approvals?voucher={request.summary.voucher_id}"
        )
        assert "requires your approval" in email.text_body

    def test_mid_chain_approve_names_next_role(self):
        request = _request(NotificationAction.APPROVE, next_role=ApproverRole.VP)
        email = render_email(request, APP_URL)

        assert email.subject.startswith("Mileage Voucher Pending Approval")
        assert "forwarded to the Vice President" in email.text_body

    def test_final_approve_to_employee(self):
        email = render_email(_request(NotificationAction.APPROVE), APP_URL)

        assert email.subject == "Mileage Voucher Approved - March 2025"
        assert email.heading == "Your Mileage Voucher Has Been Approved"
        assert email.cta_url == "https://mileage.example.com/vouchers"
        assert "fully approved!" in email.text_body

    def test_final_approval_to_accountant(self):
        email = render_email(_request(NotificationAction.FINAL_APPROVAL), APP_URL)

        assert email.subject == (
            "Mileage Voucher Ready for Processing - Jamie Rivera (March 2025)"
        )
        assert email.cta_text == "View Approved Voucher"
        assert "ready for processing" in email.text_body

    def test_reject_includes_reason(self):
        email = render_email(
            _request(NotificationAction.REJECT, reason="Missing receipts"), APP_URL,
        )

        assert email.subject == "Mileage Voucher Returned - March 2025"
        assert email.cta_text == "Review & Resubmit"
        assert "Reason for Return:\nMissing receipts" in email.text_body
        assert "Missing receipts" in email.html_body

    def test_reason_is_html_escaped(self):
        email = render_email(
            _request(NotificationAction.REJECT, reason="<b>wrong</b> & late"), APP_URL,
        )

        assert "&lt;b&gt;wrong&lt;/b&gt; &amp; late" in email.html_body
        assert "<b>wrong</b>" not in email.html_body

    def test_no_reason_section_without_reason(self):
        email = render_email(_request(NotificationAction.SUBMIT), APP_URL)
        assert "Reason for Return" not in email.text_body
        assert "Reason for Return" not in email.html_body


class TestFormatting:

    @pytest.mark.parametrize("miles,expected", [
        ("120.5", "120.5 miles"),
        ("120.45", "120.5 miles"),
        ("0", "0.0 miles"),
        ("99.94", "99.9 miles"),
    ])
    def test_format_miles(self, miles, expected):
        assert format_miles(Decimal(miles)) == expected

    def test_body_carries_details(self):
        email = render_email(_request(NotificationAction.SUBMIT), APP_URL)
        assert "March 2025" in email.text_body
        assert "120.5 miles" in email.text_body
        assert "Jamie Rivera" in email.html_body
        assert email.text_body.rstrip().endswith("Mileage Tracker")


class _FakeSMTP:
    instances: list = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        self.sent = []
        _FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username, password))

    def send_message(self, message):
        self.sent.append(message)


@pytest.fixture
def fake_smtp():
    _FakeSMTP.instances = []
    return _FakeSMTP


class TestSmtpEmailNotifier:

    def test_sends_multipart_message(self, fake_smtp, captured_logs):
        smtp = SmtpConfig(
            host="smtp.example.com", port=2525, username="mailer", password="pw",
            sender="Mileage <noreply@example.com>",
        )
        notifier = SmtpEmailNotifier(smtp, APP_URL, timeout_seconds=3.0, smtp_factory=fake_smtp)

        notifier.notify(_request(NotificationAction.SUBMIT, recipient="sup@x.com"))

        client = fake_smtp.instances[0]
        assert (client.host, client.port, client.timeout) == ("smtp.example.com", 2525, 3.0)
        assert client.calls == ["starttls", ("login", "mailer", "pw")]
        message = client.sent[0]
        assert message["To"] == "sup@x.com"
        assert message["From"] == "Mileage <noreply@example.com>"
        assert message.get_body(("html",)) is not None
        assert message.get_body(("plain",)) is not None
        assert any(r["message"] == "email_sent" for r in captured_logs())

    def test_no_tls_no_login(self, fake_smtp):
        smtp = SmtpConfig(host="relay.local", port=25, use_tls=False)
        SmtpEmailNotifier(smtp, APP_URL, smtp_factory=fake_smtp).notify(
            _request(NotificationAction.REJECT, reason="wrong month"),
        )
        assert fake_smtp.instances[0].calls == []

    def test_transport_error_propagates(self):
        def _refuse(*args, **kwargs):
            raise ConnectionRefusedError("connection refused")

        notifier = SmtpEmailNotifier(SmtpConfig(host="nowhere"), APP_URL, smtp_factory=_refuse)
        with pytest.raises(ConnectionRefusedError):
            notifier.notify(_request(NotificationAction.SUBMIT))

    def test_build_message_subject(self):
        email = render_email(_request(NotificationAction.APPROVE), APP_URL)
        message = build_message(email, "noreply@example.com")
        assert message["Subject"] == "Mileage Voucher Approved - March 2025"


class TestLoggingNotifier:

    def test_logs_instead_of_sending(self, captured_logs):
        LoggingNotifier(APP_URL).notify(
            _request(NotificationAction.FINAL_APPROVAL, recipient="acct@x.com"),
        )

        records = [r for r in captured_logs() if r["message"] == "email_suppressed"]
        assert len(records) == 1
        assert records[0]["recipient"] == "acct@x.com"
        assert records[0]["action"] == "final_approval"
