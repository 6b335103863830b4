"""
mileage_services.email_templates -- Notification e-mail rendering.

Maps a ``NotificationRequest`` to subject, heading, status line and call
to action, and renders matching plain-text and HTML bodies.

    submit / approve with next role  -> pending-approval mail to approver
    final_approval                   -> ready-for-processing mail to accountant
    approve (final)                  -> approved mail to employee
    reject                           -> returned-for-corrections mail to employee
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from mileage_kernel.domain.notification import NotificationAction, NotificationRequest
from mileage_kernel.domain.voucher import ROLE_DISPLAY_NAMES, ApproverRole

PRODUCT_NAME = "Mileage Tracker"


@dataclass(frozen=True)
class RenderedEmail:
    """A fully rendered message, ready for a transport."""

    recipient: str
    subject: str
    heading: str
    cta_text: str
    cta_url: str
    text_body: str
    html_body: str


def format_month(request: NotificationRequest) -> str:
    """``March 2025``."""
    return request.summary.month.strftime("%B %Y")


def format_miles(miles: Decimal) -> str:
    """One decimal place, half-up: ``120.5 miles``."""
    value = Decimal(miles).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"{value} miles"


def role_display_name(role: ApproverRole | None) -> str:
    if role is None:
        return ""
    return ROLE_DISPLAY_NAMES.get(role, role.value)


def status_message(request: NotificationRequest) -> str:
    action = request.action
    if action == NotificationAction.SUBMIT:
        return "A new mileage voucher has been submitted and requires your approval."
    if action == NotificationAction.APPROVE and request.next_approver_role:
        return (
            "The mileage voucher has been approved and forwarded to the "
            f"{role_display_name(request.next_approver_role)} for the next "
            "level of approval."
        )
    if action == NotificationAction.APPROVE:
        return "Your mileage voucher has been fully approved!"
    if action == NotificationAction.FINAL_APPROVAL:
        return "A mileage voucher has been fully approved and is ready for processing."
    return "Your mileage voucher has been returned for corrections."


def _template_fields(
    request: NotificationRequest,
    app_url: str,
) -> tuple[str, str, str, str]:
    """Subject, heading, CTA text and CTA url for the request's action."""
    employee = request.summary.employee_name
    month = format_month(request)
    action = request.action

    if action == NotificationAction.SUBMIT or (
        action == NotificationAction.APPROVE and request.next_approver_role
    ):
        return (
            f"Mileage Voucher Pending Approval - {employee} ({month})",
            "Mileage Voucher Awaiting Your Approval",
            "Review & Approve",
            f"{app_url}/approvals?voucher={request.summary.voucher_id}",
        )
    if action == NotificationAction.FINAL_APPROVAL:
        return (
            f"Mileage Voucher Ready for Processing - {employee} ({month})",
            "Approved Mileage Voucher Ready for Processing",
            "View Approved Voucher",
            app_url,
        )
    if action == NotificationAction.APPROVE:
        return (
            f"Mileage Voucher Approved - {month}",
            "Your Mileage Voucher Has Been Approved",
            "View Voucher",
            f"{app_url}/vouchers",
        )
    return (
        f"Mileage Voucher Returned - {month}",
        "Your Mileage Voucher Requires Corrections",
        "Review & Resubmit",
        app_url,
    )


def render_email(request: NotificationRequest, app_url: str) -> RenderedEmail:
    """Render ``request`` against the application base url."""
    app_url = app_url.rstrip("/")
    subject, heading, cta_text, cta_url = _template_fields(request, app_url)
    summary = request.summary
    month = format_month(request)
    miles = format_miles(summary.total_miles)
    message = status_message(request)

    text_lines = [
        heading,
        "",
        "Hello,",
        "",
        message,
        "",
        "Voucher Details",
        f"  Employee:    {summary.employee_name}",
        f"  Month:       {month}",
        f"  Total Miles: {miles}",
    ]
    if request.rejection_reason:
        text_lines += ["", "Reason for Return:", request.rejection_reason]
    text_lines += [
        "",
        f"{cta_text}: {cta_url}",
        "",
        "If you have any questions, please contact your administrator.",
        "",
        PRODUCT_NAME,
    ]

    esc = html.escape
    reason_html = ""
    if request.rejection_reason:
        reason_html = (
            "<div class=\"reason\"><p><strong>Reason for Return:</strong></p>"
            f"<p>{esc(request.rejection_reason)}</p></div>"
        )
    html_body = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head><body>"
        f"<h1>{esc(heading)}</h1>"
        "<p>Hello,</p>"
        f"<p>{esc(message)}</p>"
        "<h3>Voucher Details</h3>"
        "<table>"
        f"<tr><td>Employee:</td><td>{esc(summary.employee_name)}</td></tr>"
        f"<tr><td>Month:</td><td>{esc(month)}</td></tr>"
        f"<tr><td>Total Miles:</td><td>{esc(miles)}</td></tr>"
        "</table>"
        f"{reason_html}"
        f"<p><a href=\"{esc(cta_url, quote=True)}\">{esc(cta_text)}</a></p>"
        "<p>If you have any questions, please contact your administrator.</p>"
        f"<p>{PRODUCT_NAME}</p>"
        "</body></html>"
    )

    return RenderedEmail(
        recipient=request.recipient,
        subject=subject,
        heading=heading,
        cta_text=cta_text,
        cta_url=cta_url,
        text_body="\n".join(text_lines),
        html_body=html_body,
    )
