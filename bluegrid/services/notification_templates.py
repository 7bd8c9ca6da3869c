"""Notification message catalog and rendering.

Every outbound email and WhatsApp text is described here, keyed by
(kind, audience). Templates use ``{placeholder}`` substitution rendered in
a single pass, so a substituted value is never expanded again and unknown
placeholders are left as-is.
"""

import enum
import html
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from bluegrid.config import settings
from bluegrid.models.enums import ReportStatus

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class NotificationKind(str, enum.Enum):
    REPORT_SUBMITTED = "report_submitted"
    TECHNICIAN_ASSIGNED = "technician_assigned"
    WORK_STARTED = "work_started"
    COMPLETION_SUBMITTED = "completion_submitted"
    REPORT_APPROVED = "report_approved"
    REPORT_REJECTED = "report_rejected"
    STATUS_FORCED = "status_forced"
    SCHEDULE_CREATED = "schedule_created"
    SCHEDULE_OPENED = "schedule_opened"
    SCHEDULE_CLOSED = "schedule_closed"
    SCHEDULE_INTERRUPTED = "schedule_interrupted"
    OTP_CODE = "otp_code"


class Audience(str, enum.Enum):
    """Why a recipient gets the message; selects the template variant."""

    REPORTER = "reporter"
    OFFICER = "officer"
    TECHNICIAN = "technician"
    RESIDENT = "resident"
    APPLICANT = "applicant"


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    body: str


EMAIL_TEMPLATES: dict[tuple[NotificationKind, Audience], EmailTemplate] = {
    (NotificationKind.REPORT_SUBMITTED, Audience.REPORTER): EmailTemplate(
        subject="BlueGrid - Report {report_ref} received",
        body=(
            "Hello {name},\n"
            "Your pipe damage report has been submitted successfully.\n"
            "Location: {location}\n"
            "Status: {status_label}\n"
            "We will assign a maintenance technician soon and keep you updated."
        ),
    ),
    (NotificationKind.REPORT_SUBMITTED, Audience.OFFICER): EmailTemplate(
        subject="BlueGrid - New report {report_ref} needs assignment",
        body=(
            "Hello {name},\n"
            "A new pipe damage report was submitted by {reporter_name} ({reporter_phone}).\n"
            "Location: {location}\n"
            "Notes: {notes}\n"
            "Please assign a maintenance technician."
        ),
    ),
    (NotificationKind.TECHNICIAN_ASSIGNED, Audience.REPORTER): EmailTemplate(
        subject="BlueGrid - Technician assigned to report {report_ref}",
        body=(
            "Hello {name},\n"
            "Your report has been assigned to technician {technician_name}.\n"
            "Location: {location}\n"
            "They will contact you soon."
        ),
    ),
    (NotificationKind.TECHNICIAN_ASSIGNED, Audience.TECHNICIAN): EmailTemplate(
        subject="BlueGrid - New assignment {report_ref}",
        body=(
            "Hello {name},\n"
            "You have been assigned a new pipe damage report.\n"
            "Location: {location}\n"
            "Reporter: {reporter_name} ({reporter_phone})\n"
            "Please accept the assignment in your dashboard."
        ),
    ),
    (NotificationKind.WORK_STARTED, Audience.REPORTER): EmailTemplate(
        subject="BlueGrid - Work started on report {report_ref}",
        body=(
            "Hello {name},\n"
            "Technician {technician_name} has accepted your report and work is in progress.\n"
            "Location: {location}"
        ),
    ),
    (NotificationKind.COMPLETION_SUBMITTED, Audience.REPORTER): EmailTemplate(
        subject="BlueGrid - Repair completed for report {report_ref}",
        body=(
            "Hello {name},\n"
            "Technician {technician_name} has completed the repair.\n"
            "Notes: {completion_notes}\n"
            "The work is now awaiting approval from the Panchayat Officer."
        ),
    ),
    (NotificationKind.COMPLETION_SUBMITTED, Audience.OFFICER): EmailTemplate(
        subject="BlueGrid - Report {report_ref} awaiting approval",
        body=(
            "Hello {name},\n"
            "Technician {technician_name} marked report {report_ref} as complete.\n"
            "Location: {location}\n"
            "Notes: {completion_notes}\n"
            "Please review and approve or reject the work."
        ),
    ),
    (NotificationKind.REPORT_APPROVED, Audience.REPORTER): EmailTemplate(
        subject="BlueGrid - Report {report_ref} resolved",
        body=(
            "Hello {name},\n"
            "Your report has been resolved and approved. Thank you for your patience!\n"
            "You can now rate the repair from your dashboard."
        ),
    ),
    (NotificationKind.REPORT_REJECTED, Audience.REPORTER): EmailTemplate(
        subject="BlueGrid - Update on report {report_ref}",
        body=(
            "Hello {name},\n"
            "The completed work on your report was not approved.\n"
            "Reason: {reason}\n"
            "Our team will follow up."
        ),
    ),
    (NotificationKind.SCHEDULE_CREATED, Audience.RESIDENT): EmailTemplate(
        subject="BlueGrid - Water supply scheduled for {area}",
        body=(
            "Hello {name},\n"
            "Water supply has been scheduled for {area}.\n"
            "Opens: {open_time}\n"
            "Closes: {close_time}"
        ),
    ),
    (NotificationKind.SCHEDULE_OPENED, Audience.RESIDENT): EmailTemplate(
        subject="BlueGrid - Water supply is now open in {area}",
        body=(
            "Hello {name},\n"
            "Water supply is NOW OPEN in {area}.\n"
            "Opened at: {time}\n"
            "Please collect water as needed. Use water responsibly!"
        ),
    ),
    (NotificationKind.SCHEDULE_CLOSED, Audience.RESIDENT): EmailTemplate(
        subject="BlueGrid - Water supply closed in {area}",
        body=(
            "Hello {name},\n"
            "Water supply is NOW CLOSED in {area}.\n"
            "Closed at: {time}\n"
            "The next schedule will be notified to you in advance."
        ),
    ),
    (NotificationKind.SCHEDULE_INTERRUPTED, Audience.RESIDENT): EmailTemplate(
        subject="BlueGrid - Water supply interrupted in {area}",
        body=(
            "Hello {name},\n"
            "Water supply in {area} has been interrupted.\n"
            "Reason: {reason}\n"
            "We will notify you when supply resumes."
        ),
    ),
    (NotificationKind.OTP_CODE, Audience.APPLICANT): EmailTemplate(
        subject="BlueGrid - Email Verification OTP",
        body=(
            "Hello {name},\n"
            "Your OTP for email verification is: {code}\n"
            "This OTP will expire in {minutes} minutes.\n"
            "If you didn't request this, please ignore this email."
        ),
    ),
}


WHATSAPP_TEMPLATES: dict[tuple[NotificationKind, Audience], str] = {
    (NotificationKind.REPORT_SUBMITTED, Audience.REPORTER): (
        "*BlueGrid*\n\n"
        "Hello {name}!\n\n"
        "Your pipe damage report has been submitted successfully.\n\n"
        "*Report Details:*\n"
        "- Report ID: {report_ref}\n"
        "- Location: {location}\n"
        "- Status: {status_label}\n"
        "- Submitted: {time}\n\n"
        "We will assign a maintenance technician soon and keep you updated on the progress.\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.TECHNICIAN_ASSIGNED, Audience.REPORTER): (
        "*BlueGrid - Status Update*\n\n"
        "Hello {name}!\n\n"
        "*Report ID:* {report_ref}\n"
        "*Location:* {location}\n"
        "*Status Update:* Your report has been assigned to technician {technician_name}. "
        "They will contact you soon.\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.TECHNICIAN_ASSIGNED, Audience.TECHNICIAN): (
        "*BlueGrid - New Assignment*\n\n"
        "Hello {name}!\n\n"
        "You have been assigned a new pipe damage report.\n\n"
        "*Report Details:*\n"
        "- Report ID: {report_ref}\n"
        "- Location: {location}\n"
        "- Reporter: {reporter_name}\n"
        "- Assigned: {time}\n\n"
        "Please accept the assignment in your dashboard and contact the reporter if needed.\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.STATUS_FORCED, Audience.REPORTER): (
        "*BlueGrid - Status Update*\n\n"
        "Hello {name}!\n\n"
        "*Report ID:* {report_ref}\n"
        "*Location:* {location}\n"
        "*Status Update:* {status_line}\n\n"
        "{closing_line}\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.SCHEDULE_CREATED, Audience.RESIDENT): (
        "*BlueGrid - Water Supply*\n\n"
        "Hello {name}!\n\n"
        "Water supply has been scheduled.\n\n"
        "Area: {area}\n"
        "Opens: {open_time}\n"
        "Closes: {close_time}\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.SCHEDULE_OPENED, Audience.RESIDENT): (
        "*BlueGrid - Water Supply*\n\n"
        "Hello {name}!\n\n"
        "*Water Supply is NOW OPEN*\n\n"
        "Area: {area}\n"
        "Schedule ID: {schedule_ref}\n"
        "Opened at: {time}\n\n"
        "Please collect water as needed. Use water responsibly!\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.SCHEDULE_CLOSED, Audience.RESIDENT): (
        "*BlueGrid - Water Supply*\n\n"
        "Hello {name}!\n\n"
        "*Water Supply is NOW CLOSED*\n\n"
        "Area: {area}\n"
        "Schedule ID: {schedule_ref}\n"
        "Closed at: {time}\n\n"
        "The next schedule will be notified to you in advance.\n\n"
        "*BlueGrid Team*"
    ),
    (NotificationKind.SCHEDULE_INTERRUPTED, Audience.RESIDENT): (
        "*BlueGrid - Water Supply*\n\n"
        "Hello {name}!\n\n"
        "*Water Supply INTERRUPTED*\n\n"
        "Area: {area}\n"
        "Reason: {reason}\n\n"
        "*BlueGrid Team*"
    ),
}


# Status sentence for forced status updates
STATUS_LINES: dict[ReportStatus, str] = {
    ReportStatus.PENDING: "Your report is pending and will be assigned to a technician.",
    ReportStatus.ASSIGNED: "Your report has been assigned to technician {technician_name}. They will contact you soon.",
    ReportStatus.IN_PROGRESS: "Work is in progress. Technician {technician_name} is working on the repair.",
    ReportStatus.AWAITING_APPROVAL: "The repair is complete and awaiting approval.",
    ReportStatus.COMPLETED: "Great news! The repair work has been completed by {technician_name}.",
    ReportStatus.APPROVED: "Your report has been resolved and approved. Thank you for your patience!",
    ReportStatus.REJECTED: "The work on your report was not approved. Reason: {reason}",
}


def render(template: str, context: dict[str, Any], escape: bool = False) -> str:
    """Single-pass ``{key}`` substitution.

    Args:
        template: Text with placeholders
        context: Values; None renders as "-"
        escape: HTML-escape substituted values
    """
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in context:
            return match.group(0)
        value = context[key]
        text = "-" if value is None else str(value)
        return html.escape(text) if escape else text

    return _PLACEHOLDER.sub(_replace, template)


def format_local_time(value: datetime | None) -> str:
    """Render a timestamp in NOTIFY_TIMEZONE, e.g. ``19 Oct 2026, 06:30 PM``."""
    if value is None:
        return "-"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    local = value.astimezone(ZoneInfo(settings.NOTIFY_TIMEZONE))
    return local.strftime("%d %b %Y, %I:%M %p")


def _wrap_html(body: str) -> str:
    paragraphs = "".join(
        f'<p style="margin: 0 0 12px;">{line}</p>' for line in body.split("\n") if line
    )
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h2 style="color: #1e40af; text-align: center;">BlueGrid Water Management</h2>'
        f"{paragraphs}"
        '<hr style="margin: 30px 0; border: none; border-top: 1px solid #e5e7eb;">'
        '<p style="color: #9ca3af; font-size: 12px; text-align: center;">BlueGrid Water Management System</p>'
        "</div>"
    )


def render_email(
    kind: NotificationKind,
    audience: Audience,
    context: dict[str, Any],
) -> tuple[str, str, str] | None:
    """Render the email for (kind, audience).

    Returns:
        (subject, html, text), or None when no email exists for the pair
    """
    template = EMAIL_TEMPLATES.get((kind, audience))
    if template is None:
        return None
    subject = render(template.subject, context)
    text = render(template.body, context)
    body_html = _wrap_html(render(template.body, context, escape=True))
    return subject, body_html, text


def render_whatsapp(
    kind: NotificationKind,
    audience: Audience,
    context: dict[str, Any],
) -> str | None:
    """Render the WhatsApp text for (kind, audience), or None when there is none."""
    template = WHATSAPP_TEMPLATES.get((kind, audience))
    if template is None:
        return None
    if kind is NotificationKind.STATUS_FORCED:
        status = ReportStatus(context["status"])
        context = {
            **context,
            "status_line": render(STATUS_LINES[status], context),
            "closing_line": (
                "If you notice any issues, please submit a new report."
                if status in (ReportStatus.COMPLETED, ReportStatus.APPROVED)
                else "We will keep you updated on further progress."
            ),
        }
    return render(template, context)
