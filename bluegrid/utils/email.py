"""Email delivery utility (aiosmtplib).

SMTP settings come from the SMTP_* environment variables in config.py.
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from bluegrid.config import settings


def email_configured() -> bool:
    """True when SMTP credentials are present."""
    return bool(settings.SMTP_USER and settings.SMTP_PASSWORD)


async def send_email(
    to: str,
    subject: str,
    html: str,
    text: str | None = None,
) -> None:
    """Send one email.

    Args:
        to: Recipient address
        subject: Subject line
        html: HTML body
        text: Plain-text alternative, omitted when None

    Raises:
        aiosmtplib.SMTPException: On transport failure
    """
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL or settings.SMTP_USER}>"
    msg["To"] = to

    if text:
        msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))

    await aiosmtplib.send(
        msg,
        hostname=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        start_tls=True,
    )
