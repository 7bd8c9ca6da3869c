"""Notification dispatcher: best-effort email and WhatsApp delivery.

Services build a ``NotificationEvent`` describing what happened and who
should hear about it. Routes hand the event to ``notification_dispatcher.emit``
after the database commit. ``emit`` schedules delivery on the running
event loop and returns at once; the HTTP response never waits on SMTP or
Twilio, and a delivery failure is logged and dropped (no retry).
"""

import asyncio
import html
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from bluegrid.services.notification_templates import (
    Audience,
    NotificationKind,
    render_email,
    render_whatsapp,
)
from bluegrid.utils.email import email_configured, send_email
from bluegrid.utils.exceptions import NotificationError
from bluegrid.utils.whatsapp import send_whatsapp, whatsapp_configured

logger = logging.getLogger(__name__)


class Channel(str, enum.Enum):
    EMAIL = "email"
    WHATSAPP = "whatsapp"


ALL_CHANNELS: frozenset[Channel] = frozenset({Channel.EMAIL, Channel.WHATSAPP})


@dataclass(frozen=True)
class Recipient:
    audience: Audience
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass
class NotificationEvent:
    """Something worth telling people about.

    Attributes:
        kind: Which message family to render
        recipients: Who receives it, each tagged with an audience
        context: Template values shared by all recipients
        channels: Channels allowed for this event
    """

    kind: NotificationKind
    recipients: list[Recipient]
    context: dict[str, Any] = field(default_factory=dict)
    channels: frozenset[Channel] = ALL_CHANNELS


@dataclass
class DeliveryResult:
    channel: Channel
    to: str | None
    ok: bool
    skipped: bool = False
    error: str | None = None


EmailSender = Callable[..., Awaitable[None]]
WhatsAppSender = Callable[..., Awaitable[str]]


class NotificationDispatcher:
    """Fire-and-forget delivery of notification events.

    Args:
        email_sender: Coroutine sending one email (to, subject, html, text)
        whatsapp_sender: Coroutine sending one WhatsApp message (to, body)
        email_enabled: Returns whether email is configured
        whatsapp_enabled: Returns whether WhatsApp is configured
    """

    def __init__(
        self,
        email_sender: EmailSender = send_email,
        whatsapp_sender: WhatsAppSender = send_whatsapp,
        email_enabled: Callable[[], bool] = email_configured,
        whatsapp_enabled: Callable[[], bool] = whatsapp_configured,
    ) -> None:
        self._email_sender = email_sender
        self._whatsapp_sender = whatsapp_sender
        self._email_enabled = email_enabled
        self._whatsapp_enabled = whatsapp_enabled
        # Strong references; the loop only keeps weak ones to running tasks
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def emit(self, event: NotificationEvent | None) -> asyncio.Task | None:
        """Schedule delivery of ``event`` and return immediately.

        Must be called from inside a running event loop. Returns the
        delivery task, or None when there is nothing to send.
        """
        if event is None or not event.recipients:
            return None
        task = asyncio.create_task(self.deliver(event), name=f"notify:{event.kind.value}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def deliver(self, event: NotificationEvent) -> list[DeliveryResult]:
        """Deliver ``event`` to every recipient on every allowed channel.

        Never raises; each failure is logged and recorded in the result.
        """
        results: list[DeliveryResult] = []
        for recipient in event.recipients:
            context = {**event.context, "name": recipient.name}
            if Channel.EMAIL in event.channels:
                results.append(await self._deliver_email(event.kind, recipient, context))
            if Channel.WHATSAPP in event.channels:
                results.append(await self._deliver_whatsapp(event.kind, recipient, context))

        failed = [r for r in results if not r.ok and not r.skipped]
        if failed:
            logger.warning(
                "Notification %s: %d of %d deliveries failed",
                event.kind.value, len(failed), len(results),
            )
        return results

    async def _deliver_email(
        self,
        kind: NotificationKind,
        recipient: Recipient,
        context: dict[str, Any],
    ) -> DeliveryResult:
        rendered = render_email(kind, recipient.audience, context)
        if rendered is None or not recipient.email:
            return DeliveryResult(Channel.EMAIL, recipient.email, ok=False, skipped=True)
        if not self._email_enabled():
            logger.info("Email not configured, skipping %s to %s", kind.value, recipient.email)
            return DeliveryResult(Channel.EMAIL, recipient.email, ok=False, skipped=True)

        subject, body_html, text = rendered
        try:
            await self._email_sender(recipient.email, subject, body_html, text)
        except Exception as exc:
            logger.warning("Email %s to %s failed: %s", kind.value, recipient.email, exc)
            return DeliveryResult(Channel.EMAIL, recipient.email, ok=False, error=str(exc))
        logger.info("Email %s sent to %s", kind.value, recipient.email)
        return DeliveryResult(Channel.EMAIL, recipient.email, ok=True)

    async def _deliver_whatsapp(
        self,
        kind: NotificationKind,
        recipient: Recipient,
        context: dict[str, Any],
    ) -> DeliveryResult:
        body = render_whatsapp(kind, recipient.audience, context)
        if body is None or not recipient.phone:
            return DeliveryResult(Channel.WHATSAPP, recipient.phone, ok=False, skipped=True)
        if not self._whatsapp_enabled():
            logger.info("WhatsApp not configured, skipping %s to %s", kind.value, recipient.phone)
            return DeliveryResult(Channel.WHATSAPP, recipient.phone, ok=False, skipped=True)

        try:
            await self._whatsapp_sender(recipient.phone, body)
        except Exception as exc:
            logger.warning("WhatsApp %s to %s failed: %s", kind.value, recipient.phone, exc)
            return DeliveryResult(Channel.WHATSAPP, recipient.phone, ok=False, error=str(exc))
        logger.info("WhatsApp %s sent to %s", kind.value, recipient.phone)
        return DeliveryResult(Channel.WHATSAPP, recipient.phone, ok=True)

    async def send_direct(
        self,
        subject: str,
        message: str,
        email: str | None = None,
        phone: str | None = None,
    ) -> list[DeliveryResult]:
        """Send a free-form message now and report per-channel outcome.

        Used by the officer notify endpoint, which waits for the result.
        An unconfigured channel counts as a failure here, since the caller
        explicitly asked for it.
        """
        results: list[DeliveryResult] = []
        if email:
            try:
                if not self._email_enabled():
                    raise NotificationError("Email is not configured")
                await self._email_sender(email, subject, f"<p>{html.escape(message)}</p>", message)
                results.append(DeliveryResult(Channel.EMAIL, email, ok=True))
            except Exception as exc:
                logger.warning("Direct email to %s failed: %s", email, exc)
                results.append(DeliveryResult(Channel.EMAIL, email, ok=False, error=str(exc)))
        if phone:
            try:
                if not self._whatsapp_enabled():
                    raise NotificationError("WhatsApp is not configured")
                await self._whatsapp_sender(phone, message)
                results.append(DeliveryResult(Channel.WHATSAPP, phone, ok=True))
            except Exception as exc:
                logger.warning("Direct WhatsApp to %s failed: %s", phone, exc)
                results.append(DeliveryResult(Channel.WHATSAPP, phone, ok=False, error=str(exc)))
        return results


notification_dispatcher: NotificationDispatcher = NotificationDispatcher()
