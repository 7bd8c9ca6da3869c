"""Notification tests: templates, phone formatting, dispatcher, direct notify endpoint."""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest
from httpx import AsyncClient

from bluegrid.services.notification_service import (
    Channel,
    NotificationDispatcher,
    NotificationEvent,
    Recipient,
    notification_dispatcher,
)
from bluegrid.services.notification_templates import (
    Audience,
    NotificationKind,
    format_local_time,
    render,
    render_email,
    render_whatsapp,
)
from bluegrid.utils.exceptions import NotificationError
from bluegrid.utils.whatsapp import format_phone_number, send_whatsapp
from tests.conftest import auth_header

CONTEXT = {
    "report_ref": "3F2A9C1B",
    "report_id": "3f2a9c1b-0000-0000-0000-000000000000",
    "location": "Ward 4 <main road>",
    "status": "assigned",
    "status_label": "ASSIGNED",
    "technician_name": "Tara Technician",
    "time": "19 Oct 2026, 06:30 PM",
}


class TestTemplates:

    def test_render_is_single_pass(self):
        """Substituted values are not expanded again."""
        assert render("{a} {b}", {"a": "{b}", "b": "x"}) == "{b} x"

    def test_render_none_and_unknown(self):
        """None renders as a dash; unknown keys stay as is."""
        assert render("{a}/{missing}", {"a": None}) == "-/{missing}"

    def test_email_escapes_html_only(self):
        """HTML body is escaped, plain text is not."""
        subject, body_html, text = render_email(
            NotificationKind.REPORT_SUBMITTED, Audience.REPORTER, {**CONTEXT, "name": "Asha"}
        )
        assert "3F2A9C1B" in subject
        assert "Ward 4 <main road>" in text
        assert "Ward 4 &lt;main road&gt;" in body_html

    def test_missing_pair_renders_nothing(self):
        """Kind/audience pairs without a template render None."""
        assert render_email(NotificationKind.STATUS_FORCED, Audience.REPORTER, CONTEXT) is None
        assert render_whatsapp(NotificationKind.WORK_STARTED, Audience.REPORTER, CONTEXT) is None

    def test_forced_status_line(self):
        """Forced status message carries the status-specific line."""
        text = render_whatsapp(
            NotificationKind.STATUS_FORCED, Audience.REPORTER, {**CONTEXT, "name": "Asha", "status": "approved"}
        )
        assert "Asha" in text
        assert "submit a new report" in text

    def test_local_time(self):
        """Timestamps render in the local timezone."""
        # Asia/Kolkata is UTC+05:30
        assert format_local_time(datetime(2026, 10, 19, 13, 0, tzinfo=timezone.utc)) == "19 Oct 2026, 06:30 PM"
        assert format_local_time(None) == "-"


class TestPhoneNumbers:

    @pytest.mark.parametrize("raw, expected", [
        ("9876543210", "whatsapp:+919876543210"),
        ("98765 43210", "whatsapp:+919876543210"),
        ("09876543210", "whatsapp:+919876543210"),
        ("+91 98765-43210", "whatsapp:+919876543210"),
        ("+1 415 555 2671", "whatsapp:+14155552671"),
    ])
    def test_formats(self, raw, expected):
        """Phone numbers normalise to WhatsApp addresses."""
        assert format_phone_number(raw) == expected

    def test_too_short(self):
        """Too few digits is a notification error."""
        with pytest.raises(NotificationError):
            format_phone_number("12345")

    async def test_send_whatsapp_posts_form(self):
        """Twilio receives a form post with the formatted number."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content.decode()
            return httpx.Response(201, json={"sid": "SM123"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            sid = await send_whatsapp("9876543210", "Hello", client=client)
        assert sid == "SM123"
        assert seen["url"].endswith("/Messages.json")
        assert "To=whatsapp%3A%2B919876543210" in seen["body"]

    async def test_send_whatsapp_error(self):
        """Twilio error status raises NotificationError."""
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"message": "bad"}))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(NotificationError):
                await send_whatsapp("9876543210", "Hello", client=client)


def _dispatcher(email_ok=True, whatsapp_ok=True, enabled=True):
    sent: list[tuple] = []

    async def email_sender(to, subject, body_html, text=None):
        if not email_ok:
            raise ConnectionError("smtp down")
        sent.append(("email", to, subject))

    async def whatsapp_sender(to, body):
        if not whatsapp_ok:
            raise NotificationError("twilio down")
        sent.append(("whatsapp", to, body))
        return "SM1"

    dispatcher = NotificationDispatcher(
        email_sender=email_sender,
        whatsapp_sender=whatsapp_sender,
        email_enabled=lambda: enabled,
        whatsapp_enabled=lambda: enabled,
    )
    return dispatcher, sent


def _event(channels=frozenset({Channel.EMAIL, Channel.WHATSAPP})):
    return NotificationEvent(
        kind=NotificationKind.TECHNICIAN_ASSIGNED,
        recipients=[
            Recipient(Audience.REPORTER, "Asha", email="asha@example.com", phone="9876543210"),
            Recipient(Audience.TECHNICIAN, "Tara", email="tech@example.com", phone=None),
        ],
        context=CONTEXT,
        channels=channels,
    )


class TestDispatcher:

    async def test_delivers_per_recipient_and_channel(self):
        """Each recipient gets each channel it has an address for."""
        dispatcher, sent = _dispatcher()
        results = await dispatcher.deliver(_event())
        assert ("email", "asha@example.com") in {(s[0], s[1]) for s in sent}
        assert ("whatsapp", "9876543210") in {(s[0], s[1]) for s in sent}
        # technician has no phone: WhatsApp skipped
        skipped = [r for r in results if r.skipped]
        assert [(r.channel, r.to) for r in skipped] == [(Channel.WHATSAPP, None)]

    async def test_channel_filter(self):
        """Event channels limit delivery."""
        dispatcher, sent = _dispatcher()
        await dispatcher.deliver(_event(channels=frozenset({Channel.EMAIL})))
        assert {s[0] for s in sent} == {"email"}

    async def test_failures_never_raise(self):
        """Sender failures are recorded, not raised."""
        dispatcher, sent = _dispatcher(email_ok=False, whatsapp_ok=False)
        results = await dispatcher.deliver(_event())
        assert sent == []
        assert any(r.error == "smtp down" for r in results)
        assert any(r.error == "twilio down" for r in results)

    async def test_unconfigured_channels_skip(self):
        """Unconfigured channels are skipped."""
        dispatcher, sent = _dispatcher(enabled=False)
        results = await dispatcher.deliver(_event())
        assert sent == []
        assert all(r.skipped for r in results)

    async def test_emit_runs_in_background(self):
        """emit returns a task that drain waits for."""
        dispatcher, sent = _dispatcher()
        task = dispatcher.emit(_event())
        assert isinstance(task, asyncio.Task)
        await dispatcher.drain()
        assert dispatcher.pending == 0
        assert sent

    async def test_emit_ignores_empty(self):
        """Nothing is scheduled without recipients."""
        dispatcher, _ = _dispatcher()
        assert dispatcher.emit(None) is None
        assert dispatcher.emit(NotificationEvent(NotificationKind.REPORT_APPROVED, [], {})) is None


class TestNotifyEndpoint:

    API = "/api/v1/notify"

    @pytest.fixture
    def direct(self, monkeypatch):
        calls: dict = {"email_ok": True, "whatsapp_ok": True}

        async def email_sender(to, subject, body_html, text=None):
            if not calls["email_ok"]:
                raise ConnectionError("smtp down")

        async def whatsapp_sender(to, body):
            if not calls["whatsapp_ok"]:
                raise NotificationError("twilio down")
            return "SM1"

        monkeypatch.setattr(notification_dispatcher, "_email_sender", email_sender)
        monkeypatch.setattr(notification_dispatcher, "_whatsapp_sender", whatsapp_sender)
        monkeypatch.setattr(notification_dispatcher, "_email_enabled", lambda: True)
        monkeypatch.setattr(notification_dispatcher, "_whatsapp_enabled", lambda: True)
        return calls

    async def test_all_delivered(self, client: AsyncClient, officer, direct):
        """Both channels delivered gives 200."""
        res = await client.post(self.API, json={
            "email": "asha@example.com", "phone": "9876543210", "message": "Water off at 4pm",
        }, headers=auth_header(officer))
        assert res.status_code == 200
        assert res.json()["success"] is True
        assert len(res.json()["results"]) == 2

    async def test_partial(self, client: AsyncClient, officer, direct):
        """One failed channel gives 207."""
        direct["whatsapp_ok"] = False
        res = await client.post(self.API, json={
            "email": "asha@example.com", "phone": "9876543210", "message": "Water off at 4pm",
        }, headers=auth_header(officer))
        assert res.status_code == 207
        assert res.json()["success"] is False

    async def test_all_failed(self, client: AsyncClient, officer, direct):
        """Every channel failing gives 502."""
        direct["email_ok"] = False
        res = await client.post(self.API, json={
            "email": "asha@example.com", "message": "Water off at 4pm",
        }, headers=auth_header(officer))
        assert res.status_code == 502
        assert res.json()["results"][0]["error"] == "smtp down"

    async def test_needs_a_destination(self, client: AsyncClient, officer, direct):
        """Email or phone is required."""
        res = await client.post(self.API, json={"message": "Hello"}, headers=auth_header(officer))
        assert res.status_code == 400

    async def test_officer_only(self, client: AsyncClient, controller, direct):
        """Controllers cannot send direct messages."""
        res = await client.post(self.API, json={
            "email": "asha@example.com", "message": "Hello",
        }, headers=auth_header(controller))
        assert res.status_code == 403


