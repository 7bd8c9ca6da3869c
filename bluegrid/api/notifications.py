"""Notifications Router: officer one-off messages by email and/or WhatsApp.

Unlike lifecycle notifications, these are sent inline and the outcome is
reported: 200 all channels delivered, 207 partial, 502 none.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from bluegrid.api.deps import require_officer
from bluegrid.models.user import User
from bluegrid.schemas.notification import ChannelResult, NotifyRequest, NotifyResponse
from bluegrid.services.notification_service import notification_dispatcher
from bluegrid.utils.exceptions import ValidationError

router: APIRouter = APIRouter()


@router.post("", response_model=NotifyResponse)
async def send_notification(
    data: NotifyRequest,
    current_user: Annotated[User, Depends(require_officer)],
):
    if not data.email and not (data.phone or "").strip():
        raise ValidationError("Provide an email address or a phone number", code="missing_field")

    deliveries = await notification_dispatcher.send_direct(
        data.subject, data.message, email=data.email, phone=(data.phone or "").strip() or None
    )
    results = [
        ChannelResult(channel=d.channel.value, to=d.to, ok=d.ok, error=d.error) for d in deliveries
    ]
    delivered = sum(1 for r in results if r.ok)
    body = NotifyResponse(success=delivered == len(results), results=results)

    if delivered == len(results):
        return body
    status_code = 207 if delivered else 502
    return JSONResponse(status_code=status_code, content=body.model_dump())
