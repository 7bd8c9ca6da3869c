"""Direct notification request/response schemas."""

from pydantic import BaseModel, EmailStr, Field


class NotifyRequest(BaseModel):
    """One-off message to an email address and/or phone number."""

    email: EmailStr | None = None
    phone: str | None = None
    subject: str = Field("BlueGrid Notification", max_length=255)
    message: str = Field(..., min_length=1, max_length=2000)


class ChannelResult(BaseModel):
    channel: str
    to: str | None
    ok: bool
    error: str | None = None


class NotifyResponse(BaseModel):
    success: bool
    results: list[ChannelResult]
