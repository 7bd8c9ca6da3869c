"""Water schedule request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class ScheduleCreate(BaseModel):
    """New supply window. ``resident_id`` targets one resident; omit for everyone."""

    area: str = Field(..., min_length=1, max_length=255)
    scheduled_open_time: datetime
    scheduled_close_time: datetime
    resident_id: str | None = None


class InterruptRequest(BaseModel):
    reason: str | None = None


class ScheduleResponse(BaseModel):
    id: str
    controller_id: str | None
    controller_name: str | None = None
    resident_id: str | None
    area: str
    scheduled_open_time: datetime
    scheduled_close_time: datetime
    actual_open_time: datetime | None
    actual_close_time: datetime | None
    status: str
    is_active: bool
    interrupted: bool
    interruption_reason: str | None
    created_at: datetime | None
    updated_at: datetime | None
