"""Report request schemas.

Field presence and shape only; lifecycle rules (required notes, rating
range, allowed states) are enforced by the lifecycle service.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ReportCreate(BaseModel):
    """Resident issue submission. Photo is a URL produced by the client upload."""

    full_name: str | None = None
    mobile_number: str | None = None
    address: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    location_name: str | None = None
    photo_url: str | None = None
    notes: str | None = None


class AssignRequest(BaseModel):
    technician_id: str | None = None


class ApprovalRequest(BaseModel):
    """Officer decision on completed work."""

    action: Literal["approve", "reject"]
    rejection_reason: str | None = None


class TechnicianUpdateRequest(BaseModel):
    """Progress note, or completion when status is awaiting_approval."""

    status: Literal["in_progress", "awaiting_approval"] = "in_progress"
    note: str | None = None
    completion_notes: str | None = None


class CompleteRequest(BaseModel):
    completion_notes: str | None = None
    completion_photo_url: str | None = None


class ForceStatusRequest(BaseModel):
    """Officer override. ``reason`` is stored in the audit trail."""

    status: str
    reason: str | None = Field(None, max_length=1000)
    technician_id: str | None = None


class FeedbackRequest(BaseModel):
    rating: int | None = None
    comment: str | None = Field(None, max_length=2000)
