"""User and profile request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from bluegrid.models.enums import Role


class UserResponse(BaseModel):
    """User profile as returned by the API. Never includes the password hash."""

    id: str
    email: str
    full_name: str
    phone: str | None
    address: str | None
    role: Role
    email_verified: bool
    created_at: datetime | None
    updated_at: datetime | None


class ProfileUpdate(BaseModel):
    """Partial profile update; unset fields are left unchanged."""

    full_name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=30)
    address: str | None = None


class StaffCreate(BaseModel):
    """Officer-created staff account.

    Attributes:
        role: maintenance_technician or water_flow_controller
    """

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=30)
    address: str | None = None
    role: Role
