"""Authentication request/response schemas."""

from pydantic import BaseModel, EmailStr, Field

from bluegrid.schemas.user import UserResponse


class SendOtpRequest(BaseModel):
    email: EmailStr
    full_name: str | None = None


class SendOtpResponse(BaseModel):
    message: str
    expires_in: int  # seconds


class SignupRequest(BaseModel):
    """Direct signup (unverified) request."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: str | None = Field(None, max_length=30)
    address: str | None = None


class VerifyOtpSignupRequest(SignupRequest):
    """Signup completed with the emailed code; the account is marked verified."""

    otp: str = Field(..., min_length=4, max_length=10)


class SigninRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    """Token pair returned on signin, signup and refresh.

    Attributes:
        access_token: Short-lived JWT for the Authorization header
        refresh_token: Long-lived JWT for /auth/refresh
        token_type: Always "bearer"
        user: Profile of the authenticated user
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
