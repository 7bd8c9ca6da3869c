"""Auth Router: OTP signup, signup, signin, refresh, signout, me."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import get_current_user
from bluegrid.database import get_db
from bluegrid.models.user import User
from bluegrid.schemas.auth import (
    RefreshRequest,
    SendOtpRequest,
    SendOtpResponse,
    SigninRequest,
    SignupRequest,
    TokenResponse,
    VerifyOtpSignupRequest,
)
from bluegrid.schemas.user import UserResponse
from bluegrid.services.auth_service import auth_service
from bluegrid.services.notification_service import notification_dispatcher
from bluegrid.services.user_service import to_user_response

router: APIRouter = APIRouter()


@router.post("/send-otp", response_model=SendOtpResponse)
async def send_otp(
    data: SendOtpRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SendOtpResponse:
    """Email a one-time code to an unregistered address."""
    response, event = await auth_service.send_otp(db, data)
    notification_dispatcher.emit(event)
    return response


@router.post("/verify-otp-signup", response_model=TokenResponse, status_code=201)
async def verify_otp_signup(
    data: VerifyOtpSignupRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    """Create a verified resident account using the emailed code."""
    result: TokenResponse = await auth_service.verify_otp_signup(db, data)
    await db.commit()
    return result


@router.post("/signup", response_model=TokenResponse, status_code=201)
async def signup(
    data: SignupRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    result: TokenResponse = await auth_service.signup(db, data)
    await db.commit()
    return result


@router.post("/signin", response_model=TokenResponse)
async def signin(
    data: SigninRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    result: TokenResponse = await auth_service.signin(db, data)
    await db.commit()
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    data: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    """Rotate a refresh token into a new token pair."""
    result: TokenResponse = await auth_service.refresh_tokens(db, data)
    await db.commit()
    return result


@router.post("/signout", status_code=204)
async def signout(
    data: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Revoke the given refresh token."""
    await auth_service.signout(db, data.refresh_token)
    await db.commit()


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    return to_user_response(current_user)
