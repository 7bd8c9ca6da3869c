"""Auth Service: OTP signup, signup, signin, token refresh and signout.

Every new self-registered account is a resident. Staff accounts are
created by officers through the user service.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.config import settings
from bluegrid.models.enums import Role
from bluegrid.models.user import User
from bluegrid.repositories.auth_repository import auth_repository
from bluegrid.repositories.user_repository import user_repository
from bluegrid.schemas.auth import (
    RefreshRequest,
    SendOtpRequest,
    SendOtpResponse,
    SigninRequest,
    SignupRequest,
    TokenResponse,
    VerifyOtpSignupRequest,
)
from bluegrid.services.notification_service import Channel, NotificationEvent, Recipient
from bluegrid.services.notification_templates import Audience, NotificationKind
from bluegrid.services.user_service import to_user_response
from bluegrid.utils.exceptions import ConflictError, UnauthorizedError, ValidationError
from bluegrid.utils.jwt import create_access_token, create_refresh_token, decode_token
from bluegrid.utils.otp import (
    OtpAttemptsExceededError,
    OtpExpiredError,
    OtpMismatchError,
    OtpNotFoundError,
    VerificationCodeStore,
    verification_codes,
)
from bluegrid.utils.password import hash_password, verify_password

logger = logging.getLogger(__name__)


def _as_aware(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite) as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class AuthService:
    """Service handling authentication business logic.

    Args:
        codes: Verification code store used by the OTP signup flow
    """

    def __init__(self, codes: VerificationCodeStore = verification_codes) -> None:
        self.codes = codes

    def _build_jwt_payload(self, user: User) -> dict[str, str]:
        return {"sub": str(user.id), "role": user.role.value}

    async def _generate_tokens(
        self,
        db: AsyncSession,
        user: User,
    ) -> TokenResponse:
        """Issue an access/refresh pair and persist the refresh token.

        Args:
            db: Async database session
            user: Authenticated user

        Returns:
            TokenResponse: Token pair with the user profile
        """
        payload = self._build_jwt_payload(user)
        access_token: str = create_access_token(payload)
        refresh_token: str = create_refresh_token(payload)

        expires_at: datetime = datetime.now(timezone.utc) + timedelta(
            days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS
        )
        await auth_repository.create_refresh_token(
            db, user_id=user.id, token=refresh_token, expires_at=expires_at
        )

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            user=to_user_response(user),
        )

    async def _create_resident(
        self,
        db: AsyncSession,
        data: SignupRequest,
        verified: bool,
    ) -> User:
        email = data.email.strip().lower()
        if await user_repository.get_by_email(db, email) is not None:
            raise ConflictError("Email already registered", code="email_taken")
        user = await user_repository.create(db, {
            "email": email,
            "password_hash": hash_password(data.password),
            "email_verified": verified,
            "full_name": data.full_name.strip(),
            "phone": data.phone,
            "address": data.address,
            "role": Role.RESIDENT,
        })
        logger.info("Registered resident %s (verified=%s)", user.id, verified)
        return user

    async def send_otp(
        self,
        db: AsyncSession,
        data: SendOtpRequest,
    ) -> tuple[SendOtpResponse, NotificationEvent]:
        """Issue a verification code for an unregistered email.

        Returns:
            tuple: Response body, and the email event carrying the code

        Raises:
            ConflictError: Email already registered
        """
        email = data.email.strip().lower()
        if await user_repository.get_by_email(db, email) is not None:
            raise ConflictError("Email already registered", code="email_taken")

        self.codes.sweep()
        code = self.codes.issue(email, {"full_name": data.full_name})
        minutes = self.codes.ttl_seconds // 60
        event = NotificationEvent(
            kind=NotificationKind.OTP_CODE,
            recipients=[Recipient(audience=Audience.APPLICANT, name=data.full_name or "User", email=email)],
            context={"code": code, "minutes": minutes},
            channels=frozenset({Channel.EMAIL}),
        )
        response = SendOtpResponse(message="OTP sent to your email", expires_in=self.codes.ttl_seconds)
        return response, event

    async def verify_otp_signup(
        self,
        db: AsyncSession,
        data: VerifyOtpSignupRequest,
    ) -> TokenResponse:
        """Consume the emailed code and create a verified resident.

        Raises:
            ValidationError: Code not found, expired or wrong (distinct codes)
            ConflictError: Email registered in the meantime
        """
        try:
            self.codes.verify(data.email, data.otp)
        except OtpNotFoundError as exc:
            raise ValidationError(str(exc), code="otp_not_found")
        except OtpExpiredError as exc:
            raise ValidationError(str(exc), code="otp_expired")
        except OtpAttemptsExceededError as exc:
            raise ValidationError(str(exc), code="otp_attempts_exceeded")
        except OtpMismatchError as exc:
            raise ValidationError(str(exc), code="otp_invalid")

        user = await self._create_resident(db, data, verified=True)
        return await self._generate_tokens(db, user)

    async def signup(
        self,
        db: AsyncSession,
        data: SignupRequest,
    ) -> TokenResponse:
        user = await self._create_resident(db, data, verified=False)
        return await self._generate_tokens(db, user)

    async def signin(
        self,
        db: AsyncSession,
        data: SigninRequest,
    ) -> TokenResponse:
        """Authenticate with email and password.

        Raises:
            UnauthorizedError: Unknown email or wrong password (same message)
        """
        user = await user_repository.get_by_email(db, data.email)
        if user is None or not verify_password(data.password, user.password_hash):
            raise UnauthorizedError("Invalid email or password", code="invalid_credentials")

        user.last_sign_in_at = datetime.now(timezone.utc)
        return await self._generate_tokens(db, user)

    async def refresh_tokens(
        self,
        db: AsyncSession,
        data: RefreshRequest,
    ) -> TokenResponse:
        """Rotate a refresh token into a new pair.

        Raises:
            UnauthorizedError: Unknown, expired or malformed refresh token
        """
        db_token = await auth_repository.get_refresh_token(db, data.refresh_token)
        if db_token is None:
            raise UnauthorizedError("Invalid refresh token")

        if _as_aware(db_token.expires_at) < datetime.now(timezone.utc):
            await auth_repository.delete_refresh_token(db, data.refresh_token)
            raise UnauthorizedError("Refresh token has expired")

        try:
            payload: dict = decode_token(data.refresh_token)
            user_id = UUID(payload["sub"])
        except Exception:
            await auth_repository.delete_refresh_token(db, data.refresh_token)
            raise UnauthorizedError("Invalid refresh token")

        user = await user_repository.get_by_id(db, user_id)
        if user is None:
            raise UnauthorizedError("User not found")

        await auth_repository.delete_refresh_token(db, data.refresh_token)
        return await self._generate_tokens(db, user)

    async def signout(
        self,
        db: AsyncSession,
        refresh_token: str,
    ) -> None:
        await auth_repository.delete_refresh_token(db, refresh_token)


auth_service: AuthService = AuthService()
