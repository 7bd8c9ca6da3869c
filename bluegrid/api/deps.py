"""FastAPI dependencies: current user from a Bearer JWT, and role checks.

Authentication:
    1. HTTPBearer extracts the token from ``Authorization: Bearer <token>``
    2. decode_token verifies signature and expiry
    3. Only ``type == "access"`` tokens are accepted
    4. The user is loaded fresh from the database by ``sub``

Authorization (require_role):
    The role stored on the user row is compared against the allowed
    roles; the role claim inside the token is never trusted.
"""

from typing import Annotated, Awaitable, Callable
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.database import get_db
from bluegrid.models.enums import Role
from bluegrid.models.user import User
from bluegrid.repositories.user_repository import user_repository
from bluegrid.utils.jwt import decode_token

security: HTTPBearer = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Decode the access token and return the authenticated user.

    Raises:
        HTTPException(401): Invalid, expired or wrong-type token, or unknown user
    """
    try:
        payload: dict = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        user_uuid = UUID(user_id)
    except HTTPException:
        raise
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    user: User | None = await user_repository.get_by_id(db, user_uuid)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_role(*roles: Role) -> Callable[..., Awaitable[User]]:
    """Dependency factory admitting only users whose current role is in ``roles``.

    Returns:
        FastAPI dependency returning the User or raising 403
    """
    allowed = frozenset(roles)
    label = " or ".join(r.value.replace("_", " ").title() for r in roles)

    async def _check(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "role_mismatch", "message": f"Access denied. {label} role required."},
            )
        return current_user
    return _check


require_resident = require_role(Role.RESIDENT)
require_technician = require_role(Role.MAINTENANCE_TECHNICIAN)
require_controller = require_role(Role.WATER_FLOW_CONTROLLER)
require_officer = require_role(Role.PANCHAYAT_OFFICER)
require_schedule_manager = require_role(Role.WATER_FLOW_CONTROLLER, Role.PANCHAYAT_OFFICER)
