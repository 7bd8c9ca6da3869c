"""Profile Router: read and update the caller's own profile."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import get_current_user
from bluegrid.database import get_db
from bluegrid.models.user import User
from bluegrid.schemas.user import ProfileUpdate, UserResponse
from bluegrid.services.user_service import to_user_response, user_service

router: APIRouter = APIRouter()


@router.get("", response_model=UserResponse)
async def get_my_profile(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    return to_user_response(current_user)


@router.put("", response_model=UserResponse)
async def update_my_profile(
    data: ProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Update name, phone and address. Role and email are not editable here."""
    result: UserResponse = await user_service.update_profile(db, current_user, data)
    await db.commit()
    return result
