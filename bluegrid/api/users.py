"""Users Router: officer-only user administration."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import require_officer
from bluegrid.database import get_db
from bluegrid.models.enums import Role
from bluegrid.models.user import User
from bluegrid.schemas.common import MessageResponse
from bluegrid.schemas.user import StaffCreate, UserResponse
from bluegrid.services.user_service import user_service

router: APIRouter = APIRouter()


@router.get("", response_model=list[UserResponse])
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
    role: Role | None = Query(None),
) -> list[UserResponse]:
    return await user_service.list_users(db, role)


@router.get("/residents", response_model=list[UserResponse])
async def list_residents(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> list[UserResponse]:
    return await user_service.list_users(db, Role.RESIDENT)


@router.post("/create-staff", response_model=UserResponse, status_code=201)
async def create_staff(
    data: StaffCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> UserResponse:
    """Create a technician or controller account."""
    result: UserResponse = await user_service.create_staff(db, data)
    await db.commit()
    return result


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> dict:
    """Delete a staff account. The service commits its own transaction."""
    await user_service.delete_user(db, user_id)
    return {"message": "User deleted"}
