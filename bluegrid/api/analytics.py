"""Analytics Router: officer dashboard."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import require_officer
from bluegrid.database import get_db
from bluegrid.models.user import User
from bluegrid.services.analytics_service import analytics_service

router: APIRouter = APIRouter()


@router.get("")
async def get_analytics(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> dict:
    return await analytics_service.get_overview(db)
