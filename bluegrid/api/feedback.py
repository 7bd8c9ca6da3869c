"""Feedback Router: aggregate resident ratings for officers."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import require_officer
from bluegrid.database import get_db
from bluegrid.models.user import User
from bluegrid.services.report_service import report_service

router: APIRouter = APIRouter()


@router.get("/statistics")
async def feedback_statistics(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> dict:
    return await report_service.feedback_statistics(db)
