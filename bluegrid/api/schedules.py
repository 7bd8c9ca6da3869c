"""Schedules Router: water supply windows.

Officers create through ``POST /schedules``, controllers through
``POST /schedules/create``. Open, close and interrupt are limited to the
schedule's owner.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.api.deps import require_controller, require_officer, require_schedule_manager
from bluegrid.database import get_db
from bluegrid.models.user import User
from bluegrid.schemas.schedule import InterruptRequest, ScheduleCreate, ScheduleResponse
from bluegrid.services.notification_service import notification_dispatcher
from bluegrid.services.schedule_service import schedule_service

router: APIRouter = APIRouter()


async def _create(db: AsyncSession, actor: User, data: ScheduleCreate) -> dict:
    schedule, event = await schedule_service.create_schedule(db, actor, data)
    await db.commit()
    notification_dispatcher.emit(event)
    return schedule_service.to_response(schedule, {actor.id: actor.full_name})


@router.get("", response_model=list[ScheduleResponse])
async def list_active_schedules(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[dict]:
    """Currently active schedules, latest 20. Public."""
    schedules = await schedule_service.list_active(db)
    return await schedule_service.to_responses(db, schedules)


@router.get("/today", response_model=list[ScheduleResponse])
async def list_today_schedules(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[dict]:
    """Schedules due to open today (local day). Public."""
    schedules = await schedule_service.list_today(db)
    return await schedule_service.to_responses(db, schedules)


@router.get("/all", response_model=list[ScheduleResponse])
async def list_all_schedules(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> list[dict]:
    schedules = await schedule_service.list_all(db)
    return await schedule_service.to_responses(db, schedules)


@router.get("/my-schedules", response_model=list[ScheduleResponse])
async def list_my_schedules(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_controller)],
) -> list[dict]:
    schedules = await schedule_service.list_mine(db, current_user)
    return await schedule_service.to_responses(db, schedules)


@router.post("", response_model=ScheduleResponse, status_code=201)
async def create_schedule_as_officer(
    data: ScheduleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_officer)],
) -> dict:
    return await _create(db, current_user, data)


@router.post("/create", response_model=ScheduleResponse, status_code=201)
async def create_schedule_as_controller(
    data: ScheduleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_controller)],
) -> dict:
    return await _create(db, current_user, data)


@router.put("/{schedule_id}/open", response_model=ScheduleResponse)
async def open_schedule(
    schedule_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_schedule_manager)],
) -> dict:
    schedule, event = await schedule_service.open_schedule(db, current_user, schedule_id)
    await db.commit()
    notification_dispatcher.emit(event)
    return schedule_service.to_response(schedule, {current_user.id: current_user.full_name})


@router.put("/{schedule_id}/close", response_model=ScheduleResponse)
async def close_schedule(
    schedule_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_schedule_manager)],
) -> dict:
    schedule, event = await schedule_service.close_schedule(db, current_user, schedule_id)
    await db.commit()
    notification_dispatcher.emit(event)
    return schedule_service.to_response(schedule, {current_user.id: current_user.full_name})


@router.put("/{schedule_id}/interrupt", response_model=ScheduleResponse)
async def interrupt_schedule(
    schedule_id: UUID,
    data: InterruptRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_schedule_manager)],
) -> dict:
    """Stop a scheduled or running supply window. A reason is required."""
    schedule, event = await schedule_service.interrupt_schedule(
        db, current_user, schedule_id, data.reason
    )
    await db.commit()
    notification_dispatcher.emit(event)
    return schedule_service.to_response(schedule, {current_user.id: current_user.full_name})
