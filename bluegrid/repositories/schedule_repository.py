"""Water schedule repository."""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import ScheduleStatus
from bluegrid.models.schedule import WaterSchedule
from bluegrid.repositories.base import BaseRepository


class ScheduleRepository(BaseRepository[WaterSchedule]):

    def __init__(self) -> None:
        super().__init__(WaterSchedule)

    async def list_active(self, db: AsyncSession, limit: int = 20) -> Sequence[WaterSchedule]:
        return await self.get_all(
            db,
            filters={"is_active": True},
            order_by=WaterSchedule.scheduled_open_time.desc(),
            limit=limit,
        )

    async def list_all(self, db: AsyncSession) -> Sequence[WaterSchedule]:
        return await self.get_all(db, order_by=WaterSchedule.scheduled_open_time.desc())

    async def list_by_controller(self, db: AsyncSession, controller_id: UUID) -> Sequence[WaterSchedule]:
        return await self.get_all(
            db,
            filters={"controller_id": controller_id},
            order_by=WaterSchedule.scheduled_open_time.desc(),
        )

    async def list_opening_between(
        self,
        db: AsyncSession,
        start: datetime,
        end: datetime,
    ) -> Sequence[WaterSchedule]:
        """Schedules whose planned opening falls in [start, end)."""
        query: Select = (
            select(WaterSchedule)
            .where(
                WaterSchedule.scheduled_open_time >= start,
                WaterSchedule.scheduled_open_time < end,
            )
            .order_by(WaterSchedule.scheduled_open_time)
        )
        result = await db.execute(query)
        return result.scalars().all()

    async def count_pending_for_controller(self, db: AsyncSession, controller_id: UUID) -> int:
        """Schedules of this controller that are still scheduled or running."""
        query: Select = select(func.count(WaterSchedule.id)).where(
            WaterSchedule.controller_id == controller_id,
            WaterSchedule.status.in_([ScheduleStatus.SCHEDULED, ScheduleStatus.ACTIVE]),
        )
        return (await db.execute(query)).scalar() or 0

    async def count_active(self, db: AsyncSession) -> int:
        query: Select = select(func.count(WaterSchedule.id)).where(WaterSchedule.is_active.is_(True))
        return (await db.execute(query)).scalar() or 0

    async def release_controller(self, db: AsyncSession, controller_id: UUID) -> int:
        result = await db.execute(
            update(WaterSchedule)
            .where(WaterSchedule.controller_id == controller_id)
            .values(controller_id=None)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


schedule_repository: ScheduleRepository = ScheduleRepository()
