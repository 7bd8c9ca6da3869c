"""Report repository: report queries and the audit trail."""

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import OPEN_REPORT_STATUSES, ReportStatus
from bluegrid.models.report import Report, ReportEvent
from bluegrid.models.user import User
from bluegrid.repositories.base import BaseRepository


class ReportRepository(BaseRepository[Report]):

    def __init__(self) -> None:
        super().__init__(Report)

    async def get_for_update(self, db: AsyncSession, report_id: UUID) -> Report | None:
        """Load a report with a row lock where the backend supports it.

        Concurrent transitions on the same report still resolve as
        last-write-wins on backends without SELECT ... FOR UPDATE.
        """
        query: Select = (
            select(Report)
            .where(Report.id == report_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def list_by_reporter(self, db: AsyncSession, reporter_id: UUID) -> Sequence[Report]:
        return await self.get_all(
            db, filters={"reporter_id": reporter_id}, order_by=Report.created_at.desc()
        )

    async def list_by_technician(self, db: AsyncSession, technician_id: UUID) -> Sequence[Report]:
        return await self.get_all(
            db, filters={"assigned_technician_id": technician_id}, order_by=Report.created_at.desc()
        )

    async def list_filtered(
        self,
        db: AsyncSession,
        status: ReportStatus | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[Report], int]:
        """All reports, newest first, optionally filtered by status."""
        query: Select = select(Report).order_by(Report.created_at.desc())
        if status is not None:
            query = query.where(Report.status == status)
        return await self.get_paginated(db, query, page, per_page)

    async def list_all(self, db: AsyncSession) -> Sequence[Report]:
        return await self.get_all(db, order_by=Report.created_at)

    async def count_open_for_technician(self, db: AsyncSession, technician_id: UUID) -> int:
        """Reports assigned to ``technician_id`` that still need work."""
        query: Select = (
            select(func.count(Report.id))
            .where(
                Report.assigned_technician_id == technician_id,
                Report.status.in_(OPEN_REPORT_STATUSES),
            )
        )
        return (await db.execute(query)).scalar() or 0

    async def release_technician(self, db: AsyncSession, technician_id: UUID) -> int:
        """Null out ``assigned_technician_id`` on the technician's reports.

        Returns:
            int: Number of reports updated
        """
        result = await db.execute(
            update(Report)
            .where(Report.assigned_technician_id == technician_id)
            .values(assigned_technician_id=None)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    # --- Audit trail ---

    async def add_event(self, db: AsyncSession, event_data: dict[str, Any]) -> ReportEvent:
        event = ReportEvent(**event_data)
        db.add(event)
        await db.flush()
        return event

    async def list_events(self, db: AsyncSession, report_id: UUID) -> Sequence[ReportEvent]:
        result = await db.execute(
            select(ReportEvent)
            .where(ReportEvent.report_id == report_id)
            .order_by(ReportEvent.created_at, ReportEvent.id)
        )
        return result.scalars().all()

    # --- Feedback ---

    async def list_with_feedback(
        self,
        db: AsyncSession,
        limit: int | None = None,
    ) -> Sequence[tuple[Report, str | None]]:
        """Rated reports with the reporter's current name, newest feedback first."""
        query: Select = (
            select(Report, User.full_name)
            .outerjoin(User, User.id == Report.reporter_id)
            .where(Report.has_feedback.is_(True))
            .order_by(Report.feedback_date.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return [(row[0], row[1]) for row in result.all()]


report_repository: ReportRepository = ReportRepository()
