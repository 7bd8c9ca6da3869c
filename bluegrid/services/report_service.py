"""Report service: read-side queries, response building, feedback statistics.

State changes live in report_lifecycle; this module never writes.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import ReportStatus, Role
from bluegrid.models.report import Report, ReportEvent
from bluegrid.models.user import User
from bluegrid.repositories.report_repository import report_repository
from bluegrid.repositories.user_repository import user_repository
from bluegrid.utils.exceptions import AuthorizationError, NotFoundError, OwnershipError


class ReportService:

    async def build_responses(self, db: AsyncSession, reports: Sequence[Report]) -> list[dict]:
        """Serialise reports with technician and approver names resolved in one query."""
        ids: set[UUID] = set()
        for r in reports:
            if r.assigned_technician_id:
                ids.add(r.assigned_technician_id)
            if r.approved_by:
                ids.add(r.approved_by)
        names = await user_repository.names_by_ids(db, ids)
        return [self._to_dict(r, names) for r in reports]

    async def build_response(self, db: AsyncSession, report: Report) -> dict:
        return (await self.build_responses(db, [report]))[0]

    @staticmethod
    def _to_dict(report: Report, names: dict[UUID, str]) -> dict:
        return {
            "id": str(report.id),
            "reporter_id": str(report.reporter_id),
            "full_name": report.full_name,
            "mobile_number": report.mobile_number,
            "address": report.address,
            "location_lat": report.location_lat,
            "location_lng": report.location_lng,
            "location_name": report.location_name,
            "photo_url": report.photo_url,
            "notes": report.notes,
            "status": report.status.value,
            "assigned_technician_id": str(report.assigned_technician_id) if report.assigned_technician_id else None,
            "technician_name": names.get(report.assigned_technician_id) if report.assigned_technician_id else None,
            "completion_notes": report.completion_notes,
            "completion_photo_url": report.completion_photo_url,
            "rejection_reason": report.rejection_reason,
            "approved_by": str(report.approved_by) if report.approved_by else None,
            "approved_by_name": names.get(report.approved_by) if report.approved_by else None,
            "has_feedback": report.has_feedback,
            "feedback_rating": report.feedback_rating,
            "feedback_comment": report.feedback_comment,
            "feedback_date": report.feedback_date,
            "created_at": report.created_at,
            "updated_at": report.updated_at,
            "completed_at": report.completed_at,
            "approved_at": report.approved_at,
        }

    # --- Lists ---

    async def list_mine(self, db: AsyncSession, user: User) -> Sequence[Report]:
        return await report_repository.list_by_reporter(db, user.id)

    async def list_assigned(self, db: AsyncSession, user: User) -> Sequence[Report]:
        return await report_repository.list_by_technician(db, user.id)

    async def list_all(
        self,
        db: AsyncSession,
        status: ReportStatus | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[Report], int]:
        return await report_repository.list_filtered(db, status, page, per_page)

    # --- Single report ---

    async def get_visible(self, db: AsyncSession, user: User, report_id: UUID) -> Report:
        """Load a report the user may see: officer, reporter, or current assignee.

        Raises:
            AuthorizationError: Controllers have no access to reports
            NotFoundError: Report does not exist
            OwnershipError: Resident or technician without a link to the report
        """
        if user.role is Role.WATER_FLOW_CONTROLLER:
            raise AuthorizationError("Access denied for water flow controllers")
        report = await report_repository.get_by_id(db, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if user.role is Role.RESIDENT and report.reporter_id != user.id:
            raise OwnershipError("You can only view your own reports")
        if user.role is Role.MAINTENANCE_TECHNICIAN and report.assigned_technician_id != user.id:
            raise OwnershipError("This report is not assigned to you")
        return report

    async def history(self, db: AsyncSession, user: User, report_id: UUID) -> list[dict]:
        report = await self.get_visible(db, user, report_id)
        events: Sequence[ReportEvent] = await report_repository.list_events(db, report.id)
        names = await user_repository.names_by_ids(db, {e.actor_id for e in events if e.actor_id})
        return [
            {
                "operation": e.operation,
                "from_status": e.from_status.value if e.from_status else None,
                "to_status": e.to_status.value,
                "actor_id": str(e.actor_id) if e.actor_id else None,
                "actor_name": names.get(e.actor_id) if e.actor_id else None,
                "note": e.note,
                "created_at": e.created_at,
            }
            for e in events
        ]

    # --- Feedback ---

    async def get_feedback(self, db: AsyncSession, user: User, report_id: UUID) -> dict:
        """Feedback on one report. Visible to its reporter and to officers."""
        report = await report_repository.get_by_id(db, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if user.role is not Role.PANCHAYAT_OFFICER and report.reporter_id != user.id:
            raise OwnershipError("You can only view feedback on your own reports")
        return {
            "has_feedback": report.has_feedback,
            "rating": report.feedback_rating,
            "comment": report.feedback_comment,
            "date": report.feedback_date,
        }

    async def feedback_statistics(self, db: AsyncSession) -> dict:
        """Average rating, count, 1..5 distribution and the ten latest entries."""
        rated = await report_repository.list_with_feedback(db)
        ratings = [r.feedback_rating for r, _ in rated if r.feedback_rating is not None]
        distribution = {str(star): 0 for star in range(1, 6)}
        for value in ratings:
            distribution[str(value)] += 1

        recent = [
            {
                "report_id": str(report.id),
                "rating": report.feedback_rating,
                "comment": report.feedback_comment,
                "date": report.feedback_date,
                "resident_name": resident_name or report.full_name,
                "location_name": report.location_name,
            }
            for report, resident_name in rated[:10]
        ]
        return {
            "average_rating": round(sum(ratings) / len(ratings), 1) if ratings else 0,
            "total_feedback": len(ratings),
            "rating_distribution": distribution,
            "recent_feedback": recent,
        }


report_service: ReportService = ReportService()
