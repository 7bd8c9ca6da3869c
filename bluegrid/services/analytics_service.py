"""Analytics Service: officer dashboard figures.

Computed in Python over fetched rows; volumes are one municipality's worth.
"""

from collections import Counter
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import ReportStatus, Role
from bluegrid.repositories.report_repository import report_repository
from bluegrid.repositories.schedule_repository import schedule_repository
from bluegrid.repositories.user_repository import user_repository


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class AnalyticsService:

    async def get_overview(self, db: AsyncSession) -> dict:
        """Report counts, resolution time, monthly volume, schedules and users.

        Returns:
            dict: Dashboard payload
        """
        reports = await report_repository.list_all(db)
        by_status = Counter(r.status for r in reports)

        resolution_hours = [
            (_as_aware(r.completed_at) - _as_aware(r.created_at)).total_seconds() / 3600
            for r in reports
            if r.completed_at is not None and r.created_at is not None
        ]
        by_month = Counter(r.created_at.strftime("%Y-%m") for r in reports if r.created_at)

        users_by_role = {role.value: 0 for role in Role}
        users_by_role.update(await user_repository.count_by_role(db))

        return {
            "total_reports": len(reports),
            "by_status": {status.value: by_status.get(status, 0) for status in ReportStatus},
            "pending": by_status.get(ReportStatus.PENDING, 0),
            "completed": by_status.get(ReportStatus.COMPLETED, 0) + by_status.get(ReportStatus.APPROVED, 0),
            "approved": by_status.get(ReportStatus.APPROVED, 0),
            "rejected": by_status.get(ReportStatus.REJECTED, 0),
            "average_resolution_hours": (
                round(sum(resolution_hours) / len(resolution_hours), 1) if resolution_hours else 0
            ),
            "reports_by_month": dict(sorted(by_month.items())),
            "active_schedules": await schedule_repository.count_active(db),
            "users_by_role": users_by_role,
        }


analytics_service: AnalyticsService = AnalyticsService()
