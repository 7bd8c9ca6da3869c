"""SQLAlchemy ORM models package.

Central import point for all domain models. Importing from this package
registers every model with the SQLAlchemy metadata, which Alembic and
relationship resolution rely on.

Modules:
    enums: Role, ReportStatus, ScheduleStatus
    user: User accounts and profiles
    token: Refresh tokens
    report: Reports and their audit trail
    schedule: Water supply schedules
"""

from bluegrid.models.enums import Role, ReportStatus, ScheduleStatus
from bluegrid.models.user import User
from bluegrid.models.token import RefreshToken
from bluegrid.models.report import Report, ReportEvent
from bluegrid.models.schedule import WaterSchedule

__all__ = [
    "Role", "ReportStatus", "ScheduleStatus",
    "User",
    "RefreshToken",
    "Report", "ReportEvent",
    "WaterSchedule",
]
