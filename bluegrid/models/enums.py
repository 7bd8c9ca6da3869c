"""Closed enumerations shared by models, services and schemas.

Stored as plain strings (non-native enum columns) so database values are
exactly the lowercase literals below.
"""

import enum

from sqlalchemy import Enum as SAEnum


class Role(str, enum.Enum):
    """Actor role. Every user holds exactly one."""

    RESIDENT = "resident"
    MAINTENANCE_TECHNICIAN = "maintenance_technician"
    WATER_FLOW_CONTROLLER = "water_flow_controller"
    PANCHAYAT_OFFICER = "panchayat_officer"


class ReportStatus(str, enum.Enum):
    """Report lifecycle state."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class ScheduleStatus(str, enum.Enum):
    """Water supply schedule state."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CLOSED = "closed"
    INTERRUPTED = "interrupted"


# Reports that still need work; a technician holding any of these cannot be removed
OPEN_REPORT_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.PENDING,
    ReportStatus.ASSIGNED,
    ReportStatus.IN_PROGRESS,
    ReportStatus.AWAITING_APPROVAL,
})

FEEDBACK_ELIGIBLE_STATUSES: frozenset[ReportStatus] = frozenset({
    ReportStatus.COMPLETED,
    ReportStatus.APPROVED,
})

STAFF_ROLES: frozenset[Role] = frozenset({
    Role.MAINTENANCE_TECHNICIAN,
    Role.WATER_FLOW_CONTROLLER,
})


def enum_column(enum_cls: type[enum.Enum], name: str) -> SAEnum:
    """String-backed enum column type that persists member values."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=30,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
