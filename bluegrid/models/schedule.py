"""Water supply schedule SQLAlchemy ORM model definition.

Tables:
    - water_schedules: Planned and actual supply windows per area
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bluegrid.database import Base
from bluegrid.models.enums import ScheduleStatus, enum_column


class WaterSchedule(Base):
    """Water schedule model.

    State: scheduled -> active -> (closed | interrupted); scheduled may
    also be interrupted before it opens.

    Attributes:
        id: Unique identifier
        controller_id: Owning controller or creating officer (NULL once that user is removed)
        resident_id: Target resident (NULL = all residents)
        area: Supply area name
        scheduled_open_time / scheduled_close_time: Planned window
        actual_open_time / actual_close_time: Recorded window
        status: Schedule state
        is_active: Water currently flowing
        interrupted: Interruption flag
        interruption_reason: Reason given on interrupt
        created_at / updated_at: Timestamps
    """

    __tablename__ = "water_schedules"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    controller_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    resident_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    area: Mapped[str] = mapped_column(String(255), nullable=False)
    scheduled_open_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scheduled_close_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_open_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_close_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[ScheduleStatus] = mapped_column(
        enum_column(ScheduleStatus, "schedule_status"), nullable=False, default=ScheduleStatus.SCHEDULED
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    interrupted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    interruption_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
