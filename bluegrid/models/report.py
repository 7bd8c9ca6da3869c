"""Report SQLAlchemy ORM model definitions.

Tables:
    - reports: Resident-filed water infrastructure issues
    - report_events: Append-only audit trail of lifecycle operations
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from bluegrid.database import Base
from bluegrid.models.enums import ReportStatus, enum_column


class Report(Base):
    """Report model.

    Created as ``pending`` by a resident and mutated only through the
    lifecycle service. Never deleted.

    Attributes:
        id: Unique identifier
        reporter_id: Owning resident
        full_name: Reporter name snapshot at submission
        mobile_number: Reporter contact snapshot at submission
        address: Free-text address (falls back to location_name)
        location_lat: Latitude
        location_lng: Longitude
        location_name: Human-readable place name
        photo_url: Photo reference supplied by the client
        notes: Reporter description
        status: Lifecycle state
        assigned_technician_id: Current assignee (NULL while pending)
        completion_notes: Technician notes on completion
        completion_photo_url: Completion photo reference
        rejection_reason: Officer reason on rejection
        approved_by: Officer who approved or rejected
        has_feedback: Feedback already recorded
        feedback_rating: 1..5
        feedback_comment: Free-text feedback
        feedback_date: Feedback timestamp
        created_at / updated_at / completed_at / approved_at: Timestamps
    """

    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint("feedback_rating IS NULL OR feedback_rating BETWEEN 1 AND 5", name="ck_reports_feedback_rating"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    # Descriptive fields
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mobile_number: Mapped[str] = mapped_column(String(30), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Lifecycle
    status: Mapped[ReportStatus] = mapped_column(
        enum_column(ReportStatus, "report_status"), nullable=False, default=ReportStatus.PENDING, index=True
    )
    assigned_technician_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Feedback (at most once)
    has_feedback: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    feedback_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ReportEvent(Base):
    """Audit row written for every successful lifecycle operation.

    Attributes:
        id: Unique identifier
        report_id: Report the operation applied to
        operation: Operation name (submit, assign, force_status, ...)
        from_status: Status before (NULL for submit)
        to_status: Status after
        actor_id: User who performed the operation
        note: Reason, progress note or other operation detail
        created_at: When it happened
    """

    __tablename__ = "report_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    operation: Mapped[str] = mapped_column(String(30), nullable=False)
    from_status: Mapped[ReportStatus | None] = mapped_column(enum_column(ReportStatus, "report_status"), nullable=True)
    to_status: Mapped[ReportStatus] = mapped_column(enum_column(ReportStatus, "report_status"), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
