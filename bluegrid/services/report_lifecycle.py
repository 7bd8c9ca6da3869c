"""Report lifecycle service: every legal change to a report goes through here.

The ``TRANSITIONS`` table is the single source of truth for which role may
run which operation, from which states, to which state, with which payload,
and what gets notified. ``ReportLifecycleService.transition`` is the one
function that enforces it; the public operation methods are thin wrappers.

Checks run in a fixed order and all of them run before anything is
written, so a rejected attempt leaves the report untouched:

    1. actor role (read fresh from the database)  -> AuthorizationError
    2. report exists                               -> NotFoundError
    3. actor owns the report (assignee / reporter) -> OwnershipError
    4. payload                                     -> ValidationError
    5. current status is an allowed source         -> ConflictError

Successful operations append a ``report_events`` row and return the
notification event for the route to emit after commit.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import FEEDBACK_ELIGIBLE_STATUSES, ReportStatus, Role
from bluegrid.models.report import Report
from bluegrid.models.user import User
from bluegrid.repositories.report_repository import report_repository
from bluegrid.repositories.user_repository import user_repository
from bluegrid.services.notification_service import (
    ALL_CHANNELS,
    Channel,
    NotificationEvent,
    Recipient,
)
from bluegrid.services.notification_templates import Audience, NotificationKind, format_local_time
from bluegrid.utils.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# States that require an assigned technician
_TECHNICIAN_STATES: frozenset[ReportStatus] = frozenset(ReportStatus) - {ReportStatus.PENDING}
# States in which completion notes may be present
_COMPLETION_NOTE_STATES: frozenset[ReportStatus] = frozenset({
    ReportStatus.AWAITING_APPROVAL,
    ReportStatus.APPROVED,
    ReportStatus.REJECTED,
})


class ReportOperation(str, enum.Enum):
    SUBMIT = "submit"
    ASSIGN = "assign"
    ACCEPT = "accept"
    TECHNICIAN_UPDATE = "technician_update"
    COMPLETE = "complete"
    APPROVE = "approve"
    REJECT = "reject"
    FORCE_STATUS = "force_status"
    SUBMIT_FEEDBACK = "submit_feedback"


class Ownership(str, enum.Enum):
    NONE = "none"
    ASSIGNEE = "assignee"
    REPORTER = "reporter"


Validator = Callable[[AsyncSession, Report | None, dict[str, Any]], Awaitable[dict[str, Any]]]
Effects = Callable[[Report | None, dict[str, Any], UUID, datetime], dict[str, Any]]


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    Attributes:
        role: Role required to run the operation
        sources: Allowed current states (None: any state; empty: no report yet)
        target: Resulting state (None: unchanged, or chosen by the payload)
        ownership: Relationship the actor must have with the report
        validate: Payload check returning cleaned values
        effects: Field updates to apply, besides status
        notification: Event kind emitted on success
        channels: Channels used for that event
    """

    role: Role
    sources: frozenset[ReportStatus] | None
    target: ReportStatus | None
    ownership: Ownership
    validate: Validator
    effects: Effects
    notification: NotificationKind | None = None
    channels: frozenset[Channel] = ALL_CHANNELS


@dataclass
class TransitionResult:
    report: Report
    event: NotificationEvent | None = None
    from_status: ReportStatus | None = None
    operation: ReportOperation | None = None


# ---------------------------------------------------------------------------
# Payload validators
# ---------------------------------------------------------------------------

def _require_text(payload: dict[str, Any], key: str, label: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required", code="missing_field")
    return value.strip()


def _optional_text(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be text")
    return value.strip() or None


async def _load_technician(db: AsyncSession, raw: Any) -> User:
    try:
        technician_id = raw if isinstance(raw, UUID) else UUID(str(raw))
    except ValueError:
        raise ValidationError("Invalid technician id", code="invalid_technician")
    technician = await user_repository.get_by_id(db, technician_id)
    if technician is None:
        raise NotFoundError("Technician not found")
    if technician.role is not Role.MAINTENANCE_TECHNICIAN:
        raise ValidationError("User is not a maintenance technician", code="invalid_technician")
    return technician


async def _validate_submit(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {
        "full_name": _require_text(payload, "full_name", "Full name"),
        "mobile_number": _require_text(payload, "mobile_number", "Mobile number"),
    }
    for key in ("address", "location_name", "photo_url", "notes"):
        cleaned[key] = _optional_text(payload, key)
    for key in ("location_lat", "location_lng"):
        value = payload.get(key)
        if value is not None:
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{key} must be a number")
        cleaned[key] = value
    return cleaned


async def _validate_assign(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    if not payload.get("technician_id"):
        raise ValidationError("Technician ID is required", code="missing_field")
    technician = await _load_technician(db, payload["technician_id"])
    return {"technician": technician, "note": technician.full_name}


async def _validate_nothing(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    return {}


async def _validate_progress(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    return {"note": _optional_text(payload, "note")}


async def _validate_complete(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "completion_notes": _require_text(payload, "completion_notes", "Completion notes"),
        "completion_photo_url": _optional_text(payload, "completion_photo_url"),
    }


async def _validate_reject(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    reason = _require_text(payload, "rejection_reason", "Rejection reason")
    return {"rejection_reason": reason, "note": reason}


async def _validate_force(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    raw_status = payload.get("status")
    try:
        target = ReportStatus(raw_status)
    except ValueError:
        allowed = ", ".join(s.value for s in ReportStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}", code="invalid_status")

    reason = _optional_text(payload, "reason")
    if target is ReportStatus.REJECTED and reason is None:
        raise ValidationError("A reason is required when setting status to rejected", code="missing_field")

    technician: User | None = None
    if payload.get("technician_id"):
        technician = await _load_technician(db, payload["technician_id"])
    if (
        target in _TECHNICIAN_STATES
        and technician is None
        and (report is None or report.assigned_technician_id is None)
    ):
        raise ValidationError(
            f"Status {target.value} requires an assigned technician; supply technician_id",
            code="missing_field",
        )
    return {"status": target, "reason": reason, "technician": technician, "note": reason}


async def _validate_feedback(db: AsyncSession, report: Report | None, payload: dict[str, Any]) -> dict[str, Any]:
    rating = payload.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5", code="invalid_rating")
    return {"rating": rating, "comment": _optional_text(payload, "comment"), "note": f"rating {rating}"}


# ---------------------------------------------------------------------------
# Effects: field updates applied on success (status handled by transition())
# ---------------------------------------------------------------------------

def _submit_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    return {
        "reporter_id": actor_id,
        "full_name": cleaned["full_name"],
        "mobile_number": cleaned["mobile_number"],
        "address": cleaned["address"] or cleaned["location_name"],
        "location_lat": cleaned["location_lat"],
        "location_lng": cleaned["location_lng"],
        "location_name": cleaned["location_name"],
        "photo_url": cleaned["photo_url"],
        "notes": cleaned["notes"],
        "created_at": now,
    }


def _assign_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    return {"assigned_technician_id": cleaned["technician"].id}


def _no_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    return {}


def _complete_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    updates: dict[str, Any] = {
        "completion_notes": cleaned["completion_notes"],
        "completed_at": now,
    }
    if cleaned["completion_photo_url"]:
        updates["completion_photo_url"] = cleaned["completion_photo_url"]
    return updates


def _approve_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    return {"approved_by": actor_id, "approved_at": now, "rejection_reason": None}


def _reject_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    return {
        "approved_by": actor_id,
        "approved_at": now,
        "rejection_reason": cleaned["rejection_reason"],
    }


def _force_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    target: ReportStatus = cleaned["status"]
    updates: dict[str, Any] = {}

    if target is ReportStatus.PENDING:
        updates["assigned_technician_id"] = None
    elif cleaned["technician"] is not None:
        updates["assigned_technician_id"] = cleaned["technician"].id

    if target not in _COMPLETION_NOTE_STATES:
        updates["completion_notes"] = None
    updates["rejection_reason"] = cleaned["reason"] if target is ReportStatus.REJECTED else None

    if target in (ReportStatus.AWAITING_APPROVAL, ReportStatus.COMPLETED) and report.completed_at is None:
        updates["completed_at"] = now
    if target in (ReportStatus.APPROVED, ReportStatus.REJECTED) and report.status is not target:
        updates["approved_by"] = actor_id
        updates["approved_at"] = now
    return updates


def _feedback_effects(report: Report | None, cleaned: dict[str, Any], actor_id: UUID, now: datetime) -> dict[str, Any]:
    return {
        "has_feedback": True,
        "feedback_rating": cleaned["rating"],
        "feedback_comment": cleaned["comment"],
        "feedback_date": now,
    }


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

TRANSITIONS: dict[ReportOperation, TransitionRule] = {
    ReportOperation.SUBMIT: TransitionRule(
        role=Role.RESIDENT,
        sources=frozenset(),
        target=ReportStatus.PENDING,
        ownership=Ownership.NONE,
        validate=_validate_submit,
        effects=_submit_effects,
        notification=NotificationKind.REPORT_SUBMITTED,
    ),
    ReportOperation.ASSIGN: TransitionRule(
        role=Role.PANCHAYAT_OFFICER,
        sources=frozenset({ReportStatus.PENDING}),
        target=ReportStatus.ASSIGNED,
        ownership=Ownership.NONE,
        validate=_validate_assign,
        effects=_assign_effects,
        notification=NotificationKind.TECHNICIAN_ASSIGNED,
    ),
    ReportOperation.ACCEPT: TransitionRule(
        role=Role.MAINTENANCE_TECHNICIAN,
        sources=frozenset({ReportStatus.ASSIGNED}),
        target=ReportStatus.IN_PROGRESS,
        ownership=Ownership.ASSIGNEE,
        validate=_validate_nothing,
        effects=_no_effects,
        notification=NotificationKind.WORK_STARTED,
        channels=frozenset({Channel.EMAIL}),
    ),
    ReportOperation.TECHNICIAN_UPDATE: TransitionRule(
        role=Role.MAINTENANCE_TECHNICIAN,
        sources=frozenset({ReportStatus.IN_PROGRESS}),
        target=ReportStatus.IN_PROGRESS,
        ownership=Ownership.ASSIGNEE,
        validate=_validate_progress,
        effects=_no_effects,
    ),
    ReportOperation.COMPLETE: TransitionRule(
        role=Role.MAINTENANCE_TECHNICIAN,
        sources=frozenset({ReportStatus.IN_PROGRESS}),
        target=ReportStatus.AWAITING_APPROVAL,
        ownership=Ownership.ASSIGNEE,
        validate=_validate_complete,
        effects=_complete_effects,
        notification=NotificationKind.COMPLETION_SUBMITTED,
        channels=frozenset({Channel.EMAIL}),
    ),
    ReportOperation.APPROVE: TransitionRule(
        role=Role.PANCHAYAT_OFFICER,
        sources=frozenset({ReportStatus.AWAITING_APPROVAL}),
        target=ReportStatus.APPROVED,
        ownership=Ownership.NONE,
        validate=_validate_nothing,
        effects=_approve_effects,
        notification=NotificationKind.REPORT_APPROVED,
        channels=frozenset({Channel.EMAIL}),
    ),
    ReportOperation.REJECT: TransitionRule(
        role=Role.PANCHAYAT_OFFICER,
        sources=frozenset({ReportStatus.AWAITING_APPROVAL}),
        target=ReportStatus.REJECTED,
        ownership=Ownership.NONE,
        validate=_validate_reject,
        effects=_reject_effects,
        notification=NotificationKind.REPORT_REJECTED,
        channels=frozenset({Channel.EMAIL}),
    ),
    ReportOperation.FORCE_STATUS: TransitionRule(
        role=Role.PANCHAYAT_OFFICER,
        sources=None,
        target=None,
        ownership=Ownership.NONE,
        validate=_validate_force,
        effects=_force_effects,
        notification=NotificationKind.STATUS_FORCED,
        channels=frozenset({Channel.WHATSAPP}),
    ),
    ReportOperation.SUBMIT_FEEDBACK: TransitionRule(
        role=Role.RESIDENT,
        sources=FEEDBACK_ELIGIBLE_STATUSES,
        target=None,
        ownership=Ownership.REPORTER,
        validate=_validate_feedback,
        effects=_feedback_effects,
    ),
}


def report_ref(report: Report) -> str:
    """Short human reference for messages, e.g. ``3F2A9C1B``."""
    return str(report.id).split("-")[0].upper()


class ReportLifecycleService:
    """Executes report transitions against ``TRANSITIONS``."""

    async def transition(
        self,
        db: AsyncSession,
        actor_id: UUID,
        operation: ReportOperation,
        report_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Run one lifecycle operation.

        Args:
            db: Async database session (caller commits)
            actor_id: User performing the operation
            operation: Which row of the table to apply
            report_id: Target report; None only for SUBMIT
            payload: Operation-specific values

        Returns:
            TransitionResult: Updated report and the event to emit after commit

        Raises:
            AuthorizationError: Actor's current role is not the required role
            NotFoundError: Actor, report or referenced technician missing
            OwnershipError: Actor is not the assignee / reporter
            ValidationError: Payload missing or malformed
            ConflictError: Report is not in an allowed source state
        """
        rule = TRANSITIONS[operation]
        payload = payload or {}

        role = await user_repository.role_of(db, actor_id)
        if role is None:
            raise NotFoundError("User not found")
        if role is not rule.role:
            raise AuthorizationError(
                f"Access denied. {rule.role.value} role required for {operation.value}"
            )

        report: Report | None = None
        if operation is not ReportOperation.SUBMIT:
            if report_id is None:
                raise NotFoundError("Report not found")
            report = await report_repository.get_for_update(db, report_id)
            if report is None:
                raise NotFoundError("Report not found")
            self._check_ownership(rule, report, actor_id)

        cleaned = await rule.validate(db, report, payload)

        if report is not None and rule.sources is not None and report.status not in rule.sources:
            raise ConflictError(
                f"Cannot {operation.value} a report in status {report.status.value}"
            )
        if operation is ReportOperation.SUBMIT_FEEDBACK and report.has_feedback:
            raise ConflictError("Feedback already submitted for this report", code="feedback_exists")

        # All checks passed; nothing has been written before this point
        now = datetime.now(timezone.utc)
        from_status = report.status if report is not None else None
        to_status = rule.target or cleaned.get("status") or from_status
        updates = rule.effects(report, cleaned, actor_id, now)
        updates["status"] = to_status
        updates["updated_at"] = now

        if report is None:
            report = await report_repository.create(db, updates)
        else:
            report = await report_repository.update(db, report, updates)

        await report_repository.add_event(db, {
            "report_id": report.id,
            "operation": operation.value,
            "from_status": from_status,
            "to_status": to_status,
            "actor_id": actor_id,
            "note": cleaned.get("note"),
            "created_at": now,
        })
        logger.info(
            "report %s: %s %s -> %s by %s",
            report.id, operation.value,
            from_status.value if from_status else "-", to_status.value, actor_id,
        )

        event = await self._build_event(db, rule, report, cleaned, now)
        return TransitionResult(report=report, event=event, from_status=from_status, operation=operation)

    @staticmethod
    def _check_ownership(rule: TransitionRule, report: Report, actor_id: UUID) -> None:
        if rule.ownership is Ownership.ASSIGNEE and report.assigned_technician_id != actor_id:
            raise OwnershipError("This report is not assigned to you")
        if rule.ownership is Ownership.REPORTER and report.reporter_id != actor_id:
            raise OwnershipError("You can only act on your own reports")

    # --- Notification recipients (read-only) ---

    async def _build_event(
        self,
        db: AsyncSession,
        rule: TransitionRule,
        report: Report,
        cleaned: dict[str, Any],
        now: datetime,
    ) -> NotificationEvent | None:
        if rule.notification is None:
            return None

        reporter = await user_repository.get_by_id(db, report.reporter_id)
        technician: User | None = None
        if report.assigned_technician_id is not None:
            technician = await user_repository.get_by_id(db, report.assigned_technician_id)

        recipients = [Recipient(
            audience=Audience.REPORTER,
            name=report.full_name,
            email=reporter.email if reporter else None,
            phone=report.mobile_number,
        )]
        if rule.notification is NotificationKind.TECHNICIAN_ASSIGNED and technician is not None:
            recipients.append(Recipient(
                audience=Audience.TECHNICIAN,
                name=technician.full_name,
                email=technician.email,
                phone=technician.phone,
            ))
        if rule.notification in (NotificationKind.REPORT_SUBMITTED, NotificationKind.COMPLETION_SUBMITTED):
            officers = await user_repository.list_by_role(db, Role.PANCHAYAT_OFFICER)
            recipients.extend(
                Recipient(audience=Audience.OFFICER, name=o.full_name, email=o.email)
                for o in officers
            )

        context = {
            "report_id": str(report.id),
            "report_ref": report_ref(report),
            "status": report.status.value,
            "status_label": report.status.value.replace("_", " ").upper(),
            "location": report.location_name or report.address or "Location not specified",
            "notes": report.notes,
            "reporter_name": report.full_name,
            "reporter_phone": report.mobile_number,
            "technician_name": technician.full_name if technician else "-",
            "completion_notes": report.completion_notes,
            "reason": report.rejection_reason or cleaned.get("reason"),
            "time": format_local_time(now),
        }
        return NotificationEvent(
            kind=rule.notification,
            recipients=recipients,
            context=context,
            channels=rule.channels,
        )

    # --- Operations ---

    async def submit(self, db: AsyncSession, actor_id: UUID, data: dict[str, Any]) -> TransitionResult:
        return await self.transition(db, actor_id, ReportOperation.SUBMIT, None, data)

    async def assign(self, db: AsyncSession, actor_id: UUID, report_id: UUID, technician_id: Any) -> TransitionResult:
        return await self.transition(
            db, actor_id, ReportOperation.ASSIGN, report_id, {"technician_id": technician_id}
        )

    async def accept(self, db: AsyncSession, actor_id: UUID, report_id: UUID) -> TransitionResult:
        return await self.transition(db, actor_id, ReportOperation.ACCEPT, report_id)

    async def technician_update(
        self, db: AsyncSession, actor_id: UUID, report_id: UUID, note: str | None = None
    ) -> TransitionResult:
        return await self.transition(
            db, actor_id, ReportOperation.TECHNICIAN_UPDATE, report_id, {"note": note}
        )

    async def complete(
        self,
        db: AsyncSession,
        actor_id: UUID,
        report_id: UUID,
        completion_notes: str | None,
        completion_photo_url: str | None = None,
    ) -> TransitionResult:
        return await self.transition(
            db, actor_id, ReportOperation.COMPLETE, report_id,
            {"completion_notes": completion_notes, "completion_photo_url": completion_photo_url},
        )

    async def approve(self, db: AsyncSession, actor_id: UUID, report_id: UUID) -> TransitionResult:
        return await self.transition(db, actor_id, ReportOperation.APPROVE, report_id)

    async def reject(
        self, db: AsyncSession, actor_id: UUID, report_id: UUID, rejection_reason: str | None
    ) -> TransitionResult:
        return await self.transition(
            db, actor_id, ReportOperation.REJECT, report_id, {"rejection_reason": rejection_reason}
        )

    async def force_status(
        self,
        db: AsyncSession,
        actor_id: UUID,
        report_id: UUID,
        status: Any,
        reason: str | None = None,
        technician_id: Any = None,
    ) -> TransitionResult:
        """Officer override: set any of the seven states, audited."""
        return await self.transition(
            db, actor_id, ReportOperation.FORCE_STATUS, report_id,
            {"status": status, "reason": reason, "technician_id": technician_id},
        )

    async def submit_feedback(
        self,
        db: AsyncSession,
        actor_id: UUID,
        report_id: UUID,
        rating: Any,
        comment: str | None = None,
    ) -> TransitionResult:
        return await self.transition(
            db, actor_id, ReportOperation.SUBMIT_FEEDBACK, report_id,
            {"rating": rating, "comment": comment},
        )


report_lifecycle_service: ReportLifecycleService = ReportLifecycleService()
