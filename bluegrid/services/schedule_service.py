"""Water schedule service: creation, open/close/interrupt, listings.

State: scheduled -> active -> closed; scheduled | active -> interrupted.
Only the schedule's controller (or the officer who created it) may move
it; officers take over schedules whose controller was deleted. Residents
are told about each step by email and WhatsApp.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.config import settings
from bluegrid.models.enums import Role, ScheduleStatus
from bluegrid.models.schedule import WaterSchedule
from bluegrid.models.user import User
from bluegrid.repositories.schedule_repository import schedule_repository
from bluegrid.repositories.user_repository import user_repository
from bluegrid.schemas.schedule import ScheduleCreate
from bluegrid.services.notification_service import NotificationEvent, Recipient
from bluegrid.services.notification_templates import Audience, NotificationKind, format_local_time
from bluegrid.utils.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# (allowed sources, target) per schedule action
_SCHEDULE_TRANSITIONS: dict[str, tuple[frozenset[ScheduleStatus], ScheduleStatus]] = {
    "open": (frozenset({ScheduleStatus.SCHEDULED}), ScheduleStatus.ACTIVE),
    "close": (frozenset({ScheduleStatus.ACTIVE}), ScheduleStatus.CLOSED),
    "interrupt": (frozenset({ScheduleStatus.SCHEDULED, ScheduleStatus.ACTIVE}), ScheduleStatus.INTERRUPTED),
}

_SCHEDULE_ROLES: frozenset[Role] = frozenset({Role.WATER_FLOW_CONTROLLER, Role.PANCHAYAT_OFFICER})

_ACTION_KINDS: dict[str, NotificationKind] = {
    "open": NotificationKind.SCHEDULE_OPENED,
    "close": NotificationKind.SCHEDULE_CLOSED,
    "interrupt": NotificationKind.SCHEDULE_INTERRUPTED,
}


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ScheduleService:

    def to_response(self, schedule: WaterSchedule, names: dict[UUID, str] | None = None) -> dict:
        names = names or {}
        return {
            "id": str(schedule.id),
            "controller_id": str(schedule.controller_id) if schedule.controller_id else None,
            "controller_name": names.get(schedule.controller_id) if schedule.controller_id else None,
            "resident_id": str(schedule.resident_id) if schedule.resident_id else None,
            "area": schedule.area,
            "scheduled_open_time": schedule.scheduled_open_time,
            "scheduled_close_time": schedule.scheduled_close_time,
            "actual_open_time": schedule.actual_open_time,
            "actual_close_time": schedule.actual_close_time,
            "status": schedule.status.value,
            "is_active": schedule.is_active,
            "interrupted": schedule.interrupted,
            "interruption_reason": schedule.interruption_reason,
            "created_at": schedule.created_at,
            "updated_at": schedule.updated_at,
        }

    async def to_responses(self, db: AsyncSession, schedules: Sequence[WaterSchedule]) -> list[dict]:
        names = await user_repository.names_by_ids(
            db, {s.controller_id for s in schedules if s.controller_id}
        )
        return [self.to_response(s, names) for s in schedules]

    # --- Creation ---

    async def create_schedule(
        self,
        db: AsyncSession,
        actor: User,
        data: ScheduleCreate,
    ) -> tuple[WaterSchedule, NotificationEvent]:
        """Create a schedule owned by ``actor``.

        Raises:
            AuthorizationError: Actor is neither controller nor officer
            ValidationError: Close not after open, or target is not a resident
        """
        if actor.role not in _SCHEDULE_ROLES:
            raise AuthorizationError("Access denied. Water Flow Controller or Panchayat Officer role required.")

        open_time = _as_aware(data.scheduled_open_time).astimezone(timezone.utc)
        close_time = _as_aware(data.scheduled_close_time).astimezone(timezone.utc)
        if close_time <= open_time:
            raise ValidationError("Close time must be after open time", code="invalid_window")

        resident: User | None = None
        if data.resident_id:
            try:
                resident_id = UUID(data.resident_id)
            except ValueError:
                raise ValidationError("Invalid resident id")
            resident = await user_repository.get_by_id(db, resident_id)
            if resident is None or resident.role is not Role.RESIDENT:
                raise ValidationError("Target user is not a resident", code="invalid_resident")

        schedule = await schedule_repository.create(db, {
            "controller_id": actor.id,
            "resident_id": resident.id if resident else None,
            "area": data.area.strip(),
            "scheduled_open_time": open_time,
            "scheduled_close_time": close_time,
            "status": ScheduleStatus.SCHEDULED,
            "is_active": False,
        })
        logger.info("Schedule %s created for %s by %s", schedule.id, schedule.area, actor.id)

        recipients = [resident] if resident else list(await user_repository.list_by_role(db, Role.RESIDENT))
        event = NotificationEvent(
            kind=NotificationKind.SCHEDULE_CREATED,
            recipients=[self._recipient(u) for u in recipients],
            context={
                **self._context(schedule),
                "open_time": format_local_time(open_time),
                "close_time": format_local_time(close_time),
            },
        )
        return schedule, event

    # --- State changes ---

    async def open_schedule(self, db: AsyncSession, actor: User, schedule_id: UUID) -> tuple[WaterSchedule, NotificationEvent | None]:
        return await self._apply(db, actor, schedule_id, "open")

    async def close_schedule(self, db: AsyncSession, actor: User, schedule_id: UUID) -> tuple[WaterSchedule, NotificationEvent | None]:
        return await self._apply(db, actor, schedule_id, "close")

    async def interrupt_schedule(
        self, db: AsyncSession, actor: User, schedule_id: UUID, reason: str | None
    ) -> tuple[WaterSchedule, NotificationEvent | None]:
        return await self._apply(db, actor, schedule_id, "interrupt", reason)

    async def _apply(
        self,
        db: AsyncSession,
        actor: User,
        schedule_id: UUID,
        action: str,
        reason: str | None = None,
    ) -> tuple[WaterSchedule, NotificationEvent | None]:
        if actor.role not in _SCHEDULE_ROLES:
            raise AuthorizationError("Access denied. Water Flow Controller role required.")
        schedule = await schedule_repository.get_by_id(db, schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule not found")
        # Schedules left without a controller fall to officers
        orphaned = schedule.controller_id is None and actor.role is Role.PANCHAYAT_OFFICER
        if schedule.controller_id != actor.id and not orphaned:
            raise OwnershipError("You can only manage your own schedules")
        if action == "interrupt" and not (reason or "").strip():
            raise ValidationError("Interruption reason is required", code="missing_field")

        sources, target = _SCHEDULE_TRANSITIONS[action]
        if schedule.status not in sources:
            raise ConflictError(f"Cannot {action} a schedule that is {schedule.status.value}")

        now = datetime.now(timezone.utc)
        updates: dict = {"status": target, "updated_at": now}
        if action == "open":
            updates.update(actual_open_time=now, is_active=True)
        elif action == "close":
            updates.update(actual_close_time=now, is_active=False)
        else:
            updates.update(
                actual_close_time=now,
                is_active=False,
                interrupted=True,
                interruption_reason=reason.strip(),
            )
        schedule = await schedule_repository.update(db, schedule, updates)
        logger.info("Schedule %s %s by %s", schedule.id, target.value, actor.id)

        event: NotificationEvent | None = None
        if schedule.resident_id is not None:
            resident = await user_repository.get_by_id(db, schedule.resident_id)
            if resident is not None:
                event = NotificationEvent(
                    kind=_ACTION_KINDS[action],
                    recipients=[self._recipient(resident)],
                    context={**self._context(schedule), "time": format_local_time(now), "reason": reason},
                )
        return schedule, event

    @staticmethod
    def _recipient(user: User) -> Recipient:
        return Recipient(audience=Audience.RESIDENT, name=user.full_name, email=user.email, phone=user.phone)

    @staticmethod
    def _context(schedule: WaterSchedule) -> dict:
        return {
            "area": schedule.area,
            "schedule_id": str(schedule.id),
            "schedule_ref": str(schedule.id).split("-")[0].upper(),
        }

    # --- Listings ---

    async def list_active(self, db: AsyncSession) -> Sequence[WaterSchedule]:
        return await schedule_repository.list_active(db, limit=20)

    async def list_all(self, db: AsyncSession) -> Sequence[WaterSchedule]:
        return await schedule_repository.list_all(db)

    async def list_mine(self, db: AsyncSession, actor: User) -> Sequence[WaterSchedule]:
        return await schedule_repository.list_by_controller(db, actor.id)

    async def list_today(self, db: AsyncSession, now: datetime | None = None) -> Sequence[WaterSchedule]:
        """Schedules opening today, where "today" is the local day in NOTIFY_TIMEZONE."""
        tz = ZoneInfo(settings.NOTIFY_TIMEZONE)
        local_now = (now or datetime.now(timezone.utc)).astimezone(tz)
        start = datetime.combine(local_now.date(), time.min, tzinfo=tz)
        end = start + timedelta(days=1)
        return await schedule_repository.list_opening_between(
            db, start.astimezone(timezone.utc), end.astimezone(timezone.utc)
        )


schedule_service: ScheduleService = ScheduleService()
