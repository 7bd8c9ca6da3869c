"""User Service: profiles, staff accounts and user removal.

Removal of a technician or controller detaches their historical work
(reports, schedules) and deletes the account in one transaction.
"""

import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import STAFF_ROLES, Role
from bluegrid.models.user import User
from bluegrid.repositories.auth_repository import auth_repository
from bluegrid.repositories.report_repository import report_repository
from bluegrid.repositories.schedule_repository import schedule_repository
from bluegrid.repositories.user_repository import user_repository
from bluegrid.schemas.user import ProfileUpdate, StaffCreate, UserResponse
from bluegrid.utils.exceptions import ConflictError, NotFoundError, ValidationError
from bluegrid.utils.password import hash_password

logger = logging.getLogger(__name__)


def to_user_response(user: User) -> UserResponse:
    """Convert a User model instance to a UserResponse schema."""
    return UserResponse(
        id=str(user.id),
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        address=user.address,
        role=user.role,
        email_verified=user.email_verified,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class UserService:
    """Service handling user business logic."""

    async def update_profile(
        self,
        db: AsyncSession,
        user: User,
        data: ProfileUpdate,
    ) -> UserResponse:
        """Update the caller's own name, phone and address.

        Args:
            db: Async database session
            user: Authenticated user
            data: Fields to change (unset fields are kept)

        Returns:
            UserResponse: Updated profile
        """
        update_data = data.model_dump(exclude_unset=True)
        if "full_name" in update_data and not (update_data["full_name"] or "").strip():
            raise ValidationError("Full name cannot be empty")
        updated = await user_repository.update(db, user, update_data)
        return to_user_response(updated)

    async def list_users(
        self,
        db: AsyncSession,
        role: Role | None = None,
    ) -> list[UserResponse]:
        users: Sequence[User] = await user_repository.list_by_role(db, role)
        return [to_user_response(u) for u in users]

    async def create_staff(
        self,
        db: AsyncSession,
        data: StaffCreate,
    ) -> UserResponse:
        """Create a maintenance technician or water flow controller account.

        Raises:
            ValidationError: Role is not a staff role
            ConflictError: Email already registered
        """
        if data.role not in STAFF_ROLES:
            raise ValidationError(
                "Role must be maintenance_technician or water_flow_controller",
                code="invalid_role",
            )
        email = data.email.strip().lower()
        if await user_repository.get_by_email(db, email) is not None:
            raise ConflictError("Email already registered", code="email_taken")

        user = await user_repository.create(db, {
            "email": email,
            "password_hash": hash_password(data.password),
            "email_verified": True,
            "full_name": data.full_name.strip(),
            "phone": data.phone,
            "address": data.address,
            "role": data.role,
        })
        logger.info("Created %s account %s", data.role.value, user.id)
        return to_user_response(user)

    async def delete_user(
        self,
        db: AsyncSession,
        user_id: UUID,
    ) -> None:
        """Delete a staff account and detach its history, atomically.

        Technicians with open reports and controllers with active schedules
        are refused. Otherwise their reports and schedules are kept with the
        reference nulled, refresh tokens are dropped, and the user row is
        deleted. The whole sequence commits or rolls back as one unit.

        Raises:
            NotFoundError: User does not exist
            ValidationError: Officers and residents cannot be deleted
            ConflictError: Technician has open reports / controller has upcoming or active schedules
        """
        user: User | None = await user_repository.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.role not in STAFF_ROLES:
            raise ValidationError(
                f"Cannot delete {user.role.value.replace('_', ' ')} accounts",
                code="protected_role",
            )

        if user.role is Role.MAINTENANCE_TECHNICIAN:
            open_reports = await report_repository.count_open_for_technician(db, user.id)
            if open_reports:
                raise ConflictError(
                    f"Technician has {open_reports} open report(s). Reassign them first.",
                    code="has_open_reports",
                )
        if user.role is Role.WATER_FLOW_CONTROLLER:
            pending = await schedule_repository.count_pending_for_controller(db, user.id)
            if pending:
                raise ConflictError(
                    f"Controller has {pending} upcoming or active schedule(s). Close or interrupt them first.",
                    code="has_active_schedules",
                )

        try:
            released_reports = await report_repository.release_technician(db, user.id)
            released_schedules = await schedule_repository.release_controller(db, user.id)
            await auth_repository.delete_user_refresh_tokens(db, user.id)
            await db.delete(user)
            await db.flush()
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Deleting user %s failed; rolled back", user_id)
            raise

        logger.info(
            "Deleted user %s (%d reports, %d schedules detached)",
            user_id, released_reports, released_schedules,
        )


user_service: UserService = UserService()
