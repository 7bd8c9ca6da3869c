"""User repository: account lookups and role reads."""

from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bluegrid.models.enums import Role
from bluegrid.models.user import User
from bluegrid.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):

    def __init__(self) -> None:
        super().__init__(User)

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        """Retrieve a user by email (case-insensitive)."""
        query: Select = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def role_of(self, db: AsyncSession, user_id: UUID) -> Role | None:
        """Current role of ``user_id``, read fresh from the database.

        Returns:
            Role | None: None when the user does not exist
        """
        result = await db.execute(select(User.role).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def list_by_role(
        self,
        db: AsyncSession,
        role: Role | None = None,
    ) -> Sequence[User]:
        """All users, optionally narrowed to one role, newest first."""
        query: Select = select(User).order_by(User.created_at.desc())
        if role is not None:
            query = query.where(User.role == role)
        result = await db.execute(query)
        return result.scalars().all()

    async def count_by_role(self, db: AsyncSession) -> dict[str, int]:
        result = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
        return {Role(role).value: count for role, count in result.all()}

    async def names_by_ids(self, db: AsyncSession, ids: set[UUID]) -> dict[UUID, str]:
        """Map user ids to full names for response building."""
        if not ids:
            return {}
        result = await db.execute(select(User.id, User.full_name).where(User.id.in_(ids)))
        return {uid: name for uid, name in result.all()}


user_repository: UserRepository = UserRepository()
