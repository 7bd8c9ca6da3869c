"""User SQLAlchemy ORM model definition.

Tables:
    - users: Accounts for residents and staff, one role per user
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bluegrid.database import Base
from bluegrid.models.enums import Role, enum_column


class User(Base):
    """User model: login identity plus profile.

    Email is globally unique and is the login identifier.

    Attributes:
        id: Unique identifier
        email: Login email (unique)
        password_hash: bcrypt hash
        email_verified: True once an OTP signup completed
        full_name: Display name
        phone: Contact number used for WhatsApp delivery
        address: Postal address
        role: Actor role
        last_sign_in_at: Last successful signin
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[Role] = mapped_column(enum_column(Role, "user_role"), nullable=False, default=Role.RESIDENT)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
