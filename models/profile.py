"""Profile model - an authenticated principal (agency admin or client)."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utc_now


class Role(str, enum.Enum):
    """Principal role enum."""

    ADMIN = "admin"
    CLIENT = "client"


class Profile(Base):
    """Profile ORM model - login identity plus display details and role."""

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.CLIENT.value,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=utc_now,
    )


# Pydantic schemas
class ProfileResponse(BaseModel):
    """Schema for profile response (never exposes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str | None
    phone: str | None
    avatar_url: str | None
    role: Role
    created_at: datetime


class ProfileUpdate(BaseModel):
    """Schema for self-service profile edits. Only provided fields change."""

    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    avatar_url: str | None = Field(default=None, max_length=1024)


class ClientCreate(BaseModel):
    """Schema for an admin creating a client account."""

    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=2, max_length=255)
    phone: str | None = Field(default=None, max_length=50)


class ClientCreateResult(BaseModel):
    """Outcome of the two-step client creation.

    ``account_created`` with ``profile_updated=False`` means the login exists
    but the follow-up profile write failed; the admin can retry the edit.
    """

    account_created: bool
    profile_updated: bool
    profile: ProfileResponse | None = None
    error: str | None = None


class RoleUpdate(BaseModel):
    """Schema for an admin changing a profile's role."""

    role: Role
