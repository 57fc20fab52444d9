"""Project model - client-owned engagement with a contracted total."""

import enum
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utc_now


class ProjectStatus(str, enum.Enum):
    """Project status enum."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"
    CANCELLED = "CANCELLED"


class Project(Base):
    """Project ORM model - belongs to exactly one client profile."""

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_by: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ProjectStatus.ACTIVE.value,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
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
class ProjectBase(BaseModel):
    """Base project schema."""

    name: str = Field(min_length=2, max_length=255)
    description: str | None = None
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    start_date: date | None = None
    expected_end_date: date | None = None


class ProjectCreate(ProjectBase):
    """Schema for creating a project.

    Note: status is NOT included - new projects always start ACTIVE.
    """

    client_id: UUID


class ProjectUpdate(BaseModel):
    """Schema for updating project fields. Status has its own endpoint."""

    name: str | None = Field(default=None, min_length=2, max_length=255)
    description: str | None = None
    total_amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    start_date: date | None = None
    expected_end_date: date | None = None


class ProjectStatusUpdate(BaseModel):
    """Schema for a project status transition."""

    status: ProjectStatus


class ProjectResponse(ProjectBase):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    status: ProjectStatus
    actual_end_date: date | None
    created_at: datetime
