"""Milestone model - a deliverable checkpoint inside a project."""

import enum
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utc_now


class MilestoneStatus(str, enum.Enum):
    """Milestone status enum."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class Milestone(Base):
    """Milestone ORM model."""

    __tablename__ = "project_milestones"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=MilestoneStatus.PENDING.value,
    )
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
class MilestoneCreate(BaseModel):
    """Schema for creating a milestone."""

    project_id: UUID
    title: str = Field(min_length=2, max_length=255)
    description: str | None = None
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    due_date: date | None = None


class MilestoneStatusUpdate(BaseModel):
    """Schema for a milestone status change."""

    status: MilestoneStatus


class MilestoneResponse(BaseModel):
    """Schema for milestone response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    title: str
    description: str | None
    amount: Decimal
    due_date: date | None
    status: MilestoneStatus
    created_at: datetime


class MilestoneGroup(BaseModel):
    """Milestones of one project with their amount rollup."""

    project_id: UUID
    project_name: str
    project_total_amount: Decimal
    milestones: list[MilestoneResponse]
    total_amount: Decimal
    completed_amount: Decimal
    completion_percentage: float
