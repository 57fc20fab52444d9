"""Notification model - append-only feed entries addressed to one profile."""

import enum
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utc_now


class NotificationType(str, enum.Enum):
    """Notification severity enum."""

    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Notification(Base):
    """Notification ORM model.

    The related_* columns are weak references: no foreign keys, so removing
    a project or payment never touches the feed.
    """

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationType.INFO.value,
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    related_project_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    related_payment_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    related_milestone_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        index=True,
    )


# Pydantic schemas
class NotificationResponse(BaseModel):
    """Schema for notification response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    message: str
    type: NotificationType
    read: bool
    created_at: datetime
    related_project_id: UUID | None
    related_payment_id: UUID | None
    related_milestone_id: UUID | None


class UnreadCount(BaseModel):
    """Schema for the unread counter."""

    unread: int
