"""Payment and PaymentMethod models - monetary events against a project.

A payment has two independent status axes:

* ``status`` tracks settlement (did the money move),
* ``approval_status`` tracks the admin approval workflow.

Only payments that are both settled (COMPLETED) and approved (APPROVED)
count toward a project's paid amount.
"""

import enum
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base, utc_now


class PaymentStatus(str, enum.Enum):
    """Settlement status enum."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class ApprovalStatus(str, enum.Enum):
    """Approval workflow status enum."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class PaymentMethod(Base):
    """PaymentMethod ORM model - bank transfer, card, etc."""

    __tablename__ = "payment_methods"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )


class Payment(Base):
    """Payment ORM model."""

    __tablename__ = "payments"

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
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
    )
    approval_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING.value,
        index=True,
    )
    payment_method_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payment_methods.id", ondelete="SET NULL"),
        nullable=True,
    )
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    created_by: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    approved_by: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
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
class PaymentCreate(BaseModel):
    """Schema for creating a payment.

    Note: status fields are NOT included - payments always start PENDING/PENDING.
    """

    project_id: UUID
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    description: str | None = Field(default=None, max_length=500)
    payment_method_id: UUID | None = None
    reference_number: str | None = Field(default=None, max_length=100)


class PaymentRejection(BaseModel):
    """Schema for rejecting a payment."""

    reason: str | None = Field(default=None, max_length=500)


class SettlementUpdate(BaseModel):
    """Schema for a settlement status change."""

    status: PaymentStatus


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    amount: Decimal
    description: str | None
    status: PaymentStatus
    approval_status: ApprovalStatus
    payment_method_id: UUID | None
    reference_number: str | None
    payment_date: datetime
    created_by: UUID
    approved_by: UUID | None
    approved_at: datetime | None
    rejection_reason: str | None
    created_at: datetime


class PaymentMethodCreate(BaseModel):
    """Schema for creating a payment method."""

    name: str = Field(min_length=2, max_length=100)


class PaymentMethodResponse(BaseModel):
    """Schema for payment method response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    is_active: bool
