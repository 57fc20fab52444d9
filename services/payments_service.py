"""Service layer for Payment business logic.

Approval workflow (admin only, one-way):

    PENDING --approve--> APPROVED
    PENDING --reject---> REJECTED
    PENDING --cancel---> CANCELLED

Settlement is tracked separately (admin only):

    PENDING --> COMPLETED | FAILED
    COMPLETED --> REFUNDED
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, require_admin, require_context
from errors import InvalidTransitionError, NotFoundError, QueryError, ValidationFailed
from models.notification import NotificationType
from models.payment import (
    ApprovalStatus,
    Payment,
    PaymentCreate,
    PaymentMethod,
    PaymentMethodCreate,
    PaymentStatus,
)
from repos import payments_repo, projects_repo
from services import notifications_service

logger = logging.getLogger(__name__)

APPROVAL_TRANSITIONS: dict[ApprovalStatus, set[ApprovalStatus]] = {
    ApprovalStatus.PENDING: {
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.CANCELLED,
    },
    ApprovalStatus.APPROVED: set(),
    ApprovalStatus.REJECTED: set(),
    ApprovalStatus.CANCELLED: set(),
}

SETTLEMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


async def list_payments(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
    approval_status: ApprovalStatus | None = None,
) -> list[Payment]:
    """List visible payments, newest first."""
    ctx = require_context(ctx)
    return await payments_repo.list(
        session,
        ctx=ctx,
        project_id=project_id,
        approval_status=approval_status,
    )


async def get_payment(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payment_id: UUID,
) -> Payment:
    """
    Get a payment by ID.

    Raises:
        NotFoundError: If the payment does not exist or is not visible
    """
    ctx = require_context(ctx)
    payment = await payments_repo.get_by_id(session, ctx=ctx, payment_id=payment_id)
    if not payment:
        raise NotFoundError("Payment")
    return payment


async def create_payment(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: PaymentCreate,
) -> Payment:
    """
    Record a payment against a visible project.

    Admins may record payments for any project, clients for their own.
    New payments always start PENDING on both axes and therefore do not
    count toward the project's paid amount yet.

    Raises:
        NotFoundError: If the project is not visible to the caller
        ValidationFailed: If the payment method is unknown or inactive
    """
    ctx = require_context(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=payload.project_id)
    if not project:
        raise NotFoundError("Project")

    if payload.payment_method_id is not None:
        method = await payments_repo.get_method(session, payload.payment_method_id)
        if not method or not method.is_active:
            raise ValidationFailed("Unknown or inactive payment method")

    payment = Payment(
        project_id=project.id,
        amount=payload.amount,
        description=payload.description,
        payment_method_id=payload.payment_method_id,
        reference_number=payload.reference_number,
        status=PaymentStatus.PENDING.value,
        approval_status=ApprovalStatus.PENDING.value,
        created_by=ctx.user_id,
    )
    payment = await payments_repo.create(session, payment)

    if not ctx.is_admin:
        await notifications_service.notify_admins(
            session,
            title="Payment submitted",
            message=f"A payment of {payment.amount} was submitted for '{project.name}'.",
            type=NotificationType.INFO,
            related_project_id=project.id,
            related_payment_id=payment.id,
        )

    await notifications_service.commit_and_publish(session)
    await session.refresh(payment)
    logger.info("Payment %s recorded for project %s by %s", payment.id, project.id, ctx.user_id)
    return payment


async def _transition_approval(
    session: AsyncSession,
    ctx: AccessContext,
    payment_id: UUID,
    target: ApprovalStatus,
    reason: str | None = None,
) -> Payment:
    ctx = require_admin(ctx)
    payment = await payments_repo.get_by_id(session, ctx=ctx, payment_id=payment_id)
    if not payment:
        raise NotFoundError("Payment")

    current = ApprovalStatus(payment.approval_status)
    if target not in APPROVAL_TRANSITIONS[current]:
        raise InvalidTransitionError("Payment approval", current.value, target.value)

    payment.approval_status = target.value
    payment.approved_by = ctx.user_id
    payment.approved_at = datetime.now(UTC)
    if target == ApprovalStatus.REJECTED:
        payment.rejection_reason = reason

    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=payment.project_id)
    if target == ApprovalStatus.APPROVED:
        title, kind = "Payment approved", NotificationType.SUCCESS
        message = f"Your payment of {payment.amount} for '{project.name}' was approved."
    elif target == ApprovalStatus.REJECTED:
        title, kind = "Payment rejected", NotificationType.ERROR
        message = f"Your payment of {payment.amount} for '{project.name}' was rejected."
        if reason:
            message = f"{message} Reason: {reason}"
    else:
        title, kind = "Payment cancelled", NotificationType.WARNING
        message = f"The payment of {payment.amount} for '{project.name}' was cancelled."

    await notifications_service.notify(
        session,
        user_id=project.client_id,
        title=title,
        message=message,
        type=kind,
        related_project_id=project.id,
        related_payment_id=payment.id,
    )
    await notifications_service.commit_and_publish(session)
    await session.refresh(payment)

    logger.info(
        "Payment %s approval %s -> %s by %s",
        payment.id,
        current.value,
        target.value,
        ctx.user_id,
    )
    return payment


async def approve_payment(session: AsyncSession, *, ctx: AccessContext, payment_id: UUID) -> Payment:
    """
    Approve a pending payment (admin only).

    Raises:
        InvalidTransitionError: If the payment is not PENDING approval
    """
    return await _transition_approval(session, ctx, payment_id, ApprovalStatus.APPROVED)


async def reject_payment(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payment_id: UUID,
    reason: str | None = None,
) -> Payment:
    """Reject a pending payment (admin only)."""
    return await _transition_approval(session, ctx, payment_id, ApprovalStatus.REJECTED, reason)


async def cancel_payment(session: AsyncSession, *, ctx: AccessContext, payment_id: UUID) -> Payment:
    """Cancel a pending payment (admin only)."""
    return await _transition_approval(session, ctx, payment_id, ApprovalStatus.CANCELLED)


async def update_settlement_status(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payment_id: UUID,
    status: PaymentStatus,
) -> Payment:
    """
    Move a payment along the settlement axis (admin only).

    Raises:
        NotFoundError: If the payment does not exist
        InvalidTransitionError: If the transition is not allowed
    """
    ctx = require_admin(ctx)
    payment = await payments_repo.get_by_id(session, ctx=ctx, payment_id=payment_id)
    if not payment:
        raise NotFoundError("Payment")

    current = PaymentStatus(payment.status)
    if status not in SETTLEMENT_TRANSITIONS[current]:
        raise InvalidTransitionError("Payment settlement", current.value, status.value)

    payment.status = status.value
    await session.commit()
    await session.refresh(payment)
    logger.info("Payment %s settlement %s -> %s", payment.id, current.value, status.value)
    return payment


async def list_payment_methods(session: AsyncSession, *, ctx: AccessContext) -> list[PaymentMethod]:
    require_context(ctx)
    return await payments_repo.list_methods(session, active_only=True)


async def create_payment_method(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: PaymentMethodCreate,
) -> PaymentMethod:
    """Create a payment method (admin only)."""
    require_admin(ctx)
    try:
        method = await payments_repo.create_method(session, PaymentMethod(name=payload.name))
    except IntegrityError as e:
        await session.rollback()
        raise QueryError(f"Payment method '{payload.name}' already exists") from e
    await session.commit()
    await session.refresh(method)
    return method
