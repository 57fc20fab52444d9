"""Repository for Payment and PaymentMethod database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, scope_by_project
from models.payment import ApprovalStatus, Payment, PaymentMethod


async def get_by_id(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payment_id: UUID,
) -> Payment | None:
    """
    Get a payment by ID within the caller's scope.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        payment_id: Payment ID to fetch

    Returns:
        Payment if found and visible, None otherwise
    """
    query = scope_by_project(
        select(Payment).where(Payment.id == payment_id),
        ctx,
        Payment.project_id,
    )
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_for_projects(
    session: AsyncSession,
    *,
    project_ids: list[UUID],
) -> list[Payment]:
    """
    List every payment of the given projects.

    Callers must pass project ids that were already scoped for the caller.
    """
    if not project_ids:
        return []
    result = await session.execute(
        select(Payment).where(Payment.project_id.in_(project_ids))
    )
    return [payment for payment in result.scalars().all()]


async def get_method(session: AsyncSession, method_id: UUID) -> PaymentMethod | None:
    result = await session.execute(
        select(PaymentMethod).where(PaymentMethod.id == method_id)
    )
    return result.scalar_one_or_none()


async def list_methods(session: AsyncSession, *, active_only: bool = True) -> list[PaymentMethod]:
    query = select(PaymentMethod)
    if active_only:
        query = query.where(PaymentMethod.is_active.is_(True))
    result = await session.execute(query.order_by(PaymentMethod.name.asc()))
    return [method for method in result.scalars().all()]


async def create_method(session: AsyncSession, method: PaymentMethod) -> PaymentMethod:
    session.add(method)
    await session.flush()
    await session.refresh(method)
    return method


async def list(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
    approval_status: ApprovalStatus | None = None,
    limit: int | None = None,
) -> list[Payment]:
    """
    List visible payments, newest first.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        project_id: Optional project filter
        approval_status: Optional approval filter
        limit: Optional row cap

    Returns:
        List of payments
    """
    query = scope_by_project(select(Payment), ctx, Payment.project_id)

    if project_id is not None:
        query = query.where(Payment.project_id == project_id)
    if approval_status is not None:
        query = query.where(Payment.approval_status == approval_status.value)

    query = query.order_by(Payment.created_at.desc())
    if limit is not None:
        query = query.limit(limit)

    result = await session.execute(query)
    return [payment for payment in result.scalars().all()]


async def create(session: AsyncSession, payment: Payment) -> Payment:
    """Create a new payment."""
    session.add(payment)
    await session.flush()
    await session.refresh(payment)
    return payment
