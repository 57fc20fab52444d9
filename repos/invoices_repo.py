"""Repository for Invoice database operations."""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, scope_by_project
from models.invoice import Invoice, InvoiceStatus


async def get_by_id(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    invoice_id: UUID,
) -> Invoice | None:
    """Get an invoice by ID within the caller's scope."""
    query = scope_by_project(
        select(Invoice).where(Invoice.id == invoice_id),
        ctx,
        Invoice.project_id,
    )
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_past_due(session: AsyncSession, *, today: date) -> list[Invoice]:
    """List PENDING invoices whose due date is before ``today``."""
    result = await session.execute(
        select(Invoice).where(
            Invoice.status == InvoiceStatus.PENDING.value,
            Invoice.due_date < today,
        )
    )
    return [invoice for invoice in result.scalars().all()]


async def list(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
    status: InvoiceStatus | None = None,
) -> list[Invoice]:
    """
    List visible invoices, newest first.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        project_id: Optional project filter
        status: Optional status filter

    Returns:
        List of invoices
    """
    query = scope_by_project(select(Invoice), ctx, Invoice.project_id)

    if project_id is not None:
        query = query.where(Invoice.project_id == project_id)
    if status is not None:
        query = query.where(Invoice.status == status.value)

    result = await session.execute(query.order_by(Invoice.created_at.desc()))
    return [invoice for invoice in result.scalars().all()]


async def create(session: AsyncSession, invoice: Invoice) -> Invoice:
    """
    Create a new invoice.

    Raises:
        IntegrityError: If the invoice number is already taken
    """
    session.add(invoice)
    await session.flush()
    await session.refresh(invoice)
    return invoice
