"""Service layer for Invoice business logic."""

import logging
import secrets
import string
from datetime import date
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.access import AccessContext, require_admin, require_context
from errors import InvalidTransitionError, NotFoundError, QueryError, ValidationFailed
from models.invoice import Invoice, InvoiceCreate, InvoiceStatus
from models.notification import NotificationType
from repos import invoices_repo, projects_repo
from services import notifications_service

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV-"
_ALPHABET = string.digits + string.ascii_uppercase

INVOICE_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: {InvoiceStatus.PENDING, InvoiceStatus.CANCELLED},
    InvoiceStatus.PENDING: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PAID, InvoiceStatus.CANCELLED},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}


def generate_invoice_number() -> str:
    """Return "INV-" followed by 9 random base-36 characters."""
    return INVOICE_PREFIX + "".join(secrets.choice(_ALPHABET) for _ in range(9))


async def list_invoices(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
    status: InvoiceStatus | None = None,
) -> list[Invoice]:
    """List visible invoices, newest first."""
    ctx = require_context(ctx)
    return await invoices_repo.list(session, ctx=ctx, project_id=project_id, status=status)


async def get_invoice(session: AsyncSession, *, ctx: AccessContext, invoice_id: UUID) -> Invoice:
    ctx = require_context(ctx)
    invoice = await invoices_repo.get_by_id(session, ctx=ctx, invoice_id=invoice_id)
    if not invoice:
        raise NotFoundError("Invoice")
    return invoice


async def create_invoice(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: InvoiceCreate,
    today: date | None = None,
) -> Invoice:
    """
    Create a DRAFT invoice with a freshly generated unique number (admin only).

    Each insert runs in a savepoint; a unique-constraint collision on the
    number rolls back only that savepoint and retries with a new number.
    An existing invoice is never overwritten.

    Args:
        session: Database session
        ctx: Access context (must be admin)
        payload: Invoice data
        today: Reference date for the due-date check (defaults to today)

    Returns:
        Created invoice

    Raises:
        NotFoundError: If the project does not exist
        ValidationFailed: If the due date is not in the future
        QueryError: If no unique number could be allocated
    """
    ctx = require_admin(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=payload.project_id)
    if not project:
        raise NotFoundError("Project")

    if payload.due_date <= (today or date.today()):
        raise ValidationFailed("Due date must be in the future")

    attempts = max(1, config.settings.INVOICE_NUMBER_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        invoice_number = generate_invoice_number()
        try:
            async with session.begin_nested():
                invoice = await invoices_repo.create(
                    session,
                    Invoice(
                        project_id=project.id,
                        invoice_number=invoice_number,
                        amount=payload.amount,
                        description=payload.description,
                        due_date=payload.due_date,
                        status=InvoiceStatus.DRAFT.value,
                        created_by=ctx.user_id,
                    ),
                )
        except IntegrityError:
            logger.warning(
                "Invoice number collision on %s (attempt %d/%d)",
                invoice_number,
                attempt,
                attempts,
            )
            continue

        await session.commit()
        await session.refresh(invoice)
        logger.info("Invoice %s created for project %s", invoice.invoice_number, project.id)
        return invoice

    await session.rollback()
    raise QueryError(f"Could not allocate a unique invoice number after {attempts} attempts")


async def change_invoice_status(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    invoice_id: UUID,
    status: InvoiceStatus,
) -> Invoice:
    """
    Move an invoice to a new status (admin only).

    Issuing an invoice (DRAFT -> PENDING) notifies the project's client.

    Raises:
        NotFoundError: If the invoice does not exist
        InvalidTransitionError: If the transition is not allowed
    """
    ctx = require_admin(ctx)
    invoice = await invoices_repo.get_by_id(session, ctx=ctx, invoice_id=invoice_id)
    if not invoice:
        raise NotFoundError("Invoice")

    current = InvoiceStatus(invoice.status)
    if status not in INVOICE_TRANSITIONS[current]:
        raise InvalidTransitionError("Invoice", current.value, status.value)

    invoice.status = status.value
    if status == InvoiceStatus.PENDING:
        project = await projects_repo.get_by_id(session, ctx=ctx, project_id=invoice.project_id)
        await notifications_service.notify(
            session,
            user_id=project.client_id,
            title="New invoice",
            message=(
                f"Invoice {invoice.invoice_number} for {invoice.amount} is due on "
                f"{invoice.due_date.isoformat()}."
            ),
            type=NotificationType.INFO,
            related_project_id=project.id,
        )

    await notifications_service.commit_and_publish(session)
    await session.refresh(invoice)
    logger.info("Invoice %s moved %s -> %s", invoice.invoice_number, current.value, status.value)
    return invoice


async def mark_overdue_invoices(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    today: date | None = None,
) -> list[Invoice]:
    """
    Flag PENDING invoices past their due date as OVERDUE (admin only).

    Returns:
        The invoices that were changed
    """
    require_admin(ctx)
    today = today or date.today()
    overdue = await invoices_repo.list_past_due(session, today=today)

    for invoice in overdue:
        invoice.status = InvoiceStatus.OVERDUE.value
        project = await projects_repo.get_by_id(session, ctx=ctx, project_id=invoice.project_id)
        await notifications_service.notify(
            session,
            user_id=project.client_id,
            title="Invoice overdue",
            message=f"Invoice {invoice.invoice_number} was due on {invoice.due_date.isoformat()}.",
            type=NotificationType.WARNING,
            related_project_id=project.id,
        )

    await notifications_service.commit_and_publish(session)
    if overdue:
        logger.info("Marked %d invoices overdue", len(overdue))
    return overdue
