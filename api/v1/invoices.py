"""Invoice endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_db
from errors import DashboardError
from models.invoice import InvoiceCreate, InvoiceResponse, InvoiceStatus, InvoiceStatusUpdate
from services import invoices_service

router = APIRouter()


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_invoices_endpoint(
    project_id: UUID | None = Query(None),
    status_filter: InvoiceStatus | None = Query(None, alias="status"),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List visible invoices, newest first."""
    try:
        return await invoices_service.list_invoices(
            db,
            ctx=ctx,
            project_id=project_id,
            status=status_filter,
        )
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch invoices: {str(e)}",
        )


@router.post("/invoices/mark-overdue", response_model=List[InvoiceResponse])
async def mark_overdue_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Flag PENDING invoices past their due date as OVERDUE (admin only).

    Returns:
        The invoices that changed.
    """
    try:
        return await invoices_service.mark_overdue_invoices(db, ctx=ctx)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to mark overdue invoices: {str(e)}",
        )


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice_endpoint(
    invoice_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a specific invoice by ID.

    Raises:
        404 if invoice not found or user doesn't have access.
    """
    return await invoices_service.get_invoice(db, ctx=ctx, invoice_id=invoice_id)


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice_endpoint(
    payload: InvoiceCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a DRAFT invoice with a generated number (admin only).

    Raises:
        422 if the due date is not in the future.
    """
    try:
        return await invoices_service.create_invoice(db, ctx=ctx, payload=payload)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create invoice: {str(e)}",
        )


@router.put("/invoices/{invoice_id}/status", response_model=InvoiceResponse)
async def change_invoice_status_endpoint(
    invoice_id: UUID,
    payload: InvoiceStatusUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Move an invoice to a new status (admin only).

    Raises:
        409 if the transition is not allowed.
    """
    try:
        return await invoices_service.change_invoice_status(
            db,
            ctx=ctx,
            invoice_id=invoice_id,
            status=payload.status,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to change invoice status: {str(e)}",
        )
