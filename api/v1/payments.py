"""Payment and payment method endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_db
from errors import DashboardError
from models.payment import (
    ApprovalStatus,
    PaymentCreate,
    PaymentMethodCreate,
    PaymentMethodResponse,
    PaymentRejection,
    PaymentResponse,
    SettlementUpdate,
)
from services import payments_service

router = APIRouter()


@router.get("/payments", response_model=List[PaymentResponse])
async def list_payments_endpoint(
    project_id: UUID | None = Query(None),
    approval_status: ApprovalStatus | None = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List visible payments, newest first."""
    try:
        return await payments_service.list_payments(
            db,
            ctx=ctx,
            project_id=project_id,
            approval_status=approval_status,
        )
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch payments: {str(e)}",
        )


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment_endpoint(
    payment_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a specific payment by ID.

    Raises:
        404 if payment not found or user doesn't have access.
    """
    return await payments_service.get_payment(db, ctx=ctx, payment_id=payment_id)


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_endpoint(
    payload: PaymentCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Record a payment. It starts PENDING and needs admin approval.
    """
    try:
        return await payments_service.create_payment(db, ctx=ctx, payload=payload)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create payment: {str(e)}",
        )


@router.post("/payments/{payment_id}/approve", response_model=PaymentResponse)
async def approve_payment_endpoint(
    payment_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending payment (admin only)."""
    try:
        return await payments_service.approve_payment(db, ctx=ctx, payment_id=payment_id)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to approve payment: {str(e)}",
        )


@router.post("/payments/{payment_id}/reject", response_model=PaymentResponse)
async def reject_payment_endpoint(
    payment_id: UUID,
    payload: PaymentRejection | None = None,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending payment with an optional reason (admin only)."""
    try:
        return await payments_service.reject_payment(
            db,
            ctx=ctx,
            payment_id=payment_id,
            reason=payload.reason if payload else None,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to reject payment: {str(e)}",
        )


@router.post("/payments/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel_payment_endpoint(
    payment_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending payment (admin only)."""
    try:
        return await payments_service.cancel_payment(db, ctx=ctx, payment_id=payment_id)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to cancel payment: {str(e)}",
        )


@router.put("/payments/{payment_id}/settlement", response_model=PaymentResponse)
async def update_settlement_endpoint(
    payment_id: UUID,
    payload: SettlementUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Move a payment along the settlement axis (admin only)."""
    try:
        return await payments_service.update_settlement_status(
            db,
            ctx=ctx,
            payment_id=payment_id,
            status=payload.status,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update settlement status: {str(e)}",
        )


@router.get("/payment-methods", response_model=List[PaymentMethodResponse])
async def list_payment_methods_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List active payment methods."""
    return await payments_service.list_payment_methods(db, ctx=ctx)


@router.post(
    "/payment-methods",
    response_model=PaymentMethodResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment_method_endpoint(
    payload: PaymentMethodCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a payment method (admin only)."""
    try:
        return await payments_service.create_payment_method(db, ctx=ctx, payload=payload)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create payment method: {str(e)}",
        )
