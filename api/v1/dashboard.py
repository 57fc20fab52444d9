"""Dashboard endpoints - role-specific summaries and overview widgets."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_db
from errors import DashboardError
from models.balance import AdminStats, ClientSummary, MonthlyRevenue
from models.payment import PaymentResponse
from services import balances_service

router = APIRouter()


@router.get("/dashboard", response_model=AdminStats | ClientSummary)
async def get_dashboard_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Summary for the caller's dashboard.

    Returns:
        AdminStats for admins, ClientSummary for clients.
    """
    try:
        if ctx.is_admin:
            return await balances_service.get_admin_stats(db, ctx=ctx)
        return await balances_service.get_client_summary(db, ctx=ctx)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to build dashboard: {str(e)}",
        )


@router.get("/dashboard/monthly-revenue", response_model=List[MonthlyRevenue])
async def monthly_revenue_endpoint(
    year: int | None = Query(None, ge=2000, le=2100),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Counted payments per calendar month."""
    try:
        return await balances_service.monthly_revenue(db, ctx=ctx, year=year)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to compute monthly revenue: {str(e)}",
        )


@router.get("/dashboard/recent-payments", response_model=List[PaymentResponse])
async def recent_payments_endpoint(
    limit: int = Query(5, ge=1, le=50),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Latest payments visible to the caller."""
    return await balances_service.recent_payments(db, ctx=ctx, limit=limit)
