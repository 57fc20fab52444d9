"""Milestone endpoints with role scoping."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_db
from errors import DashboardError
from models.milestone import MilestoneCreate, MilestoneGroup, MilestoneResponse, MilestoneStatusUpdate
from services import balances_service, milestones_service

router = APIRouter()


@router.get("/milestones", response_model=List[MilestoneResponse])
async def list_milestones_endpoint(
    project_id: UUID | None = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List visible milestones, soonest due first."""
    try:
        return await milestones_service.list_milestones(db, ctx=ctx, project_id=project_id)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch milestones: {str(e)}",
        )


@router.get("/milestones/grouped", response_model=List[MilestoneGroup])
async def grouped_milestones_endpoint(
    project_id: UUID | None = Query(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Milestones grouped by project with amount rollups.

    Returns:
        One group per project with total and completed milestone amounts.
    """
    try:
        return await balances_service.grouped_milestones(db, ctx=ctx, project_id=project_id)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to group milestones: {str(e)}",
        )


@router.post("/milestones", response_model=MilestoneResponse, status_code=status.HTTP_201_CREATED)
async def create_milestone_endpoint(
    payload: MilestoneCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a milestone on a project (admin only)."""
    try:
        return await milestones_service.create_milestone(db, ctx=ctx, payload=payload)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create milestone: {str(e)}",
        )


@router.put("/milestones/{milestone_id}/status", response_model=MilestoneResponse)
async def update_milestone_status_endpoint(
    milestone_id: UUID,
    payload: MilestoneStatusUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Set a milestone's status (admin only)."""
    try:
        return await milestones_service.update_milestone_status(
            db,
            ctx=ctx,
            milestone_id=milestone_id,
            status=payload.status,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update milestone status: {str(e)}",
        )
