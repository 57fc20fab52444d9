"""Project endpoints with role scoping."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_db
from errors import DashboardError
from models.balance import ProjectBalance
from models.project import (
    ProjectCreate,
    ProjectResponse,
    ProjectStatus,
    ProjectStatusUpdate,
    ProjectUpdate,
)
from services import balances_service, projects_service

router = APIRouter()


@router.get("/projects", response_model=List[ProjectResponse])
async def list_projects_endpoint(
    status_filter: ProjectStatus | None = Query(None, alias="status"),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    List projects visible to the caller.

    Admins see every project, clients only their own.
    """
    try:
        return await projects_service.list_projects(db, ctx=ctx, status=status_filter)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch projects: {str(e)}",
        )


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project_endpoint(
    project_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a specific project by ID.

    Raises:
        404 if project not found or user doesn't have access.
    """
    try:
        return await projects_service.get_project(db, ctx=ctx, project_id=project_id)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch project: {str(e)}",
        )


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project_endpoint(
    project_data: ProjectCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a new project for a client (admin only)."""
    try:
        return await projects_service.create_project(db, ctx=ctx, payload=project_data)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create project: {str(e)}",
        )


@router.put("/projects/{project_id}", response_model=ProjectResponse)
async def update_project_endpoint(
    project_id: UUID,
    project_data: ProjectUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Update an existing project (admin only).

    Only provided fields will be updated.
    """
    try:
        return await projects_service.update_project(
            db,
            ctx=ctx,
            project_id=project_id,
            payload=project_data,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update project: {str(e)}",
        )


@router.put("/projects/{project_id}/status", response_model=ProjectResponse)
async def change_project_status_endpoint(
    project_id: UUID,
    payload: ProjectStatusUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a project to a new status (admin only).

    Raises:
        409 if the transition is not allowed.
    """
    try:
        return await projects_service.change_project_status(
            db,
            ctx=ctx,
            project_id=project_id,
            status=payload.status,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to change project status: {str(e)}",
        )


@router.get("/projects/{project_id}/balance", response_model=ProjectBalance)
async def get_project_balance_endpoint(
    project_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Paid and remaining amounts for one project."""
    try:
        return await balances_service.get_project_balance(db, ctx=ctx, project_id=project_id)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to compute project balance: {str(e)}",
        )


@router.get("/balances", response_model=List[ProjectBalance])
async def list_project_balances_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Balances for every project visible to the caller."""
    try:
        return await balances_service.list_project_balances(db, ctx=ctx)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to compute balances: {str(e)}",
        )
