"""Repository for Milestone database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, scope_by_project
from models.milestone import Milestone
from models.project import Project


async def get_by_id(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    milestone_id: UUID,
) -> Milestone | None:
    """Get a milestone by ID within the caller's scope."""
    query = scope_by_project(
        select(Milestone).where(Milestone.id == milestone_id),
        ctx,
        Milestone.project_id,
    )
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_with_projects(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
) -> list[tuple[Milestone, Project]]:
    """
    List visible milestones joined with their project, soonest due first.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        project_id: Optional project filter

    Returns:
        List of (milestone, project) rows
    """
    query = (
        select(Milestone, Project)
        .join(Project, Milestone.project_id == Project.id)
    )
    query = scope_by_project(query, ctx, Milestone.project_id)

    if project_id is not None:
        query = query.where(Milestone.project_id == project_id)

    query = query.order_by(Milestone.due_date.asc(), Milestone.created_at.asc())
    result = await session.execute(query)
    return [(milestone, project) for milestone, project in result.all()]


async def create(session: AsyncSession, milestone: Milestone) -> Milestone:
    """Create a new milestone."""
    session.add(milestone)
    await session.flush()
    await session.refresh(milestone)
    return milestone
