"""Repository for Project database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, scope_projects
from models.project import Project, ProjectStatus


async def get_by_id(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID,
) -> Project | None:
    """
    Get a project by ID within the caller's scope.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        project_id: Project ID to fetch

    Returns:
        Project if found and visible, None otherwise
    """
    query = scope_projects(select(Project).where(Project.id == project_id), ctx)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    status: ProjectStatus | None = None,
    client_id: UUID | None = None,
) -> list[Project]:
    """
    List projects visible to the caller, newest first.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        status: Optional status filter
        client_id: Optional client filter (only narrows, never widens scope)

    Returns:
        List of projects
    """
    query = scope_projects(select(Project), ctx)

    if status is not None:
        query = query.where(Project.status == status.value)
    if client_id is not None:
        query = query.where(Project.client_id == client_id)

    query = query.order_by(Project.created_at.desc())
    result = await session.execute(query)
    return [project for project in result.scalars().all()]


async def create(session: AsyncSession, project: Project) -> Project:
    """
    Create a new project.

    Args:
        session: Database session
        project: Project instance to create

    Returns:
        Created project
    """
    session.add(project)
    await session.flush()
    await session.refresh(project)
    return project
