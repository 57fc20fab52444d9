"""Service layer for Project business logic."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, require_admin, require_context
from errors import InvalidTransitionError, NotFoundError, ValidationFailed
from models.notification import NotificationType
from models.profile import Role
from models.project import Project, ProjectCreate, ProjectStatus, ProjectUpdate
from repos import profiles_repo, projects_repo
from services import notifications_service

logger = logging.getLogger(__name__)

# COMPLETED and CANCELLED are terminal
PROJECT_TRANSITIONS: dict[ProjectStatus, set[ProjectStatus]] = {
    ProjectStatus.ACTIVE: {ProjectStatus.ON_HOLD, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED},
    ProjectStatus.ON_HOLD: {ProjectStatus.ACTIVE, ProjectStatus.COMPLETED, ProjectStatus.CANCELLED},
    ProjectStatus.COMPLETED: set(),
    ProjectStatus.CANCELLED: set(),
}


async def list_projects(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    status: ProjectStatus | None = None,
) -> list[Project]:
    """
    List projects visible to the caller.

    Args:
        session: Database session
        ctx: Access context
        status: Optional status filter (e.g. the active/completed pages)

    Returns:
        List of projects
    """
    ctx = require_context(ctx)
    return await projects_repo.list(session, ctx=ctx, status=status)


async def get_project(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID,
) -> Project:
    """
    Get a project by ID.

    Raises:
        NotFoundError: If the project does not exist or is not visible
    """
    ctx = require_context(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=project_id)
    if not project:
        raise NotFoundError("Project")
    return project


async def create_project(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: ProjectCreate,
) -> Project:
    """
    Create a new project for a client (admin only).

    Args:
        session: Database session
        ctx: Access context (must be admin)
        payload: Project creation data

    Returns:
        Created project

    Raises:
        PermissionDenied: If the caller is not an admin
        ValidationFailed: If client_id does not reference a client profile
    """
    ctx = require_admin(ctx)

    client = await profiles_repo.get_by_id(session, payload.client_id)
    if not client or client.role != Role.CLIENT.value:
        raise ValidationFailed("client_id must reference an existing client")
    if (
        payload.start_date
        and payload.expected_end_date
        and payload.expected_end_date < payload.start_date
    ):
        raise ValidationFailed("expected_end_date cannot be before start_date")

    project = Project(
        client_id=payload.client_id,
        created_by=ctx.user_id,
        name=payload.name,
        description=payload.description,
        status=ProjectStatus.ACTIVE.value,
        total_amount=payload.total_amount,
        start_date=payload.start_date,
        expected_end_date=payload.expected_end_date,
    )
    created_project = await projects_repo.create(session, project)

    await notifications_service.notify(
        session,
        user_id=created_project.client_id,
        title="New project",
        message=f"Project '{created_project.name}' has been created for you.",
        type=NotificationType.INFO,
        related_project_id=created_project.id,
    )
    await notifications_service.commit_and_publish(session)
    await session.refresh(created_project)

    logger.info("Project %s created for client %s", created_project.id, created_project.client_id)
    return created_project


async def update_project(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID,
    payload: ProjectUpdate,
) -> Project:
    """
    Update project fields (admin only). Only provided fields change.

    Raises:
        NotFoundError: If the project does not exist
    """
    ctx = require_admin(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=project_id)
    if not project:
        raise NotFoundError("Project")

    if payload.name is not None:
        project.name = payload.name
    if payload.description is not None:
        project.description = payload.description
    if payload.total_amount is not None:
        project.total_amount = payload.total_amount
    if payload.start_date is not None:
        project.start_date = payload.start_date
    if payload.expected_end_date is not None:
        project.expected_end_date = payload.expected_end_date

    if (
        project.start_date
        and project.expected_end_date
        and project.expected_end_date < project.start_date
    ):
        raise ValidationFailed("expected_end_date cannot be before start_date")

    await session.commit()
    await session.refresh(project)
    return project


async def change_project_status(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID,
    status: ProjectStatus,
    today: date | None = None,
) -> Project:
    """
    Move a project to a new status (admin only).

    Completing a project stamps ``actual_end_date``.

    Raises:
        NotFoundError: If the project does not exist
        InvalidTransitionError: If the transition is not allowed
    """
    ctx = require_admin(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=project_id)
    if not project:
        raise NotFoundError("Project")

    current = ProjectStatus(project.status)
    if status not in PROJECT_TRANSITIONS[current]:
        raise InvalidTransitionError("Project", current.value, status.value)

    project.status = status.value
    if status == ProjectStatus.COMPLETED:
        project.actual_end_date = today or date.today()

    await notifications_service.notify(
        session,
        user_id=project.client_id,
        title="Project status changed",
        message=f"Project '{project.name}' is now {status.value.replace('_', ' ').lower()}.",
        type=NotificationType.SUCCESS if status == ProjectStatus.COMPLETED else NotificationType.INFO,
        related_project_id=project.id,
    )
    await notifications_service.commit_and_publish(session)
    await session.refresh(project)

    logger.info("Project %s moved %s -> %s", project.id, current.value, status.value)
    return project
