"""Service layer for Milestone business logic."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, require_admin, require_context
from errors import NotFoundError
from models.milestone import Milestone, MilestoneCreate, MilestoneStatus
from models.notification import NotificationType
from repos import milestones_repo, projects_repo
from services import notifications_service

logger = logging.getLogger(__name__)


async def list_milestones(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
) -> list[Milestone]:
    """List visible milestones, soonest due first."""
    ctx = require_context(ctx)
    rows = await milestones_repo.list_with_projects(session, ctx=ctx, project_id=project_id)
    return [milestone for milestone, _ in rows]


async def create_milestone(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: MilestoneCreate,
) -> Milestone:
    """
    Create a milestone on a project (admin only).

    Milestone amounts are not checked against the project total.

    Raises:
        NotFoundError: If the project does not exist
    """
    ctx = require_admin(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=payload.project_id)
    if not project:
        raise NotFoundError("Project")

    milestone = Milestone(
        project_id=project.id,
        title=payload.title,
        description=payload.description,
        amount=payload.amount,
        due_date=payload.due_date,
        status=MilestoneStatus.PENDING.value,
    )
    milestone = await milestones_repo.create(session, milestone)
    await session.commit()
    await session.refresh(milestone)
    return milestone


async def update_milestone_status(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    milestone_id: UUID,
    status: MilestoneStatus,
) -> Milestone:
    """
    Set a milestone's status (admin only). Any status may follow any other.

    The project's client is notified when a milestone completes.

    Raises:
        NotFoundError: If the milestone does not exist
    """
    ctx = require_admin(ctx)
    milestone = await milestones_repo.get_by_id(session, ctx=ctx, milestone_id=milestone_id)
    if not milestone:
        raise NotFoundError("Milestone")

    previous = milestone.status
    milestone.status = status.value

    if status == MilestoneStatus.COMPLETED and previous != MilestoneStatus.COMPLETED.value:
        project = await projects_repo.get_by_id(session, ctx=ctx, project_id=milestone.project_id)
        await notifications_service.notify(
            session,
            user_id=project.client_id,
            title="Milestone completed",
            message=f"Milestone '{milestone.title}' of '{project.name}' is complete.",
            type=NotificationType.SUCCESS,
            related_project_id=project.id,
            related_milestone_id=milestone.id,
        )

    await notifications_service.commit_and_publish(session)
    await session.refresh(milestone)
    logger.info("Milestone %s moved %s -> %s", milestone.id, previous, status.value)
    return milestone
