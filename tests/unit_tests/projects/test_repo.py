"""Unit tests for projects repository layer.

These tests verify database operations and role scoping in isolation.
"""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models.project import Project, ProjectStatus
from repos import projects_repo


@pytest.mark.asyncio
async def test_repo_create_project(db_session: AsyncSession, admin, client_a):
    """Test: Repository can create a project."""
    project = Project(
        client_id=client_a.id,
        created_by=admin.id,
        name="Test Project",
        status=ProjectStatus.ACTIVE.value,
        total_amount=Decimal("1200.00"),
    )

    created = await projects_repo.create(db_session, project)
    await db_session.commit()

    assert created.id is not None
    assert created.name == "Test Project"
    assert created.total_amount == Decimal("1200.00")
    assert created.created_at is not None


@pytest.mark.asyncio
async def test_repo_get_by_id_respects_scope(
    db_session: AsyncSession, admin_ctx, ctx_a, ctx_b, client_a, create_project
):
    """Test: A client cannot load another client's project."""
    project = await create_project(client_a)

    assert (await projects_repo.get_by_id(db_session, ctx=admin_ctx, project_id=project.id)) is not None
    assert (await projects_repo.get_by_id(db_session, ctx=ctx_a, project_id=project.id)) is not None
    assert (await projects_repo.get_by_id(db_session, ctx=ctx_b, project_id=project.id)) is None


@pytest.mark.asyncio
async def test_repo_list_filters_by_status(
    db_session: AsyncSession, admin_ctx, client_a, create_project
):
    active = await create_project(client_a, name="Active")
    await create_project(client_a, name="Done", status=ProjectStatus.COMPLETED)

    projects = await projects_repo.list(db_session, ctx=admin_ctx, status=ProjectStatus.ACTIVE)

    assert [p.id for p in projects] == [active.id]


@pytest.mark.asyncio
async def test_repo_client_filter_never_widens_scope(
    db_session: AsyncSession, ctx_a, client_a, client_b, create_project
):
    """Test: Filtering on another client's ID returns nothing for a client."""
    await create_project(client_a)
    await create_project(client_b)

    projects = await projects_repo.list(db_session, ctx=ctx_a, client_id=client_b.id)

    assert projects == []
