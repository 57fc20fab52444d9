"""Unit tests for the balance aggregation service.

These tests verify the payment counting rule, clamping, percentage rounding
and the milestone rollups.
"""

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from errors import NotFoundError, PermissionDenied
from models.milestone import Milestone, MilestoneStatus
from models.payment import ApprovalStatus, PaymentStatus
from models.project import ProjectStatus
from services import balances_service
from services.balances_service import (
    completion_percentage,
    compute_balance,
    group_milestones,
    is_counted,
)


def _payment(amount, status=PaymentStatus.COMPLETED, approval=ApprovalStatus.APPROVED):
    return SimpleNamespace(amount=Decimal(amount), status=status.value, approval_status=approval.value)


def test_only_completed_and_approved_payments_count():
    assert is_counted(_payment("10"))
    assert not is_counted(_payment("10", status=PaymentStatus.PENDING))
    assert not is_counted(_payment("10", approval=ApprovalStatus.PENDING))
    assert not is_counted(_payment("10", status=PaymentStatus.REFUNDED))
    assert not is_counted(_payment("10", approval=ApprovalStatus.REJECTED))


@pytest.mark.parametrize(
    "total, amounts, expected_paid",
    [
        ("1000.00", ["250.00", "250.00"], "500.00"),
        ("1000.00", [], "0.00"),
        ("1000.00", ["600.00", "600.00"], "1000.00"),
        ("0.00", ["50.00"], "0.00"),
        ("99.99", ["33.33", "33.33", "33.33"], "99.99"),
    ],
)
def test_paid_plus_remaining_equals_total(total, amounts, expected_paid):
    paid, remaining = compute_balance(Decimal(total), [_payment(a) for a in amounts])

    assert paid == Decimal(expected_paid)
    assert paid + remaining == Decimal(total)
    assert Decimal("0") <= paid <= Decimal(total)


def test_pending_payment_does_not_reduce_remaining():
    payments = [
        _payment("400.00"),
        _payment("300.00", approval=ApprovalStatus.PENDING),
        _payment("200.00", status=PaymentStatus.FAILED),
    ]
    paid, remaining = compute_balance(Decimal("1000.00"), payments)

    assert paid == Decimal("400.00")
    assert remaining == Decimal("600.00")


def test_completion_percentage_is_zero_for_zero_total():
    assert completion_percentage(Decimal("0"), Decimal("0")) == 0.0
    assert completion_percentage(Decimal("100"), Decimal("0")) == 0.0


def test_completion_percentage_rounds_to_two_places():
    assert completion_percentage(Decimal("1"), Decimal("3")) == 33.33
    assert completion_percentage(Decimal("2"), Decimal("3")) == 66.67
    assert completion_percentage(Decimal("400"), Decimal("1000")) == 40.0


def test_group_milestones_rolls_up_amounts():
    """Scenario: 600 COMPLETED + 400 PENDING on one project."""
    project = SimpleNamespace(id=uuid4(), name="Website", total_amount=Decimal("5000.00"))
    now = datetime(2026, 1, 1)
    rows = [
        (
            Milestone(
                id=uuid4(),
                project_id=project.id,
                title="Design",
                amount=Decimal("600.00"),
                status=MilestoneStatus.COMPLETED.value,
                created_at=now,
            ),
            project,
        ),
        (
            Milestone(
                id=uuid4(),
                project_id=project.id,
                title="Build",
                amount=Decimal("400.00"),
                status=MilestoneStatus.PENDING.value,
                created_at=now,
            ),
            project,
        ),
    ]

    groups = group_milestones(rows)

    assert len(groups) == 1
    group = groups[0]
    assert group.project_id == project.id
    assert group.total_amount == Decimal("1000.00")
    assert group.completed_amount == Decimal("600.00")
    assert group.completion_percentage == 60.0
    # Milestones need not add up to the contracted total
    assert group.project_total_amount == Decimal("5000.00")
    assert [m.title for m in group.milestones] == ["Design", "Build"]


@pytest.mark.asyncio
async def test_service_project_balance_counts_approved_completed_only(
    db_session: AsyncSession, admin_ctx, client_a, create_project, create_payment
):
    project = await create_project(client_a, total_amount="1000.00")
    await create_payment(project, "250.00")
    await create_payment(project, "100.00", approval_status=ApprovalStatus.PENDING)
    await create_payment(project, "50.00", status=PaymentStatus.PENDING)

    balance = await balances_service.get_project_balance(db_session, ctx=admin_ctx, project_id=project.id)

    assert balance.paid_amount == Decimal("250.00")
    assert balance.remaining_balance == Decimal("750.00")
    assert balance.completion_percentage == 25.0


@pytest.mark.asyncio
async def test_service_project_balance_hidden_from_other_client(
    db_session: AsyncSession, client_a, ctx_b, create_project
):
    project = await create_project(client_a)

    with pytest.raises(NotFoundError):
        await balances_service.get_project_balance(db_session, ctx=ctx_b, project_id=project.id)


@pytest.mark.asyncio
async def test_service_client_summary_is_zero_without_projects(db_session: AsyncSession, ctx_a):
    summary = await balances_service.get_client_summary(db_session, ctx=ctx_a)

    assert summary.total_projects == 0
    assert summary.active_projects == 0
    assert summary.completed_projects == 0
    assert summary.total_amount == Decimal("0")
    assert summary.paid_amount == Decimal("0")
    assert summary.remaining_balance == Decimal("0")
    assert summary.completion_percentage == 0.0


@pytest.mark.asyncio
async def test_service_client_summary_aggregates_own_projects(
    db_session: AsyncSession, ctx_a, client_a, client_b, create_project, create_payment
):
    first = await create_project(client_a, total_amount="1000.00")
    await create_project(client_a, total_amount="500.00", status=ProjectStatus.COMPLETED)
    other = await create_project(client_b, total_amount="9000.00")
    await create_payment(first, "300.00")
    await create_payment(other, "9000.00")

    summary = await balances_service.get_client_summary(db_session, ctx=ctx_a)

    assert summary.total_projects == 2
    assert summary.active_projects == 1
    assert summary.completed_projects == 1
    assert summary.total_amount == Decimal("1500.00")
    assert summary.paid_amount == Decimal("300.00")
    assert summary.remaining_balance == Decimal("1200.00")
    assert summary.completion_percentage == 20.0


@pytest.mark.asyncio
async def test_service_admin_stats_requires_admin(db_session: AsyncSession, ctx_a):
    with pytest.raises(PermissionDenied):
        await balances_service.get_admin_stats(db_session, ctx=ctx_a)


@pytest.mark.asyncio
async def test_service_admin_stats_span_all_projects(
    db_session: AsyncSession, admin_ctx, client_a, client_b, create_project, create_payment
):
    first = await create_project(client_a, total_amount="1000.00")
    second = await create_project(client_b, total_amount="2000.00", status=ProjectStatus.ON_HOLD)
    await create_payment(first, "1000.00")
    await create_payment(second, "500.00")

    stats = await balances_service.get_admin_stats(db_session, ctx=admin_ctx)

    assert stats.total_amount == Decimal("3000.00")
    assert stats.completed_amount == Decimal("1500.00")
    assert stats.pending_amount == Decimal("1500.00")
    assert stats.active_projects == 1


@pytest.mark.asyncio
async def test_service_monthly_revenue_groups_counted_payments(
    db_session: AsyncSession, admin_ctx, client_a, create_project, create_payment
):
    project = await create_project(client_a, total_amount="5000.00")
    await create_payment(project, "100.00", payment_date=datetime(2026, 1, 15))
    await create_payment(project, "200.00", payment_date=datetime(2026, 1, 20))
    await create_payment(project, "300.00", payment_date=datetime(2026, 3, 2))
    await create_payment(
        project,
        "999.00",
        approval_status=ApprovalStatus.PENDING,
        payment_date=datetime(2026, 2, 1),
    )
    await create_payment(project, "50.00", payment_date=datetime(2025, 12, 31))

    revenue = await balances_service.monthly_revenue(db_session, ctx=admin_ctx, year=2026)

    assert [(r.month, r.total) for r in revenue] == [
        ("2026-01", Decimal("300.00")),
        ("2026-03", Decimal("300.00")),
    ]


@pytest.mark.asyncio
async def test_service_recent_payments_respects_limit_and_scope(
    db_session: AsyncSession, ctx_a, client_a, client_b, create_project, create_payment
):
    own = await create_project(client_a)
    other = await create_project(client_b)
    for _ in range(3):
        await create_payment(own, "10.00")
    await create_payment(other, "10.00")

    recent = await balances_service.recent_payments(db_session, ctx=ctx_a, limit=2)

    assert len(recent) == 2
    assert all(p.project_id == own.id for p in recent)
