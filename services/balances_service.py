"""Service layer for derived financial aggregation.

Balances are recomputed from the underlying records on every request and
never stored. The counting rule for payments is deliberately strict:

    counted  <=>  status == COMPLETED  and  approval_status == APPROVED

Pending, rejected, cancelled, failed and refunded payments never contribute
to a paid amount. Milestone rollups are a separate view and are not mixed
with payment totals.
"""

from collections import defaultdict
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, require_admin, require_context
from errors import NotFoundError
from models.balance import AdminStats, ClientSummary, MonthlyRevenue, ProjectBalance
from models.milestone import Milestone, MilestoneGroup, MilestoneResponse, MilestoneStatus
from models.payment import ApprovalStatus, Payment, PaymentStatus
from models.project import Project, ProjectStatus
from repos import milestones_repo, payments_repo, projects_repo

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENTS, rounding=ROUND_HALF_UP)


def is_counted(payment: Payment) -> bool:
    """Whether a payment counts toward a project's paid amount."""
    return (
        payment.status == PaymentStatus.COMPLETED.value
        and payment.approval_status == ApprovalStatus.APPROVED.value
    )


def completion_percentage(paid: Decimal, total: Decimal) -> float:
    """
    Percentage of ``total`` covered by ``paid``, rounded to 2 places.

    Returns 0.0 when total is zero (never NaN or infinity).
    """
    total = _money(total)
    if total <= 0:
        return 0.0
    pct = (_money(paid) / total * 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    return float(pct)


def compute_balance(total_amount: Decimal, payments: Iterable[Payment]) -> tuple[Decimal, Decimal]:
    """
    Split a contracted total into (paid, remaining).

    The paid amount is clamped to [0, total] so that
    paid + remaining == total holds even when payments exceed the total.
    """
    total = max(_money(total_amount), ZERO)
    paid = sum((_money(p.amount) for p in payments if is_counted(p)), ZERO)
    paid = min(max(paid, ZERO), total)
    return paid, total - paid


def build_project_balance(project: Project, payments: Iterable[Payment]) -> ProjectBalance:
    paid, remaining = compute_balance(project.total_amount, payments)
    total = paid + remaining
    return ProjectBalance(
        project_id=project.id,
        project_name=project.name,
        client_id=project.client_id,
        total_amount=total,
        paid_amount=paid,
        remaining_balance=remaining,
        completion_percentage=completion_percentage(paid, total),
    )


def group_milestones(rows: Iterable[tuple[Milestone, Project]]) -> list[MilestoneGroup]:
    """
    Group milestones by project with amount rollups.

    ``total_amount`` is the sum of milestone amounts in the group and
    ``completed_amount`` the sum of COMPLETED ones. Neither is required to
    match the project's contracted total.
    """
    groups: dict[UUID, dict] = {}
    for milestone, project in rows:
        group = groups.get(project.id)
        if group is None:
            group = groups[project.id] = {
                "project": project,
                "milestones": [],
                "total": ZERO,
                "completed": ZERO,
            }
        group["milestones"].append(milestone)
        group["total"] += _money(milestone.amount)
        if milestone.status == MilestoneStatus.COMPLETED.value:
            group["completed"] += _money(milestone.amount)

    return [
        MilestoneGroup(
            project_id=project_id,
            project_name=group["project"].name,
            project_total_amount=_money(group["project"].total_amount),
            milestones=[MilestoneResponse.model_validate(m) for m in group["milestones"]],
            total_amount=group["total"],
            completed_amount=group["completed"],
            completion_percentage=completion_percentage(group["completed"], group["total"]),
        )
        for project_id, group in groups.items()
    ]


async def _balances_for(session: AsyncSession, projects: list[Project]) -> list[ProjectBalance]:
    payments = await payments_repo.list_for_projects(
        session,
        project_ids=[project.id for project in projects],
    )
    by_project: dict[UUID, list[Payment]] = defaultdict(list)
    for payment in payments:
        by_project[payment.project_id].append(payment)
    return [build_project_balance(project, by_project[project.id]) for project in projects]


async def get_project_balance(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID,
) -> ProjectBalance:
    """
    Compute the balance of one visible project.

    Raises:
        NotFoundError: If the project does not exist or is not visible
    """
    ctx = require_context(ctx)
    project = await projects_repo.get_by_id(session, ctx=ctx, project_id=project_id)
    if not project:
        raise NotFoundError("Project")
    balances = await _balances_for(session, [project])
    return balances[0]


async def list_project_balances(
    session: AsyncSession,
    *,
    ctx: AccessContext,
) -> list[ProjectBalance]:
    """Balances of every project visible to the caller."""
    ctx = require_context(ctx)
    projects = await projects_repo.list(session, ctx=ctx)
    return await _balances_for(session, projects)


async def get_client_summary(
    session: AsyncSession,
    *,
    ctx: AccessContext,
) -> ClientSummary:
    """
    Project counts and payment totals across the caller's projects.

    A client with no projects gets an all-zero summary.
    """
    ctx = require_context(ctx)
    projects = await projects_repo.list(session, ctx=ctx, client_id=ctx.user_id)
    balances = await _balances_for(session, projects)

    total = sum((b.total_amount for b in balances), ZERO)
    paid = sum((b.paid_amount for b in balances), ZERO)
    return ClientSummary(
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.status == ProjectStatus.ACTIVE.value),
        completed_projects=sum(1 for p in projects if p.status == ProjectStatus.COMPLETED.value),
        total_amount=total,
        paid_amount=paid,
        remaining_balance=total - paid,
        completion_percentage=completion_percentage(paid, total),
    )


async def get_admin_stats(
    session: AsyncSession,
    *,
    ctx: AccessContext,
) -> AdminStats:
    """Totals across every project (admin only)."""
    ctx = require_admin(ctx)
    projects = await projects_repo.list(session, ctx=ctx)
    balances = await _balances_for(session, projects)
    return AdminStats(
        total_amount=sum((b.total_amount for b in balances), ZERO),
        pending_amount=sum((b.remaining_balance for b in balances), ZERO),
        completed_amount=sum((b.paid_amount for b in balances), ZERO),
        active_projects=sum(1 for p in projects if p.status == ProjectStatus.ACTIVE.value),
    )


async def grouped_milestones(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    project_id: UUID | None = None,
) -> list[MilestoneGroup]:
    ctx = require_context(ctx)
    rows = await milestones_repo.list_with_projects(session, ctx=ctx, project_id=project_id)
    return group_milestones(rows)


async def monthly_revenue(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    year: int | None = None,
) -> list[MonthlyRevenue]:
    """Counted payments summed per calendar month (YYYY-MM), ascending."""
    ctx = require_context(ctx)
    payments = await payments_repo.list(session, ctx=ctx)

    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for payment in payments:
        if not is_counted(payment):
            continue
        if year is not None and payment.payment_date.year != year:
            continue
        totals[payment.payment_date.strftime("%Y-%m")] += _money(payment.amount)

    return [MonthlyRevenue(month=month, total=totals[month]) for month in sorted(totals)]


async def recent_payments(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    limit: int = 5,
) -> list[Payment]:
    ctx = require_context(ctx)
    return await payments_repo.list(session, ctx=ctx, limit=limit)
