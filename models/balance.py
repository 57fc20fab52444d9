"""Derived financial views. Computed per request, never stored."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class ProjectBalance(BaseModel):
    """Paid/remaining split of one project's contracted total.

    Invariant: paid_amount + remaining_balance == total_amount.
    """

    project_id: UUID
    project_name: str
    client_id: UUID
    total_amount: Decimal
    paid_amount: Decimal
    remaining_balance: Decimal
    completion_percentage: float


class ClientSummary(BaseModel):
    """Dashboard summary for a client."""

    total_projects: int
    active_projects: int
    completed_projects: int
    total_amount: Decimal
    paid_amount: Decimal
    remaining_balance: Decimal
    completion_percentage: float


class AdminStats(BaseModel):
    """Dashboard summary across every project."""

    total_amount: Decimal
    pending_amount: Decimal
    completed_amount: Decimal
    active_projects: int


class MonthlyRevenue(BaseModel):
    """Counted payments summed for one calendar month."""

    month: str
    total: Decimal
