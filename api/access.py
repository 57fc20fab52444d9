"""Access context and role-scoping helpers.

Every data-access function receives an explicit AccessContext and builds
its queries through the helpers below, so the admin/client visibility rules
live in exactly one place:

* admin  - unrestricted read of every project-scoped record
* client - only records whose project belongs to them (project.client_id),
           plus documents they uploaded themselves (document.user_id)
"""

from uuid import UUID

from sqlalchemy import Select, or_, select

from errors import NotAuthenticated, PermissionDenied
from models.document import Document
from models.profile import Profile, Role
from models.project import Project


class AccessContext:
    """Resolved principal for role-scoped operations."""

    def __init__(self, user_id: UUID, role: Role | str):
        """
        Initialize access context.

        Args:
            user_id: Profile.id of the caller
            role: Caller's role (admin or client)
        """
        self.user_id = user_id
        self.role = Role(role)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_profile(cls, profile: Profile) -> "AccessContext":
        return cls(user_id=profile.id, role=profile.role)

    def __repr__(self) -> str:
        return f"AccessContext(user_id={self.user_id}, role={self.role.value})"


def require_context(ctx: AccessContext | None) -> AccessContext:
    """
    Fail closed when no principal has been resolved.

    Raises:
        NotAuthenticated: If ctx is missing or carries no usable role
    """
    if ctx is None or not isinstance(ctx, AccessContext) or ctx.user_id is None:
        raise NotAuthenticated("No resolved principal for this operation")
    return ctx


def require_admin(ctx: AccessContext | None) -> AccessContext:
    """
    Gate admin-only actions.

    Raises:
        NotAuthenticated: If ctx is missing
        PermissionDenied: If the caller is not an admin
    """
    ctx = require_context(ctx)
    if not ctx.is_admin:
        raise PermissionDenied("Only administrators can perform this action")
    return ctx


def scope_projects(query: Select, ctx: AccessContext) -> Select:
    """
    Restrict a query over Project to the caller's visible projects.

    Example:
        query = scope_projects(select(Project), ctx)
    """
    ctx = require_context(ctx)
    if ctx.is_admin:
        return query
    return query.where(Project.client_id == ctx.user_id)


def scope_by_project(query: Select, ctx: AccessContext, project_id_column) -> Select:
    """
    Restrict a query over a project child table (payments, invoices,
    milestones) via its project_id column.

    Args:
        query: Select over the child table
        ctx: Access context
        project_id_column: The child's project_id column, e.g. Payment.project_id
    """
    ctx = require_context(ctx)
    if ctx.is_admin:
        return query
    owned = select(Project.id).where(Project.client_id == ctx.user_id)
    return query.where(project_id_column.in_(owned))


def scope_documents(query: Select, ctx: AccessContext) -> Select:
    """
    Restrict a query over Document to uploads by the caller or documents
    attached to one of the caller's projects.
    """
    ctx = require_context(ctx)
    if ctx.is_admin:
        return query
    owned = select(Project.id).where(Project.client_id == ctx.user_id)
    return query.where(
        or_(
            Document.user_id == ctx.user_id,
            Document.project_id.in_(owned),
        )
    )
