"""Repository for Document database operations."""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext, scope_documents
from models.document import Document, DocumentCategory
from models.project import Project


async def get_by_id(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    document_id: UUID,
) -> tuple[Document, str | None] | None:
    """
    Get a document and its project name within the caller's scope.

    Returns:
        (document, project_name) if visible, None otherwise
    """
    query = (
        select(Document, Project.name)
        .outerjoin(Project, Document.project_id == Project.id)
        .where(Document.id == document_id)
    )
    query = scope_documents(query, ctx)
    result = await session.execute(query)
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def list(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    category: DocumentCategory | None = None,
    project_id: UUID | None = None,
    search: str | None = None,
) -> list[tuple[Document, str | None]]:
    """
    List visible documents with their project name, newest first.

    Args:
        session: Database session
        ctx: Access context used for role scoping
        category: Optional category filter
        project_id: Optional project filter
        search: Optional case-insensitive substring of the file name

    Returns:
        List of (document, project_name) rows
    """
    query = (
        select(Document, Project.name)
        .outerjoin(Project, Document.project_id == Project.id)
    )
    query = scope_documents(query, ctx)

    if category is not None:
        query = query.where(Document.category == category.value)
    if project_id is not None:
        query = query.where(Document.project_id == project_id)
    if search:
        query = query.where(Document.name.ilike(f"%{search}%"))

    result = await session.execute(query.order_by(Document.created_at.desc()))
    return [(document, project_name) for document, project_name in result.all()]


async def create(session: AsyncSession, document: Document) -> Document:
    """Create document metadata."""
    session.add(document)
    await session.flush()
    await session.refresh(document)
    return document


async def delete_by_id(session: AsyncSession, document_id: UUID) -> int:
    """Hard-delete a document row. Returns the number of rows removed."""
    result = await session.execute(delete(Document).where(Document.id == document_id))
    return result.rowcount
