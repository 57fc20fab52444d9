"""Service layer for the document registry.

Blob and metadata row are kept consistent with compensating actions:

* upload: blob first, then row; if the row insert fails the blob is removed.
  If that removal also fails the orphaned path is logged and reported on
  the raised UploadError.
* delete: blob first, then row; a failed blob removal leaves the row in
  place so the document stays listable.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.access import AccessContext, require_context
from errors import DashboardError, NotFoundError, PermissionDenied, UploadError, ValidationFailed
from models.document import Document, DocumentCategory, DocumentResponse
from models.notification import NotificationType
from repos import documents_repo, projects_repo
from services import notifications_service
from services.storage import BlobStore, generate_storage_key, upload_with_retry, with_retry

logger = logging.getLogger(__name__)


def _to_response(document: Document, project_name: str | None) -> DocumentResponse:
    response = DocumentResponse.model_validate(document)
    response.project_name = project_name
    return response


async def list_documents(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    category: DocumentCategory | None = None,
    project_id: UUID | None = None,
    search: str | None = None,
) -> list[DocumentResponse]:
    """
    List documents visible to the caller, newest first.

    Clients see their own uploads plus documents attached to their projects.
    """
    ctx = require_context(ctx)
    rows = await documents_repo.list(
        session,
        ctx=ctx,
        category=category,
        project_id=project_id,
        search=search,
    )
    return [_to_response(document, project_name) for document, project_name in rows]


async def get_document(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    document_id: UUID,
) -> DocumentResponse:
    ctx = require_context(ctx)
    row = await documents_repo.get_by_id(session, ctx=ctx, document_id=document_id)
    if row is None:
        raise NotFoundError("Document")
    return _to_response(*row)


async def upload_document(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    store: BlobStore,
    filename: str,
    content_type: str | None,
    data: bytes,
    category: DocumentCategory = DocumentCategory.OTHER,
    project_id: UUID | None = None,
) -> DocumentResponse:
    """
    Store a file and register its metadata.

    Args:
        session: Database session
        ctx: Access context of the uploader
        store: Blob store
        filename: Original file name (kept as display name only)
        content_type: MIME type reported by the client
        data: File content
        category: Document category
        project_id: Optional project the document belongs to; must be visible

    Returns:
        The registered document

    Raises:
        NotFoundError: If project_id is not visible to the caller
        ValidationFailed: If the file is empty
        StorageError / TransientError: If the blob upload fails
        UploadError: If the metadata insert fails (orphaned_path set when the
            blob could not be cleaned up)
    """
    ctx = require_context(ctx)
    if not data:
        raise ValidationFailed("Uploaded file is empty")

    project = None
    if project_id is not None:
        project = await projects_repo.get_by_id(session, ctx=ctx, project_id=project_id)
        if not project:
            raise NotFoundError("Project")

    bucket = config.settings.DOCUMENTS_BUCKET
    storage_path = await upload_with_retry(
        store, bucket, lambda: generate_storage_key(ctx.user_id, filename), data
    )

    try:
        document = await documents_repo.create(
            session,
            Document(
                user_id=ctx.user_id,
                project_id=project_id,
                name=filename,
                type=content_type or "application/octet-stream",
                size=len(data),
                storage_path=storage_path,
                url=store.get_public_url(bucket, storage_path),
                category=category.value,
            ),
        )
        if project is not None and project.client_id != ctx.user_id:
            await notifications_service.notify(
                session,
                user_id=project.client_id,
                title="New document",
                message=f"'{filename}' was added to project '{project.name}'.",
                type=NotificationType.INFO,
                related_project_id=project.id,
            )
        await notifications_service.commit_and_publish(session)
    except SQLAlchemyError as e:
        await session.rollback()
        notifications_service.discard_pending(session)
        try:
            await store.remove(bucket, [storage_path])
        except DashboardError:
            logger.error(
                "Orphaned blob %s/%s after failed metadata insert",
                bucket,
                storage_path,
            )
            raise UploadError(
                "Failed to register uploaded document",
                orphaned_path=storage_path,
            ) from e
        raise UploadError("Failed to register uploaded document") from e

    await session.refresh(document)
    logger.info("Document %s uploaded by %s (%d bytes)", document.id, ctx.user_id, document.size)
    return _to_response(document, project.name if project else None)


async def delete_document(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    store: BlobStore,
    document_id: UUID,
) -> None:
    """
    Delete a document's blob and then its metadata row.

    Admins may delete any document; clients only documents they uploaded.

    Raises:
        NotFoundError: If the document is not visible to the caller
        PermissionDenied: If a client tries to delete someone else's upload
        StorageError / TransientError: If blob removal fails; the row is kept
    """
    ctx = require_context(ctx)
    row = await documents_repo.get_by_id(session, ctx=ctx, document_id=document_id)
    if row is None:
        raise NotFoundError("Document")
    document, _ = row

    if not ctx.is_admin and document.user_id != ctx.user_id:
        raise PermissionDenied("Only the uploader or an administrator can delete this document")

    bucket = config.settings.DOCUMENTS_BUCKET
    storage_path = document.storage_path
    try:
        await with_retry(lambda: store.remove(bucket, [storage_path]))
    except DashboardError:
        logger.warning("Blob removal failed for document %s; keeping metadata", document_id)
        raise

    await documents_repo.delete_by_id(session, document_id)
    await session.commit()
    logger.info("Document %s deleted by %s", document_id, ctx.user_id)
