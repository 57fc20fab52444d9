"""Document registry endpoints - upload, list and delete stored files."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_blob_store, get_db
from errors import DashboardError
from models.document import DocumentCategory, DocumentResponse
from services import documents_service
from services.storage import BlobStore

router = APIRouter()


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document_endpoint(
    file: UploadFile = File(...),
    category: DocumentCategory = Form(DocumentCategory.OTHER),
    project_id: UUID | None = Form(None),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """
    Upload a file (multipart/form-data) and register it.

    Args:
        file: File to upload
        category: Document category
        project_id: Optional project the document belongs to

    Raises:
        404 if the project is not visible to the caller
        502 if the blob store rejects the upload
    """
    data = await file.read()
    try:
        return await documents_service.upload_document(
            db,
            ctx=ctx,
            store=store,
            filename=file.filename or "unnamed",
            content_type=file.content_type,
            data=data,
            category=category,
            project_id=project_id,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload document: {str(e)}",
        )


@router.get("/documents", response_model=List[DocumentResponse])
async def list_documents_endpoint(
    category: DocumentCategory | None = Query(None),
    project_id: UUID | None = Query(None),
    search: str | None = Query(None, max_length=255),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List visible documents with their project name, newest first."""
    try:
        return await documents_service.list_documents(
            db,
            ctx=ctx,
            category=category,
            project_id=project_id,
            search=search,
        )
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch documents: {str(e)}",
        )


@router.get("/documents/{document_id}", response_model=DocumentResponse)
async def get_document_endpoint(
    document_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a specific document by ID.

    Raises:
        404 if document not found or user doesn't have access.
    """
    return await documents_service.get_document(db, ctx=ctx, document_id=document_id)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document_endpoint(
    document_id: UUID,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """
    Delete a document's file and metadata.

    Raises:
        403 if a client tries to delete a document they did not upload
        502/503 if the file could not be removed (metadata is kept)
    """
    try:
        await documents_service.delete_document(db, ctx=ctx, store=store, document_id=document_id)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete document: {str(e)}",
        )
