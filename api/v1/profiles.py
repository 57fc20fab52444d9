"""Profile endpoints: the caller's own profile and admin client management."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from api.deps import get_access_context, get_blob_store, get_db
from auth.schemas import PasswordChange
from errors import DashboardError
from models.profile import ClientCreate, ClientCreateResult, ProfileResponse, ProfileUpdate, RoleUpdate
from services import profiles_service
from services.storage import BlobStore

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
async def get_me(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Get the caller's profile."""
    return await profiles_service.get_profile(db, ctx=ctx)


@router.patch("/me", response_model=ProfileResponse)
async def update_me(
    payload: ProfileUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Update the caller's profile.

    Only provided fields will be updated.
    """
    try:
        return await profiles_service.update_profile(db, ctx=ctx, payload=payload)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update profile: {str(e)}",
        )


@router.post("/me/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password_endpoint(
    payload: PasswordChange,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Change the caller's password.

    Raises:
        401 if the current password is wrong.
    """
    try:
        await profiles_service.change_password(
            db,
            ctx=ctx,
            current_password=payload.current_password,
            new_password=payload.new_password,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to change password: {str(e)}",
        )


@router.post("/me/avatar", response_model=ProfileResponse)
async def upload_avatar_endpoint(
    file: UploadFile = File(...),
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    """
    Upload a new avatar image (image/*, at most 5 MB).

    Raises:
        422 if the file is not an image or too large.
    """
    data = await file.read()
    try:
        return await profiles_service.upload_avatar(
            db,
            ctx=ctx,
            store=store,
            filename=file.filename or "avatar",
            content_type=file.content_type,
            data=data,
        )
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to upload avatar: {str(e)}",
        )


@router.get("/clients", response_model=List[ProfileResponse])
async def list_clients_endpoint(
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """List client profiles (admin only)."""
    return await profiles_service.list_clients(db, ctx=ctx)


@router.post("/clients", response_model=ClientCreateResult, status_code=status.HTTP_201_CREATED)
async def create_client_endpoint(
    payload: ClientCreate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a client account (admin only).

    A partially successful creation (account created, details not saved)
    is still a 201 with ``profile_updated`` set to false.
    """
    try:
        return await profiles_service.create_client(db, ctx=ctx, payload=payload)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create client: {str(e)}",
        )


@router.put("/profiles/{profile_id}/role", response_model=ProfileResponse)
async def set_role_endpoint(
    profile_id: UUID,
    payload: RoleUpdate,
    ctx: AccessContext = Depends(get_access_context),
    db: AsyncSession = Depends(get_db),
):
    """Change a profile's role (admin only)."""
    try:
        return await profiles_service.set_role(db, ctx=ctx, profile_id=profile_id, role=payload.role)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to change role: {str(e)}",
        )
