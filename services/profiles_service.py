"""Service layer for profile and client-account management."""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.access import AccessContext, require_admin, require_context
from auth.passwords import hash_password, verify_password
from errors import AuthError, DashboardError, NotFoundError, UploadError, ValidationFailed
from models.profile import ClientCreate, ClientCreateResult, Profile, ProfileResponse, ProfileUpdate, Role
from repos import profiles_repo
from services.auth_service import register_profile
from services.storage import BlobStore, generate_storage_key, upload_with_retry

logger = logging.getLogger(__name__)


async def get_profile(session: AsyncSession, *, ctx: AccessContext) -> Profile:
    ctx = require_context(ctx)
    profile = await profiles_repo.get_by_id(session, ctx.user_id)
    if not profile:
        raise NotFoundError("Profile")
    return profile


async def list_clients(session: AsyncSession, *, ctx: AccessContext) -> list[Profile]:
    """All active client profiles ordered by name (admin only)."""
    require_admin(ctx)
    return await profiles_repo.list_by_role(session, role=Role.CLIENT)


async def _apply_profile_details(session: AsyncSession, profile: Profile, phone: str | None) -> None:
    profile.phone = phone
    await session.commit()


async def create_client(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: ClientCreate,
) -> ClientCreateResult:
    """
    Create a client account on behalf of a client (admin only).

    Runs as two separately committed steps: create the login account, then
    write the remaining profile details. When only the second step fails the
    account exists and the result says so, so the admin can retry the edit
    instead of re-creating the client.

    Raises:
        PermissionDenied: If the caller is not an admin
        AuthError: If the account could not be created (e.g. duplicate email)
    """
    require_admin(ctx)
    profile = await register_profile(
        session,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=Role.CLIENT,
    )
    profile_id = profile.id
    logger.info("Client account %s created by %s", profile_id, ctx.user_id)

    if payload.phone is None:
        return ClientCreateResult(
            account_created=True,
            profile_updated=True,
            profile=ProfileResponse.model_validate(profile),
        )

    try:
        await _apply_profile_details(session, profile, payload.phone)
    except SQLAlchemyError as e:
        await session.rollback()
        logger.warning("Client %s created but profile update failed: %s", profile_id, e)
        await session.refresh(profile)
        return ClientCreateResult(
            account_created=True,
            profile_updated=False,
            profile=ProfileResponse.model_validate(profile),
            error=f"Account created, but saving profile details failed: {e}",
        )

    await session.refresh(profile)
    return ClientCreateResult(
        account_created=True,
        profile_updated=True,
        profile=ProfileResponse.model_validate(profile),
    )


async def update_profile(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    payload: ProfileUpdate,
) -> Profile:
    """Update the caller's own profile. Only provided fields change."""
    profile = await get_profile(session, ctx=ctx)
    for field in ("full_name", "phone", "avatar_url"):
        value = getattr(payload, field)
        if value is not None:
            setattr(profile, field, value)
    await session.commit()
    await session.refresh(profile)
    return profile


async def change_password(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    current_password: str,
    new_password: str,
) -> None:
    """
    Change the caller's password.

    Raises:
        AuthError: If the current password is wrong
    """
    profile = await get_profile(session, ctx=ctx)
    if not verify_password(current_password, profile.password_hash):
        raise AuthError("Current password is incorrect")
    profile.password_hash = hash_password(new_password)
    await session.commit()
    logger.info("Password changed for %s", profile.id)


async def set_role(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    profile_id: UUID,
    role: Role,
) -> Profile:
    """
    Change a profile's role (admin only).

    Tokens issued before the change stop resolving, so the affected user
    has to sign in again.

    Raises:
        NotFoundError: If the profile does not exist
        ValidationFailed: If an admin tries to demote themselves
    """
    ctx = require_admin(ctx)
    profile = await profiles_repo.get_by_id(session, profile_id)
    if not profile:
        raise NotFoundError("Profile")
    if profile.id == ctx.user_id and role != Role.ADMIN:
        raise ValidationFailed("Administrators cannot demote themselves")

    previous = profile.role
    profile.role = role.value
    await session.commit()
    await session.refresh(profile)
    logger.info("Profile %s role %s -> %s by %s", profile.id, previous, role.value, ctx.user_id)
    return profile


async def upload_avatar(
    session: AsyncSession,
    *,
    ctx: AccessContext,
    store: BlobStore,
    filename: str,
    content_type: str | None,
    data: bytes,
) -> Profile:
    """
    Store a new avatar image and point the caller's profile at it.

    Raises:
        ValidationFailed: If the file is not an image or is too large
        StorageError / TransientError: If the upload fails
        UploadError: If the profile could not be updated
    """
    profile = await get_profile(session, ctx=ctx)
    if not content_type or not content_type.startswith("image/"):
        raise ValidationFailed("Avatar must be an image")
    if not data:
        raise ValidationFailed("Uploaded file is empty")
    if len(data) > config.settings.AVATAR_MAX_BYTES:
        raise ValidationFailed(
            f"Avatar exceeds {config.settings.AVATAR_MAX_BYTES // (1024 * 1024)} MB limit"
        )

    bucket = config.settings.AVATARS_BUCKET
    storage_path = await upload_with_retry(
        store, bucket, lambda: generate_storage_key(profile.id, filename), data
    )

    try:
        profile.avatar_url = store.get_public_url(bucket, storage_path)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        try:
            await store.remove(bucket, [storage_path])
        except DashboardError:
            logger.error("Orphaned avatar blob %s/%s", bucket, storage_path)
            raise UploadError("Failed to save avatar", orphaned_path=storage_path) from e
        raise UploadError("Failed to save avatar") from e

    await session.refresh(profile)
    logger.info("Avatar updated for %s", profile.id)
    return profile
