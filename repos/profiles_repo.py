"""Repository for Profile database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.profile import Profile, Role


async def get_by_id(session: AsyncSession, profile_id: UUID) -> Profile | None:
    """
    Get a profile by ID.

    Args:
        session: Database session
        profile_id: Profile ID to fetch

    Returns:
        Profile if found, None otherwise
    """
    result = await session.execute(select(Profile).where(Profile.id == profile_id))
    return result.scalar_one_or_none()


async def get_by_email(session: AsyncSession, email: str) -> Profile | None:
    """Get a profile by (case-insensitive) email."""
    result = await session.execute(
        select(Profile).where(Profile.email == email.lower())
    )
    return result.scalar_one_or_none()


async def list_by_role(session: AsyncSession, *, role: Role) -> list[Profile]:
    """List active profiles with the given role, ordered by name."""
    query = (
        select(Profile)
        .where(Profile.role == role.value, Profile.is_active.is_(True))
        .order_by(Profile.full_name.asc(), Profile.email.asc())
    )
    result = await session.execute(query)
    return list(result.scalars().all())


async def create(session: AsyncSession, profile: Profile) -> Profile:
    """
    Create a new profile.

    Args:
        session: Database session
        profile: Profile instance to create

    Returns:
        Created profile
    """
    session.add(profile)
    await session.flush()
    await session.refresh(profile)
    return profile
