"""FastAPI dependencies for authentication, database and shared services."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from db import get_db as get_db_session
from models.profile import Profile
from services import auth_service
from services.realtime import get_event_bus  # noqa: F401  re-exported for routes
from services.storage import get_blob_store  # noqa: F401  re-exported for routes

# HTTP Bearer token security scheme; a missing header is reported as AuthError
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:
    """
    Dependency to get database session.
    Reuses the get_db function from db.py.
    """
    async for session in get_db_session():
        yield session


async def get_current_profile(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """
    Dependency to get the authenticated profile from the bearer token.

    Raises:
        AuthError: If the token is missing, invalid or expired, or its role
            claim no longer matches the stored role
    """
    token = credentials.credentials if credentials else None
    _, profile = await auth_service.resolve_context(db, token)
    return profile


async def get_access_context(
    profile: Profile = Depends(get_current_profile),
) -> AccessContext:
    """Dependency resolving the caller to an AccessContext."""
    return AccessContext.from_profile(profile)
