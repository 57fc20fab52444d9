"""Service layer for sign-in, sign-up and session resolution."""

import logging
from uuid import UUID

from jose import JWTError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.access import AccessContext
from auth.jwt import create_access_token, decode_token
from auth.passwords import hash_password, verify_password
from auth.schemas import SessionResponse, SignInResponse, SignUpRequest
from errors import AuthError, NotAuthenticated
from models.profile import Profile, Role
from repos import profiles_repo

logger = logging.getLogger(__name__)


async def sign_in(session: AsyncSession, *, email: str, password: str) -> SignInResponse:
    """
    Authenticate with email and password.

    Raises:
        AuthError: If the credentials are wrong or the account is inactive
    """
    profile = await profiles_repo.get_by_email(session, email)
    if not profile or not verify_password(password, profile.password_hash):
        logger.info("Failed sign-in for %s", email.lower())
        raise AuthError("Invalid email or password")
    if not profile.is_active:
        raise AuthError("Account is inactive")

    token = create_access_token(profile.id, profile.role)
    logger.info("Profile %s signed in as %s", profile.id, profile.role)
    return SignInResponse(access_token=token, user_id=profile.id, role=profile.role)


async def register_profile(
    session: AsyncSession,
    *,
    email: str,
    password: str,
    full_name: str | None,
    role: Role,
) -> Profile:
    """
    Create and commit a login account.

    Raises:
        AuthError: If the email is already registered
    """
    if await profiles_repo.get_by_email(session, email):
        raise AuthError("Email is already registered")

    profile = Profile(
        email=email.lower(),
        password_hash=hash_password(password),
        full_name=full_name,
        role=role.value,
        is_active=True,
    )
    try:
        profile = await profiles_repo.create(session, profile)
        await session.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent sign-up for the same email
        await session.rollback()
        raise AuthError("Email is already registered") from e

    await session.refresh(profile)
    return profile


async def sign_up(session: AsyncSession, *, payload: SignUpRequest) -> Profile:
    """Public self-service sign-up. Always creates a client."""
    profile = await register_profile(
        session,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=Role.CLIENT,
    )
    logger.info("Client %s signed up", profile.id)
    return profile


async def resolve_context(session: AsyncSession, token: str | None) -> tuple[AccessContext, Profile]:
    """
    Resolve a bearer token to an access context and its profile.

    The role claim must still match the stored role; after a role change
    the holder has to sign in again.

    Raises:
        NotAuthenticated: If no token was sent
        AuthError: If the token is invalid or expired, the profile is gone or
            inactive, or the role claim is stale
    """
    if not token:
        raise NotAuthenticated("Missing bearer token")

    try:
        payload = decode_token(token)
        user_id = UUID(payload.sub)
    except (JWTError, ValueError) as e:
        raise AuthError(f"Invalid token: {e}") from e

    profile = await profiles_repo.get_by_id(session, user_id)
    if not profile or not profile.is_active:
        raise AuthError("Profile not found or inactive")
    if profile.role != payload.role:
        raise AuthError("Role has changed, please sign in again")

    return AccessContext.from_profile(profile), profile


async def get_session(session: AsyncSession, token: str | None) -> SessionResponse:
    """Describe the session a token belongs to."""
    _, profile = await resolve_context(session, token)
    return SessionResponse(user_id=profile.id, email=profile.email, role=profile.role)
