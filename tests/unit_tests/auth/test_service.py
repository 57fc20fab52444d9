"""Unit tests for sign-in, sign-up and token resolution."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import create_access_token
from auth.schemas import SignUpRequest
from errors import AuthError, NotAuthenticated
from models.profile import Role
from services import auth_service, profiles_service


@pytest.mark.asyncio
async def test_sign_up_always_creates_client(db_session: AsyncSession):
    profile = await auth_service.sign_up(
        db_session,
        payload=SignUpRequest(email="New.Person@example.com", password="long-enough-pw", full_name="New Person"),
    )

    assert profile.role == Role.CLIENT.value
    assert profile.email == "new.person@example.com"
    assert profile.password_hash != "long-enough-pw"


@pytest.mark.asyncio
async def test_sign_up_duplicate_email_rejected(db_session: AsyncSession):
    payload = SignUpRequest(email="dup@example.com", password="long-enough-pw", full_name="First")
    await auth_service.sign_up(db_session, payload=payload)

    with pytest.raises(AuthError):
        await auth_service.sign_up(
            db_session,
            payload=SignUpRequest(email="DUP@example.com", password="long-enough-pw", full_name="Second"),
        )


@pytest.mark.asyncio
async def test_sign_in_returns_token_that_resolves(db_session: AsyncSession, client_a, password):
    response = await auth_service.sign_in(db_session, email="Alice@Client-A.test", password=password)

    ctx, profile = await auth_service.resolve_context(db_session, response.access_token)

    assert response.role == Role.CLIENT.value
    assert ctx.user_id == client_a.id
    assert ctx.role == Role.CLIENT
    assert profile.id == client_a.id


@pytest.mark.asyncio
async def test_sign_in_wrong_password(db_session: AsyncSession, client_a):
    with pytest.raises(AuthError):
        await auth_service.sign_in(db_session, email=client_a.email, password="not-the-password")


@pytest.mark.asyncio
async def test_sign_in_unknown_email(db_session: AsyncSession, password):
    with pytest.raises(AuthError):
        await auth_service.sign_in(db_session, email="nobody@example.com", password=password)


@pytest.mark.asyncio
async def test_inactive_profile_cannot_sign_in_or_resolve(db_session: AsyncSession, client_a, password):
    token = create_access_token(client_a.id, client_a.role)
    client_a.is_active = False
    await db_session.commit()

    with pytest.raises(AuthError):
        await auth_service.sign_in(db_session, email=client_a.email, password=password)
    with pytest.raises(AuthError):
        await auth_service.resolve_context(db_session, token)


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, ""])
async def test_resolve_without_token_is_unauthenticated(db_session: AsyncSession, token):
    with pytest.raises(NotAuthenticated):
        await auth_service.resolve_context(db_session, token)


@pytest.mark.asyncio
async def test_resolve_rejects_garbage_and_expired_tokens(db_session: AsyncSession, client_a):
    with pytest.raises(AuthError):
        await auth_service.resolve_context(db_session, "not-a-jwt")

    expired = create_access_token(client_a.id, client_a.role, expires_in_hours=-1)
    with pytest.raises(AuthError):
        await auth_service.resolve_context(db_session, expired)


@pytest.mark.asyncio
async def test_role_change_invalidates_existing_tokens(
    db_session: AsyncSession, admin_ctx, client_a
):
    token = create_access_token(client_a.id, client_a.role)

    await profiles_service.set_role(db_session, ctx=admin_ctx, profile_id=client_a.id, role=Role.ADMIN)

    with pytest.raises(AuthError):
        await auth_service.resolve_context(db_session, token)
    fresh = create_access_token(client_a.id, Role.ADMIN.value)
    ctx, _ = await auth_service.resolve_context(db_session, fresh)
    assert ctx.is_admin


@pytest.mark.asyncio
async def test_get_session_describes_token_owner(db_session: AsyncSession, admin):
    token = create_access_token(admin.id, admin.role)

    session_info = await auth_service.get_session(db_session, token)

    assert session_info.user_id == admin.id
    assert session_info.email == admin.email
    assert session_info.role == Role.ADMIN.value
