"""Authentication endpoints: sign-in, sign-up and session lookup."""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, security
from auth.schemas import SessionResponse, SignInRequest, SignInResponse, SignUpRequest, SignUpResponse
from errors import DashboardError
from services import auth_service

router = APIRouter()


@router.post("/auth/sign-in", response_model=SignInResponse)
async def sign_in_endpoint(
    request: SignInRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Exchange email and password for a bearer token.

    Raises:
        401 if the credentials are wrong or the account is inactive.
    """
    try:
        return await auth_service.sign_in(db, email=request.email, password=request.password)
    except DashboardError:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to sign in: {str(e)}",
        )


@router.post("/auth/sign-up", response_model=SignUpResponse, status_code=status.HTTP_201_CREATED)
async def sign_up_endpoint(
    request: SignUpRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Self-service sign-up. The new account is always a client.

    Raises:
        401 if the email is already registered.
    """
    try:
        profile = await auth_service.sign_up(db, payload=request)
        return SignUpResponse(user_id=profile.id)
    except DashboardError:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to sign up: {str(e)}",
        )


@router.get("/auth/session", response_model=SessionResponse)
async def get_session_endpoint(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    """
    Describe the current session.

    Raises:
        401 if there is no token or it is invalid or expired.
    """
    token = credentials.credentials if credentials else None
    return await auth_service.get_session(db, token)
