"""Authentication request/response and token payload schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # profile id (standard JWT claim)
    role: str  # admin | client at issue time
    exp: datetime  # Expiration time (standard JWT claim)


class SignInRequest(BaseModel):
    """Request schema for password sign-in."""

    email: EmailStr
    password: str


class SignInResponse(BaseModel):
    """Response schema for sign-in."""

    access_token: str
    token_type: str = "bearer"
    user_id: UUID
    role: str


class SignUpRequest(BaseModel):
    """Request schema for self-service sign-up (always a client)."""

    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=2, max_length=255)


class SignUpResponse(BaseModel):
    """Response schema for sign-up."""

    user_id: UUID


class SessionResponse(BaseModel):
    """Current session details."""

    user_id: UUID
    email: str
    role: str


class PasswordChange(BaseModel):
    """Request schema for changing the caller's password."""

    current_password: str
    new_password: str = Field(min_length=8)
