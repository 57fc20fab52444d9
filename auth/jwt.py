"""JWT token creation and validation."""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt

import config
from auth.schemas import TokenPayload


def create_access_token(
    user_id: UUID,
    role: str,
    expires_in_hours: int | None = None,
) -> str:
    """
    Create a signed access token for a profile.

    Args:
        user_id: Profile UUID
        role: Profile role at sign-in time
        expires_in_hours: Token expiration in hours (defaults to settings)

    Returns:
        Encoded JWT token string
    """
    if expires_in_hours is None:
        expires_in_hours = config.settings.ACCESS_TOKEN_EXPIRES_HOURS
    exp = datetime.now(UTC) + timedelta(hours=expires_in_hours)

    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": int(exp.timestamp()),  # JWT expects Unix timestamp
    }

    return jwt.encode(
        payload,
        config.settings.JWT_SECRET,
        algorithm=config.settings.JWT_ALGORITHM,
    )


def decode_token(token: str) -> TokenPayload:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string

    Returns:
        TokenPayload with decoded claims

    Raises:
        JWTError: If token is invalid, expired or missing claims
    """
    try:
        payload = jwt.decode(
            token,
            config.settings.JWT_SECRET,
            algorithms=[config.settings.JWT_ALGORITHM],
        )

        return TokenPayload(
            sub=payload["sub"],
            role=payload["role"],
            exp=datetime.fromtimestamp(payload["exp"], UTC),
        )
    except KeyError as e:
        raise JWTError(f"Missing claim: {e}") from e
    except JWTError as e:
        raise JWTError(f"Invalid token: {str(e)}") from e
