"""Password hashing."""

from passlib.context import CryptContext

import config

_pwd = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=config.settings.PASSWORD_HASH_ROUNDS,
)


def hash_password(password: str) -> str:
    return _pwd.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    # Malformed hashes count as a mismatch
    try:
        return _pwd.verify(plain, hashed)
    except ValueError:
        return False
