"""Password hashing and JWT creation/verification for authentication."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import Settings, get_settings
from app.core.errors import InvalidTokenError, PasswordHashError

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt only looks at the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72

# Upper bound on password length, shared by register, login and change-password.
PASSWORD_MAX_LEN = 128


def hash_password(plain_password: str, config: Settings | None = None) -> str:
    """Hash a plain-text password with a fresh salt. Do not store plain passwords."""
    config = config or get_settings()
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise PasswordHashError("Password hashing failed") from e


def verify_password(plain_password: str, hashed: str) -> bool:
    """
    Verify a plain password against a stored hash (constant-time inside bcrypt).
    Raises PasswordHashError when the stored hash is malformed.
    """
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError) as e:
        raise PasswordHashError("Password verification failed") from e


def _encode(
    claims: dict[str, Any],
    token_type: str,
    secret: str,
    expire_minutes: int,
    algorithm: str,
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        **claims,
        "type": token_type,
        # jti keeps two tokens minted in the same second distinct
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def _decode(token: str, token_type: str, secret: str, algorithm: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise InvalidTokenError("Token has expired") from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError("Invalid token") from e
    if payload.get("type") != token_type:
        raise InvalidTokenError("Invalid token type")
    return payload


def create_access_token(
    user_id: str | int,
    email: str,
    username: str,
    config: Settings | None = None,
) -> str:
    """Create a short-lived access token carrying id, email and username."""
    config = config or get_settings()
    return _encode(
        {"sub": str(user_id), "email": email, "username": username},
        ACCESS_TOKEN_TYPE,
        config.ACCESS_TOKEN_SECRET.get_secret_value(),
        config.ACCESS_TOKEN_EXPIRE_MINUTES,
        config.JWT_ALGORITHM,
    )


def create_refresh_token(user_id: str | int, config: Settings | None = None) -> str:
    """Create a long-lived refresh token carrying only the user id."""
    config = config or get_settings()
    return _encode(
        {"sub": str(user_id)},
        REFRESH_TOKEN_TYPE,
        config.REFRESH_TOKEN_SECRET.get_secret_value(),
        config.REFRESH_TOKEN_EXPIRE_MINUTES,
        config.JWT_ALGORITHM,
    )


def decode_access_token(token: str, config: Settings | None = None) -> dict[str, Any]:
    """
    Decode and validate an access token; return payload (sub, email, username, exp, iat).
    Raises InvalidTokenError on bad signature, expiry or wrong token type.
    """
    config = config or get_settings()
    return _decode(
        token,
        ACCESS_TOKEN_TYPE,
        config.ACCESS_TOKEN_SECRET.get_secret_value(),
        config.JWT_ALGORITHM,
    )


def decode_refresh_token(token: str, config: Settings | None = None) -> dict[str, Any]:
    """
    Decode and validate a refresh token; return payload (sub, exp, iat).
    Raises InvalidTokenError on bad signature, expiry or wrong token type.
    """
    config = config or get_settings()
    return _decode(
        token,
        REFRESH_TOKEN_TYPE,
        config.REFRESH_TOKEN_SECRET.get_secret_value(),
        config.JWT_ALGORITHM,
    )
