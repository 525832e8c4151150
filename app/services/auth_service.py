"""
Account flows: register, login, logout, token refresh and password change.

Flows take a DB session and explicit inputs, raise ApiError subclasses for
every client-visible failure and never leak store or library exceptions.
HTTP concerns (cookies, status codes, envelope) live in app.api.v1.users.
"""

import hmac
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import (
    ConflictError,
    DuplicateKeyError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    PasswordHashError,
    UnauthorizedError,
    ValidationError,
)
from app.core.security import (
    PASSWORD_MAX_LEN,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from app.models import User
from app.schemas.media import MediaAsset
from app.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RegisterFields,
    TokenPair,
    UserPublic,
)
from app.services import user_store
from app.services.media import upload_image
from app.services.uploads import discard_temp_files

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

Uploader = Callable[..., Awaitable[MediaAsset | None]]

STALE_REFRESH_TOKEN_MESSAGE = "Refresh token is expired or already used"


@contextmanager
def _store_errors(message: str) -> Iterator[None]:
    """Translate database failures into InternalError with a generic message."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception("%s: %s", message, type(e).__name__)
        raise InternalError(message) from e


def _password_matches(plain_password: str, password_hash: str) -> bool:
    try:
        return verify_password(plain_password, password_hash)
    except PasswordHashError as e:
        logger.exception("Password verification failed")
        raise InternalError("Something went wrong while verifying the password") from e


def _hash(plain_password: str, settings: "Settings") -> str:
    try:
        return hash_password(plain_password, settings)
    except PasswordHashError as e:
        logger.exception("Password hashing failed")
        raise InternalError("Something went wrong while storing the password") from e


def generate_token_pair(
    session: Session,
    user_id: str | int,
    settings: "Settings | None" = None,
    expected_refresh_token: object = user_store.ANY_TOKEN,
) -> TokenPair:
    """
    Load the user, issue access and refresh tokens and persist the refresh token.

    With expected_refresh_token the write is a compare-and-swap: if another
    request rotated the token first, UnauthorizedError is raised. Every other
    failure is reported as InternalError without its cause.
    """
    settings = settings or get_settings()
    try:
        user = user_store.find_by_id(session, user_id)
        if user is None:
            raise LookupError(f"user {user_id} not found")
        access_token = create_access_token(user.id, user.email, user.username, settings)
        refresh_token = create_refresh_token(user.id, settings)
        stored = user_store.update_refresh_token(
            session, user.id, refresh_token, expected=expected_refresh_token
        )
    except Exception as e:
        logger.exception("Token generation failed for user_id=%s", user_id)
        raise InternalError(
            "Something went wrong while generating refresh and access tokens"
        ) from e

    if not stored:
        if expected_refresh_token is user_store.ANY_TOKEN:
            raise InternalError("Something went wrong while generating refresh and access tokens")
        logger.warning("Refresh token for user_id=%s was rotated concurrently", user_id)
        raise UnauthorizedError(STALE_REFRESH_TOKEN_MESSAGE)
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


async def register_user(
    session: Session,
    fields: RegisterFields,
    avatar_path: str | None,
    cover_image_path: str | None = None,
    uploader: Uploader | None = None,
    settings: "Settings | None" = None,
) -> UserPublic:
    """
    Create an account from form fields and staged image files.

    Staged files are removed on every exit path, including validation failures.
    """
    settings = settings or get_settings()
    try:
        return await _register(
            session,
            fields,
            avatar_path,
            cover_image_path,
            uploader or upload_image,
            settings,
        )
    finally:
        discard_temp_files(avatar_path, cover_image_path)


async def _register(
    session: Session,
    fields: RegisterFields,
    avatar_path: str | None,
    cover_image_path: str | None,
    uploader: Uploader,
    settings: "Settings",
) -> UserPublic:
    username = fields.username.strip()
    email = fields.email.strip()
    fullname = fields.fullname.strip()
    if not username or not email or not fullname or not fields.password.strip():
        raise ValidationError("All fields are required")
    if len(fields.password) > PASSWORD_MAX_LEN:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LEN} characters")

    # Store calls and bcrypt block, so they run in the thread pool; only uploads are awaited.
    existing = await run_in_threadpool(_find_existing, session, username, email)
    if existing is not None:
        raise ConflictError("User with username or email already exists")

    if not avatar_path:
        raise ValidationError("Avatar file is required")

    avatar = await uploader(avatar_path, settings)
    cover_image = await uploader(cover_image_path, settings) if cover_image_path else None
    if avatar is None:
        raise ValidationError("Avatar is required")

    created = await run_in_threadpool(
        _persist_user,
        session,
        username=username,
        email=email,
        fullname=fullname,
        password=fields.password,
        avatar_url=avatar.secure_url,
        cover_image_url=cover_image.secure_url if cover_image else "",
        settings=settings,
    )
    logger.info("Registered user_id=%s", created.id)
    return created


def _find_existing(session: Session, username: str, email: str) -> User | None:
    with _store_errors("Something went wrong while registering the user"):
        return user_store.find_by_username_or_email(session, username, email)


def _persist_user(
    session: Session,
    *,
    username: str,
    email: str,
    fullname: str,
    password: str,
    avatar_url: str,
    cover_image_url: str,
    settings: "Settings",
) -> UserPublic:
    password_hash = _hash(password, settings)
    with _store_errors("Something went wrong while registering the user"):
        try:
            user = user_store.create_user(
                session,
                username=username,
                email=email,
                fullname=fullname,
                password_hash=password_hash,
                avatar_url=avatar_url,
                cover_image_url=cover_image_url,
            )
        except DuplicateKeyError as e:
            raise ConflictError("User with username or email already exists") from e
        created = user_store.find_public_by_id(session, user.id)
    if created is None:
        raise InternalError("Something went wrong while registering the user")
    return created


def login_user(
    session: Session,
    credentials: LoginRequest,
    settings: "Settings | None" = None,
) -> LoginResult:
    """Check credentials, rotate the refresh token and return the user with both tokens."""
    if not (
        user_store.normalize_identity(credentials.username)
        or user_store.normalize_identity(credentials.email)
    ):
        raise ValidationError("Username or email is required")

    with _store_errors("Something went wrong while logging in"):
        user = user_store.find_by_username_or_email(
            session, credentials.username, credentials.email
        )
    if user is None:
        raise NotFoundError("User does not exist")
    if not _password_matches(credentials.password, user.password_hash):
        raise UnauthorizedError("Invalid user credentials")

    user_id = user.id
    tokens = generate_token_pair(session, user_id, settings)
    with _store_errors("Something went wrong while logging in"):
        logged_in = user_store.find_public_by_id(session, user_id)
    if logged_in is None:
        raise InternalError("Something went wrong while logging in")
    logger.info("Login: user_id=%s", user_id)
    return LoginResult(
        user=logged_in,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
    )


def logout_user(session: Session, user_id: str | int) -> None:
    """Clear the stored refresh token of the authenticated caller."""
    with _store_errors("Something went wrong while logging out"):
        user_store.update_refresh_token(session, user_id, None)
    logger.info("Logout: user_id=%s", user_id)


def refresh_tokens(
    session: Session,
    presented_token: str | None,
    settings: "Settings | None" = None,
) -> TokenPair:
    """
    Exchange a valid, current refresh token for a new token pair.

    Any token problem is UnauthorizedError; a token that is no longer the
    stored one (rotated or cleared by logout) is rejected as stale.
    """
    settings = settings or get_settings()
    if not presented_token:
        raise UnauthorizedError("Unauthorized request")

    try:
        claims = decode_refresh_token(presented_token, settings)
    except InvalidTokenError as e:
        logger.warning("Rejected refresh token: %s", e)
        raise UnauthorizedError(str(e) or "Invalid refresh token") from e

    with _store_errors("Something went wrong while refreshing the access token"):
        user = user_store.find_by_id(session, claims["sub"])
    if user is None:
        raise UnauthorizedError("Invalid refresh token")

    stored = user.refresh_token or ""
    if not hmac.compare_digest(stored.encode("utf-8"), presented_token.encode("utf-8")):
        logger.warning("Stale refresh token presented for user_id=%s", user.id)
        raise UnauthorizedError(STALE_REFRESH_TOKEN_MESSAGE)

    tokens = generate_token_pair(
        session, user.id, settings, expected_refresh_token=presented_token
    )
    logger.info("Refreshed tokens for user_id=%s", user.id)
    return tokens


def change_password(
    session: Session,
    user_id: str | int,
    body: ChangePasswordRequest,
    settings: "Settings | None" = None,
) -> None:
    """Replace the caller's password after checking confirmation and the old password."""
    settings = settings or get_settings()
    if body.new_password != body.confirm_password:
        raise ValidationError("New password and confirm password do not match")

    with _store_errors("Something went wrong while changing the password"):
        user = user_store.find_by_id(session, user_id)
    if user is None:
        raise NotFoundError("User does not exist")
    if not _password_matches(body.old_password, user.password_hash):
        raise ValidationError("Invalid old password")

    password_hash = _hash(body.new_password, settings)
    with _store_errors("Something went wrong while changing the password"):
        user_store.update_password_hash(session, user.id, password_hash)
    logger.info("Password changed for user_id=%s", user.id)
