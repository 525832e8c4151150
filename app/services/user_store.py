"""User store: persistence of accounts, uniqueness and refresh-token bookkeeping."""

import logging

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import DuplicateKeyError
from app.models import User
from app.schemas.user import UserPublic

logger = logging.getLogger(__name__)

# Sentinel for update_refresh_token: no compare-and-swap on the stored token.
ANY_TOKEN = object()


def normalize_identity(value: str | None) -> str:
    """Trim and lowercase a username or email; None becomes ''."""
    return (value or "").strip().lower()


def _coerce_id(user_id: str | int) -> int | None:
    try:
        return int(user_id)
    except (TypeError, ValueError):
        return None


def find_by_username_or_email(
    session: Session,
    username: str | None,
    email: str | None,
) -> User | None:
    """Return the first user whose username or email matches (case-insensitive), else None."""
    conditions = []
    if normalize_identity(username):
        conditions.append(User.username == normalize_identity(username))
    if normalize_identity(email):
        conditions.append(User.email == normalize_identity(email))
    if not conditions:
        return None
    return session.query(User).filter(or_(*conditions)).order_by(User.id).first()


def find_by_id(session: Session, user_id: str | int) -> User | None:
    coerced = _coerce_id(user_id)
    if coerced is None:
        return None
    return session.get(User, coerced)


def find_public_by_id(session: Session, user_id: str | int) -> UserPublic | None:
    """Read a user for a response: the projection excludes password_hash and refresh_token."""
    user = find_by_id(session, user_id)
    if user is None:
        return None
    return UserPublic.model_validate(user)


def create_user(
    session: Session,
    *,
    username: str,
    email: str,
    fullname: str,
    password_hash: str,
    avatar_url: str,
    cover_image_url: str = "",
) -> User:
    """
    Insert a user. username and email are normalized; fullname is trimmed.
    Raises DuplicateKeyError when the username or email is already taken.
    """
    user = User(
        username=normalize_identity(username),
        email=normalize_identity(email),
        fullname=fullname.strip(),
        password_hash=password_hash,
        avatar_url=avatar_url,
        cover_image_url=cover_image_url or "",
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise DuplicateKeyError("username or email already exists") from e
    session.refresh(user)
    return user


def update_refresh_token(
    session: Session,
    user_id: str | int,
    token: str | None,
    expected: object = ANY_TOKEN,
) -> bool:
    """
    Set (or clear, with token=None) the stored refresh token.

    When expected is given, the write only happens if the stored token still
    equals it (compare-and-swap). Returns True if a row was updated.
    """
    coerced = _coerce_id(user_id)
    if coerced is None:
        return False
    stmt = update(User).where(User.id == coerced)
    if expected is not ANY_TOKEN:
        stmt = stmt.where(User.refresh_token == expected)
    result = session.execute(
        stmt.values(refresh_token=token).execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1


def update_password_hash(session: Session, user_id: str | int, password_hash: str) -> bool:
    """Replace the stored password hash. Returns True if a row was updated."""
    coerced = _coerce_id(user_id)
    if coerced is None:
        return False
    result = session.execute(
        update(User)
        .where(User.id == coerced)
        .values(password_hash=password_hash)
        .execution_options(synchronize_session=False)
    )
    session.commit()
    return result.rowcount == 1
