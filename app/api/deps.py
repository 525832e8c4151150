"""Authentication dependency shared by protected routes."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import InternalError, InvalidTokenError, UnauthorizedError
from app.core.security import decode_access_token
from app.schemas.user import UserPublic
from app.services import user_store

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

security = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> UserPublic:
    """
    Require a valid access token from the accessToken cookie or a Bearer header
    and return the sanitized caller. Raises 401 if missing or invalid.
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token and credentials is not None:
        token = credentials.credentials
    if not token:
        raise UnauthorizedError("Unauthorized request")
    try:
        payload = decode_access_token(token)
    except InvalidTokenError as e:
        raise UnauthorizedError("Invalid or expired access token") from e
    try:
        user = user_store.find_public_by_id(db, payload["sub"])
    except SQLAlchemyError as e:
        raise InternalError("Something went wrong while authenticating the request") from e
    if user is None:
        raise UnauthorizedError("Invalid access token")
    return user
