"""Account endpoints: register, login, logout, refresh-token, change-password, current-user."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile
from sqlalchemy.orm import Session

from app.api.deps import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, get_current_user
from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.schemas.common import ApiResponse
from app.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RefreshRequest,
    RegisterFields,
    TokenPair,
    UserPublic,
)
from app.services import auth_service
from app.services.uploads import discard_temp_files, stage_upload

logger = logging.getLogger(__name__)
router = APIRouter()


def _cookie_options(settings: Settings) -> dict[str, Any]:
    # HTTP-only: scripts in the browser can never read or modify the tokens
    return {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": settings.COOKIE_SAMESITE,
        "path": "/",
    }


def _set_token_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    options = _cookie_options(settings)
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **options,
    )
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_MINUTES * 60,
        **options,
    )


def _clear_token_cookies(response: Response, settings: Settings) -> None:
    options = _cookie_options(settings)
    response.delete_cookie(ACCESS_TOKEN_COOKIE, **options)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, **options)


@router.post("/register", response_model=ApiResponse[UserPublic], status_code=201)
async def register(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    username: Annotated[str, Form()] = "",
    fullname: Annotated[str, Form()] = "",
    email: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
    avatar: Annotated[UploadFile | None, File()] = None,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
) -> ApiResponse[UserPublic]:
    """
    Register an account from a multipart form.

    Text fields: username, fullname, email, password. Files: avatar (required)
    and coverImage (optional), stored on the media host.
    """
    avatar_path = await stage_upload(avatar, settings)
    try:
        cover_image_path = await stage_upload(cover_image, settings)
    except Exception:
        discard_temp_files(avatar_path)
        raise

    user = await auth_service.register_user(
        db,
        RegisterFields(username=username, fullname=fullname, email=email, password=password),
        avatar_path,
        cover_image_path,
        settings=settings,
    )
    return ApiResponse(status_code=201, data=user, message="User registered successfully")


@router.post("/login", response_model=ApiResponse[LoginResult])
def login(
    body: LoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[LoginResult]:
    """Log in with username or email plus password; tokens are returned and set as cookies."""
    result = auth_service.login_user(db, body, settings)
    _set_token_cookies(response, result, settings)
    return ApiResponse(data=result, message="User logged in successfully")


@router.post("/logout", response_model=ApiResponse[dict])
def logout(
    response: Response,
    current_user: Annotated[UserPublic, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[dict]:
    """Invalidate the caller's refresh token and clear both token cookies."""
    auth_service.logout_user(db, current_user.id)
    _clear_token_cookies(response, settings)
    return ApiResponse(data={}, message="User logged out successfully")


def _body_refresh_token(body: Any) -> str | None:
    # Anything but a JSON object with a string refreshToken counts as no token.
    if not isinstance(body, dict):
        return None
    return RefreshRequest.model_validate(body).refresh_token


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
def refresh_token(
    request: Request,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    body: Annotated[Any, Body()] = None,
) -> ApiResponse[TokenPair]:
    """
    Rotate the token pair. The refresh token is read from the refreshToken
    cookie, or from the JSON body for clients without cookie support.
    """
    presented = request.cookies.get(REFRESH_TOKEN_COOKIE) or _body_refresh_token(body)
    tokens = auth_service.refresh_tokens(db, presented, settings)
    _set_token_cookies(response, tokens, settings)
    return ApiResponse(data=tokens, message="Access token refreshed")


@router.post("/change-password", response_model=ApiResponse[dict])
def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[UserPublic, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[dict]:
    """Change the caller's password (oldPassword, newPassword, confirmPassword)."""
    auth_service.change_password(db, current_user.id, body, settings)
    return ApiResponse(data={}, message="Password changed successfully")


@router.get("/current-user", response_model=ApiResponse[UserPublic])
def read_current_user(
    current_user: Annotated[UserPublic, Depends(get_current_user)],
) -> ApiResponse[UserPublic]:
    """Return the authenticated caller."""
    return ApiResponse(data=current_user, message="Current user fetched successfully")
