"""Pydantic request/response schemas."""

from app.schemas.common import ApiResponse, ErrorResponse
from app.schemas.health import HealthStatus
from app.schemas.media import MediaAsset
from app.schemas.user import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RefreshRequest,
    RegisterFields,
    TokenPair,
    UserPublic,
)

__all__ = [
    "ApiResponse",
    "ChangePasswordRequest",
    "ErrorResponse",
    "HealthStatus",
    "LoginRequest",
    "LoginResult",
    "MediaAsset",
    "RefreshRequest",
    "RegisterFields",
    "TokenPair",
    "UserPublic",
]
