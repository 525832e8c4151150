"""Request/response schemas for account endpoints. JSON uses camelCase field names."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.security import PASSWORD_MAX_LEN


class CamelModel(BaseModel):
    """Base for schemas exchanged with clients: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserPublic(CamelModel):
    """Sanitized user: never carries password_hash or refresh_token."""

    id: int
    username: str
    email: str
    fullname: str
    avatar_url: str
    cover_image_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RegisterFields(BaseModel):
    """Text fields of the registration form, before trimming and validation."""

    username: str = ""
    email: str = ""
    fullname: str = ""
    password: str = ""


class LoginRequest(CamelModel):
    """Credentials for login: username or email, plus password."""

    username: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    password: str = Field(default="", max_length=PASSWORD_MAX_LEN)


class RefreshRequest(CamelModel):
    """Body variant of token refresh for clients that cannot send cookies."""

    refresh_token: str | None = None

    @field_validator("refresh_token", mode="before")
    @classmethod
    def non_string_means_absent(cls, v: Any) -> str | None:
        # A number or object is not a token; the flow answers 401 for a missing one.
        return v if isinstance(v, str) else None


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(..., max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    confirm_password: str = Field(..., max_length=PASSWORD_MAX_LEN)


class TokenPair(CamelModel):
    """Access and refresh token pair issued on login and refresh."""

    access_token: str
    refresh_token: str


class LoginResult(TokenPair):
    """Login payload: sanitized user plus both tokens."""

    user: UserPublic
