"""Response envelope shared by every endpoint."""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: {statusCode, data, message, success}."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int = Field(default=200, ge=100, le=599)
    data: T
    message: str = "Success"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.status_code < 400


class ErrorResponse(BaseModel):
    """Error envelope rendered by the exception handlers in app.main."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status_code: int
    data: None = None
    message: str
    success: bool = False
    errors: list[Any] = Field(default_factory=list)
