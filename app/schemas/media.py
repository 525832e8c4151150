"""Schemas for images stored on the media host."""

from pydantic import BaseModel, Field


class MediaAsset(BaseModel):
    """Subset of the Cloudinary upload response the app keeps."""

    secure_url: str = Field(..., min_length=1, description="HTTPS URL of the hosted image")
    public_id: str | None = Field(default=None, description="Host-side identifier of the image")
    bytes: int | None = Field(default=None, ge=0, description="Stored size in bytes")
