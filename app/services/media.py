"""Media host client: upload staged images to Cloudinary and return their hosted URL."""

import hashlib
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.config import get_settings
from app.schemas.media import MediaAsset
from app.services.uploads import discard_temp_files

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def _is_media_configured(settings: "Settings") -> bool:
    """True only when cloud name, API key and API secret are all set."""
    secret = settings.CLOUDINARY_API_SECRET
    return bool(
        (settings.CLOUDINARY_CLOUD_NAME or "").strip()
        and (settings.CLOUDINARY_API_KEY or "").strip()
        and secret is not None
        and secret.get_secret_value().strip()
    )


def _sign_params(params: dict[str, str], api_secret: str) -> str:
    """Cloudinary signature: SHA-1 of the sorted k=v pairs joined by '&', followed by the secret."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


async def upload_image(
    local_path: str | None,
    settings: "Settings | None" = None,
) -> MediaAsset | None:
    """
    Upload a staged image and return the hosted asset, or None on any failure.

    The staged file is removed after the attempt whether or not it succeeded.
    """
    if not local_path:
        return None
    settings = settings or get_settings()
    try:
        if not _is_media_configured(settings):
            logger.warning("Media host is not configured; skipping upload of %s", local_path)
            return None
        path = Path(local_path)
        if not path.is_file():
            logger.warning("Staged upload %s does not exist", local_path)
            return None

        cloud_name = (settings.CLOUDINARY_CLOUD_NAME or "").strip()
        api_key = (settings.CLOUDINARY_API_KEY or "").strip()
        api_secret = settings.CLOUDINARY_API_SECRET.get_secret_value().strip()
        params = {"timestamp": str(int(time.time()))}
        data = {
            **params,
            "api_key": api_key,
            "signature": _sign_params(params, api_secret),
        }
        url = f"{settings.CLOUDINARY_UPLOAD_URL}/{cloud_name}/image/upload"
        timeout = httpx.Timeout(settings.MEDIA_REQUEST_TIMEOUT_SEC)

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(
                    url,
                    data=data,
                    files={"file": (path.name, path.read_bytes())},
                )
        except (httpx.HTTPError, OSError) as e:
            logger.warning("Media upload of %s failed: %s", path.name, e)
            return None

        if response.status_code != 200:
            logger.warning(
                "Media host returned status %s for %s", response.status_code, path.name
            )
            return None
        try:
            asset = MediaAsset.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            logger.warning("Media host response for %s is not usable: %s", path.name, e)
            return None
        logger.info("Uploaded %s to media host: %s", path.name, asset.public_id)
        return asset
    finally:
        discard_temp_files(local_path)
