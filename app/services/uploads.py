"""Temporary storage for multipart image uploads before they go to the media host."""

import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import UploadFile

from app.core.errors import ValidationError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"})
READ_CHUNK_BYTES = 1024 * 1024


def _is_upload_file(obj: object) -> bool:
    """True if obj is an uploaded file with a non-empty filename."""
    if obj is None:
        return False
    filename = getattr(obj, "filename", None)
    return bool(filename) and callable(getattr(obj, "read", None))


async def stage_upload(upload: UploadFile | None, settings: "Settings") -> str | None:
    """
    Write an uploaded image to UPLOAD_TEMP_DIR under a random name and return its path.

    Returns None when no file was sent. Raises ValidationError for a non-image
    extension or a file larger than MAX_UPLOAD_FILE_BYTES; nothing is left on disk then.
    """
    if not _is_upload_file(upload):
        return None
    suffix = Path(upload.filename or "").suffix.lower()
    if suffix not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError(
            f"Unsupported image type '{suffix or upload.filename}'; allowed: "
            + ", ".join(sorted(ALLOWED_IMAGE_EXTENSIONS))
        )

    temp_dir = Path(settings.UPLOAD_TEMP_DIR)
    temp_dir.mkdir(parents=True, exist_ok=True)
    target = temp_dir / f"{uuid.uuid4().hex}{suffix}"

    written = 0
    try:
        with target.open("wb") as out:
            while chunk := await upload.read(READ_CHUNK_BYTES):
                written += len(chunk)
                if written > settings.MAX_UPLOAD_FILE_BYTES:
                    break
                out.write(chunk)
    except BaseException:
        # Read or write failed, or the request was cancelled: drop the partial file.
        discard_temp_files(str(target))
        raise
    if written > settings.MAX_UPLOAD_FILE_BYTES:
        discard_temp_files(str(target))
        raise ValidationError(
            f"File size must not exceed {settings.MAX_UPLOAD_FILE_BYTES // (1024 * 1024)} MB."
        )
    if written == 0:
        discard_temp_files(str(target))
        return None
    return str(target)


def discard_temp_files(*paths: str | None) -> None:
    """Best-effort removal of staged files. Failures are logged, never raised."""
    for path in paths:
        if not path:
            continue
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temp upload %s: %s", path, e)
