"""Upload validation for user-submitted images."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sunroad.errors import ValidationError
from sunroad.settings import settings


VALID_MIME_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
)

HEIC_MIME_TYPES = (
    "image/heic",
    "image/heif",
    "image/heic-sequence",
    "image/heif-sequence",
)

HEIC_EXTENSIONS = {".heic", ".heif"}

HEIC_MESSAGE = "HEIC/HEIF isn't supported here. Please export to JPEG/PNG/WebP and try again."
UNSUPPORTED_MESSAGE = "Please select a JPEG, PNG, or WebP image file."


def is_heic(filename: Optional[str], mime_type: Optional[str]) -> bool:
    """Return True when the file looks like HEIC/HEIF by MIME or extension."""
    mime = (mime_type or "").strip().lower()
    if any(heic in mime for heic in HEIC_MIME_TYPES):
        return True
    return Path(filename or "").suffix.lower() in HEIC_EXTENSIONS


def is_supported(filename: Optional[str], mime_type: Optional[str]) -> bool:
    """Check if an upload is an accepted image type."""
    if is_heic(filename, mime_type):
        return False
    mime = (mime_type or "").strip().lower()
    return any(mime == valid or mime.startswith(valid) for valid in VALID_MIME_TYPES)


def validate_upload(
    data: bytes,
    filename: Optional[str],
    mime_type: Optional[str],
    max_bytes: Optional[int] = None,
) -> None:
    """Raise ``ValidationError`` with a user-facing message for bad uploads."""
    limit = settings.media_max_upload_bytes if max_bytes is None else max_bytes
    if not data:
        raise ValidationError("The selected file is empty.")
    if limit and len(data) > limit:
        raise ValidationError(f"Image is too large (maximum {limit // (1024 * 1024)} MB).")
    if is_heic(filename, mime_type):
        raise ValidationError(HEIC_MESSAGE)
    if not is_supported(filename, mime_type):
        raise ValidationError(UNSUPPORTED_MESSAGE)
