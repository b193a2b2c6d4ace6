"""Encode a composited surface into an uploadable asset."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image

from sunroad.errors import CanvasError, ValidationError
from sunroad.image.cancellation import CancellationToken, NEVER_CANCELLED

MIME_TYPES = {
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "png": "image/png",
}

FILE_EXTENSIONS = {
    "jpeg": ".jpg",
    "webp": ".webp",
    "png": ".png",
}

# Pillow format names
_PIL_FORMATS = {
    "jpeg": "JPEG",
    "webp": "WEBP",
    "png": "PNG",
}


@dataclass(frozen=True)
class RenderedAsset:
    """Encoded image bytes plus format tag, handed straight to the uploader."""

    data: bytes
    format: str
    width: int
    height: int

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.format]

    @property
    def extension(self) -> str:
        return FILE_EXTENSIONS[self.format]

    def __len__(self) -> int:
        return len(self.data)


def quality_to_pillow(quality: float) -> int:
    """Map a 0..1 quality factor onto Pillow's 1..100 scale."""
    return max(1, min(100, int(round(float(quality) * 100))))


def encode(
    image: Image.Image,
    format: str,
    quality: float = 0.92,
    token: CancellationToken = NEVER_CANCELLED,
) -> RenderedAsset:
    """Compress ``image``; quality is ignored for png."""
    fmt = (format or "").lower()
    if fmt == "jpg":
        fmt = "jpeg"
    if fmt not in _PIL_FORMATS:
        raise ValidationError(f"Unsupported output format: {format}")
    token.raise_if_cancelled("encode")

    to_save = image
    if fmt == "jpeg" and image.mode not in ("RGB", "L"):
        # Callers normally flatten first; this only drops the alpha channel.
        to_save = image.convert("RGB")

    params: dict = {}
    if fmt == "jpeg":
        params = {"quality": quality_to_pillow(quality), "optimize": True}
    elif fmt == "webp":
        params = {"quality": quality_to_pillow(quality), "method": 4}
    else:
        params = {"optimize": True}

    buffer = io.BytesIO()
    try:
        to_save.save(buffer, format=_PIL_FORMATS[fmt], **params)
    except (OSError, ValueError, KeyError) as exc:
        raise CanvasError(f"{fmt} encode failed: {exc}") from exc
    finally:
        if to_save is not image:
            to_save.close()

    data = buffer.getvalue()
    if not data:
        raise CanvasError("empty encode")
    token.raise_if_cancelled("encode")
    return RenderedAsset(data=data, format=fmt, width=image.width, height=image.height)
