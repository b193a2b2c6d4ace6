"""Decode raw upload bytes into an oriented, size-bounded raster surface.

Decoding is modelled as an ordered list of named strategies. Each strategy
returns a ``DecodeAttempt`` instead of raising, and the decoder takes the first
success:

1. ``exif-orientation`` decodes and applies the EXIF Orientation tag.
2. ``plain`` decodes without touching orientation. This is a degraded mode
   for files whose metadata Pillow cannot interpret; the surface is flagged
   with ``orientation_applied=False``.

Only when every strategy fails is ``DecodeError`` raised.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from PIL import Image, ImageOps

from sunroad.errors import DecodeError
from sunroad.image.cancellation import CancellationToken, NEVER_CANCELLED
from sunroad.image.surface import RasterSurface
from sunroad.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class DecodeAttempt:
    """Outcome of one decode strategy."""

    strategy: str
    image: Optional[Image.Image] = None
    orientation_applied: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.image is not None


class DecodeStrategy(Protocol):
    """One way of turning bytes into a Pillow image."""

    name: str

    def attempt(self, data: bytes) -> DecodeAttempt:
        """Decode ``data``; never raises."""


class ExifOrientationStrategy:
    """Primary path: decode and apply embedded orientation."""

    name = "exif-orientation"

    def attempt(self, data: bytes) -> DecodeAttempt:
        try:
            with Image.open(io.BytesIO(data)) as opened:
                opened.load()
                oriented = ImageOps.exif_transpose(opened)
                try:
                    image = normalize_mode(oriented)
                finally:
                    # normalize_mode always returns a new image
                    if oriented is not opened:
                        oriented.close()
        except Exception as exc:
            return DecodeAttempt(strategy=self.name, error=f"{type(exc).__name__}: {exc}")
        return DecodeAttempt(strategy=self.name, image=image, orientation_applied=True)


class PlainDecodeStrategy:
    """Degraded path: decode pixels only, orientation left as stored."""

    name = "plain"

    def attempt(self, data: bytes) -> DecodeAttempt:
        try:
            with Image.open(io.BytesIO(data)) as opened:
                opened.load()
                image = normalize_mode(opened)
        except Exception as exc:
            return DecodeAttempt(strategy=self.name, error=f"{type(exc).__name__}: {exc}")
        return DecodeAttempt(strategy=self.name, image=image, orientation_applied=False)


DEFAULT_STRATEGIES: tuple[DecodeStrategy, ...] = (
    ExifOrientationStrategy(),
    PlainDecodeStrategy(),
)


def normalize_mode(image: Image.Image) -> Image.Image:
    """Return a copy in RGB, or RGBA when the source carries transparency."""
    if image.mode in ("RGBA", "LA", "PA", "RGBa", "La") or "transparency" in image.info:
        return image.convert("RGBA")
    return image.convert("RGB")


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def bounded_size(width: int, height: int, max_dim: int) -> tuple[int, int]:
    """Scale (width, height) down so neither side exceeds ``max_dim``.

    Never upscales; aspect ratio is preserved.
    """
    if width <= 0 or height <= 0:
        raise DecodeError(f"Image has invalid dimensions {width}x{height}")
    if max_dim <= 0:
        raise ValueError("max_dim must be positive")
    scale = min(1.0, max_dim / width, max_dim / height)
    if scale >= 1.0:
        return width, height
    return max(1, round_half_up(width * scale)), max(1, round_half_up(height * scale))


class ImageDecoder:
    """Decode bytes with the first strategy that succeeds, then downscale."""

    def __init__(
        self,
        strategies: Optional[Sequence[DecodeStrategy]] = None,
        max_dimension: Optional[int] = None,
    ):
        self.strategies = tuple(strategies) if strategies is not None else DEFAULT_STRATEGIES
        self.max_dimension = max_dimension or settings.media_decode_max_dimension
        if not self.strategies:
            raise ValueError("ImageDecoder requires at least one strategy")

    def decode(
        self,
        data: bytes,
        max_dim: Optional[int] = None,
        token: CancellationToken = NEVER_CANCELLED,
    ) -> RasterSurface:
        """Decode ``data`` into a ``RasterSurface`` bounded by ``max_dim``."""
        bound = max_dim or self.max_dimension
        failures: list[str] = []
        chosen: Optional[DecodeAttempt] = None

        for index, strategy in enumerate(self.strategies):
            token.raise_if_cancelled("decode")
            attempt = strategy.attempt(data)
            if attempt.ok:
                chosen = attempt
                if index > 0:
                    logger.warning(
                        "Decoded image with fallback strategy %s (orientation_applied=%s); earlier failures: %s",
                        attempt.strategy,
                        attempt.orientation_applied,
                        "; ".join(failures),
                    )
                break
            failures.append(f"{attempt.strategy}: {attempt.error}")

        if chosen is None:
            logger.info("Image decode failed: %s", "; ".join(failures))
            raise DecodeError("; ".join(failures) or "no decode strategy succeeded")

        image = chosen.image
        try:
            token.raise_if_cancelled("decode")
            target = bounded_size(image.width, image.height, bound)
            if target != image.size:
                resized = image.resize(target, Image.Resampling.LANCZOS)
                image.close()
                image = resized
        except BaseException:
            image.close()
            raise

        return RasterSurface(
            image=image,
            strategy=chosen.strategy,
            orientation_applied=chosen.orientation_applied,
        )
