"""Draw a source crop onto a fixed-size output surface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from PIL import Image, ImageColor

from sunroad.errors import CanvasError, ValidationError
from sunroad.image.cancellation import CancellationToken, NEVER_CANCELLED
from sunroad.image.geometry import CropRegion
from sunroad.image.surface import DrawableSource, RasterSurface, as_drawable

SUPPORTED_OUTPUT_FORMATS = {"jpeg", "webp", "png"}
# Formats that cannot store alpha; transparent pixels would encode as black.
OPAQUE_FORMATS = {"jpeg"}
DEFAULT_BACKGROUND = "#fff"


@dataclass(frozen=True)
class OutputSpec:
    width: int
    height: int
    format: str = "jpeg"
    quality: float = 0.92
    background_color: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.width, int) or not isinstance(self.height, int):
            raise ValidationError("Output width and height must be integers.")
        if self.width <= 0 or self.height <= 0:
            raise ValidationError("Output width and height must be positive.")
        fmt = (self.format or "").lower()
        if fmt == "jpg":
            fmt = "jpeg"
        if fmt not in SUPPORTED_OUTPUT_FORMATS:
            raise ValidationError(f"Unsupported output format: {self.format}")
        object.__setattr__(self, "format", fmt)
        if not 0.0 <= float(self.quality) <= 1.0:
            raise ValidationError("Quality must be between 0 and 1.")

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def flattens(self) -> bool:
        return self.format in OPAQUE_FORMATS or self.background_color is not None

    @property
    def fill_color(self) -> str:
        return self.background_color or DEFAULT_BACKGROUND


OUTPUT_PRESETS = {
    "avatar": OutputSpec(width=600, height=600, format="jpeg", quality=0.92, background_color="#fff"),
    "work": OutputSpec(width=1200, height=900, format="jpeg", quality=0.82, background_color="#fff"),
    "thumbnail": OutputSpec(width=300, height=300, format="jpeg", quality=0.8, background_color="#fff"),
}


def _parse_color(value: str) -> tuple[int, int, int, int]:
    try:
        rgba = ImageColor.getcolor(value, "RGBA")
    except ValueError:
        raise ValidationError(f"Unrecognised background color: {value}")
    return rgba


def composite(
    source: RasterSurface | DrawableSource | Image.Image,
    crop: CropRegion,
    spec: OutputSpec,
    token: CancellationToken = NEVER_CANCELLED,
) -> Image.Image:
    """Draw ``crop`` of ``source`` stretched to exactly ``spec.size``.

    No letterboxing: callers that care about distortion supply a crop whose
    aspect ratio matches the output. The source image is never modified; a new
    image is returned.
    """
    drawable = as_drawable(source)
    crop.ensure_within(drawable.width, drawable.height)
    token.raise_if_cancelled("composite")

    src = drawable.image
    try:
        if src.mode not in ("RGB", "RGBA"):
            src = src.convert("RGBA")
        drawn = src.resize(spec.size, Image.Resampling.LANCZOS, box=crop.box)
    except (OSError, ValueError) as exc:
        raise CanvasError(f"Drawing surface unavailable: {exc}") from exc
    finally:
        if src is not drawable.image:
            src.close()

    try:
        token.raise_if_cancelled("composite")
        if not spec.flattens:
            return drawn
        flattened = _flatten(drawn, spec)
    except BaseException:
        drawn.close()
        raise
    drawn.close()
    return flattened


def _flatten(image: Image.Image, spec: OutputSpec) -> Image.Image:
    """Paste ``image`` onto an opaque ``spec.fill_color`` background."""
    background = Image.new("RGB", spec.size, color=_parse_color(spec.fill_color)[:3])
    mask = image.getchannel("A") if image.mode == "RGBA" else None
    try:
        background.paste(image, (0, 0), mask=mask)
    except (OSError, ValueError) as exc:
        background.close()
        raise CanvasError(f"Flattening failed: {exc}") from exc
    except BaseException:
        background.close()
        raise
    finally:
        if mask is not None:
            mask.close()
    return background
