"""Crop rectangles and display-to-source coordinate mapping."""

from __future__ import annotations

from dataclasses import dataclass

from sunroad.errors import GeometryError, ValidationError

# Float crops mapped from display space may overshoot by rounding noise.
_EDGE_TOLERANCE = 1e-6


@dataclass(frozen=True)
class CropRegion:
    x: float
    y: float
    width: float
    height: float

    @property
    def box(self) -> tuple[float, float, float, float]:
        """(left, upper, right, lower) as Pillow expects."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0

    def ensure_within(self, width: int, height: int) -> None:
        """Raise ``ValidationError`` unless the crop lies inside width x height."""
        if min(self.x, self.y, self.width, self.height) < 0:
            raise ValidationError("Crop region values must not be negative.")
        if self.width <= 0 or self.height <= 0:
            raise ValidationError("Crop region must have a non-zero size.")
        if self.x + self.width > width + _EDGE_TOLERANCE or self.y + self.height > height + _EDGE_TOLERANCE:
            raise ValidationError(
                f"Crop region {self.width:g}x{self.height:g}+{self.x:g}+{self.y:g} "
                f"exceeds image bounds {width}x{height}."
            )

    @classmethod
    def full(cls, width: int, height: int) -> "CropRegion":
        return cls(0, 0, width, height)

    @classmethod
    def parse(cls, value: str) -> "CropRegion":
        """Parse ``"x,y,width,height"``."""
        parts = [part.strip() for part in (value or "").split(",")]
        if len(parts) != 4:
            raise ValidationError("Crop must be given as x,y,width,height.")
        try:
            x, y, width, height = (float(part) for part in parts)
        except ValueError:
            raise ValidationError("Crop values must be numbers.")
        return cls(x, y, width, height)


def map_display_crop(
    crop: CropRegion,
    natural_width: float,
    natural_height: float,
    display_width: float,
    display_height: float,
) -> CropRegion:
    """Convert a crop drawn over a displayed (layout-scaled) image to source pixels.

    Axes scale independently, so a display whose aspect ratio differs from the
    natural one yields a non-uniform mapping.
    """
    if display_width <= 0 or display_height <= 0:
        raise GeometryError(
            f"Display dimensions must be positive, got {display_width}x{display_height}"
        )
    scale_x = natural_width / display_width
    scale_y = natural_height / display_height
    return CropRegion(
        x=crop.x * scale_x,
        y=crop.y * scale_y,
        width=crop.width * scale_x,
        height=crop.height * scale_y,
    )
