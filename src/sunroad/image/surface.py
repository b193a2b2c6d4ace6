"""Drawing surfaces passed between media pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from PIL import Image


class SourceKind(str, Enum):
    """Where a drawable source came from."""

    DECODED_BITMAP = "decoded_bitmap"
    SURFACE = "surface"
    IMAGE_ELEMENT = "image_element"


@dataclass
class RasterSurface:
    """Decoded, oriented and size-bounded image owned by one pipeline run."""

    image: Image.Image
    strategy: str
    orientation_applied: bool

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def has_alpha(self) -> bool:
        return self.image.mode in ("RGBA", "LA")

    def close(self) -> None:
        self.image.close()


@dataclass(frozen=True)
class DrawableSource:
    """Anything the compositor can draw from: a region with known size."""

    kind: SourceKind
    image: Image.Image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @classmethod
    def from_surface(cls, surface: RasterSurface) -> "DrawableSource":
        return cls(kind=SourceKind.SURFACE, image=surface.image)

    @classmethod
    def from_bitmap(cls, image: Image.Image) -> "DrawableSource":
        return cls(kind=SourceKind.DECODED_BITMAP, image=image)

    @classmethod
    def from_element(cls, image: Image.Image) -> "DrawableSource":
        return cls(kind=SourceKind.IMAGE_ELEMENT, image=image)


def as_drawable(source: RasterSurface | DrawableSource | Image.Image) -> DrawableSource:
    """Wrap any accepted input into a ``DrawableSource``."""
    if isinstance(source, DrawableSource):
        return source
    if isinstance(source, RasterSurface):
        return DrawableSource.from_surface(source)
    if isinstance(source, Image.Image):
        return DrawableSource.from_bitmap(source)
    raise TypeError(f"Unsupported drawable source: {type(source).__name__}")
