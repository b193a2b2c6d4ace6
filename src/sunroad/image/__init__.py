"""Image normalization helpers: decode, crop, flatten and encode uploads."""

from sunroad.image.cancellation import CancellationToken, NEVER_CANCELLED
from sunroad.image.compositor import OUTPUT_PRESETS, OutputSpec, composite
from sunroad.image.decoder import (
    DecodeAttempt,
    ExifOrientationStrategy,
    ImageDecoder,
    PlainDecodeStrategy,
    bounded_size,
)
from sunroad.image.encoder import RenderedAsset, encode
from sunroad.image.geometry import CropRegion, map_display_crop
from sunroad.image.pipeline import DisplayGeometry, MediaPipeline, StoredVariant
from sunroad.image.surface import DrawableSource, RasterSurface, SourceKind
from sunroad.image.validation import is_heic, is_supported, validate_upload

__all__ = [
    "CancellationToken",
    "NEVER_CANCELLED",
    "OUTPUT_PRESETS",
    "OutputSpec",
    "composite",
    "DecodeAttempt",
    "ExifOrientationStrategy",
    "ImageDecoder",
    "PlainDecodeStrategy",
    "bounded_size",
    "RenderedAsset",
    "encode",
    "CropRegion",
    "map_display_crop",
    "DisplayGeometry",
    "MediaPipeline",
    "StoredVariant",
    "DrawableSource",
    "RasterSurface",
    "SourceKind",
    "is_heic",
    "is_supported",
    "validate_upload",
]
