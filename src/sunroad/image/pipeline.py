"""Async media normalization pipeline: validate, decode, crop, encode."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from starlette.concurrency import run_in_threadpool

from sunroad.errors import ValidationError
from sunroad.image.cancellation import CancellationToken
from sunroad.image.compositor import OutputSpec, composite
from sunroad.image.decoder import ImageDecoder
from sunroad.image.encoder import RenderedAsset, encode
from sunroad.image.geometry import CropRegion, map_display_crop
from sunroad.image.surface import RasterSurface
from sunroad.image.validation import validate_upload
from sunroad.storage.keys import to_thumb_key

logger = logging.getLogger(__name__)


async def run_owned(func: Callable[..., Any], *args: Any) -> Any:
    """Run ``func`` in the threadpool and close its result if the caller goes away.

    The worker thread keeps running when the awaiting task is cancelled, so
    whichever side finishes last closes the result.
    """
    lock = threading.Lock()
    state: dict = {"abandoned": False, "result": None}

    def call():
        result = func(*args)
        with lock:
            if state["abandoned"]:
                result.close()
                return None
            state["result"] = result
        return result

    try:
        return await run_in_threadpool(call)
    except asyncio.CancelledError:
        with lock:
            state["abandoned"] = True
            if state["result"] is not None:
                state["result"].close()
        raise


@dataclass(frozen=True)
class DisplayGeometry:
    """On-screen size of the image the crop was drawn over.

    Natural size defaults to the decoded surface, which is what the cropper
    displays.
    """

    display_width: float
    display_height: float
    natural_width: Optional[float] = None
    natural_height: Optional[float] = None


@dataclass(frozen=True)
class StoredVariant:
    key: str
    asset: RenderedAsset


class MediaPipeline:
    """Turn an untrusted upload into a fixed-size encoded asset.

    Each stage runs in the threadpool and the cancellation token is checked
    around every await, so an abandoned upload stops at the next stage
    boundary and its Pillow images are closed immediately.
    """

    def __init__(self, decoder: Optional[ImageDecoder] = None, max_upload_bytes: Optional[int] = None):
        self.decoder = decoder or ImageDecoder()
        self.max_upload_bytes = max_upload_bytes

    async def decode(
        self,
        data: bytes,
        *,
        filename: Optional[str],
        mime_type: Optional[str],
        token: CancellationToken,
    ) -> RasterSurface:
        validate_upload(data, filename, mime_type, max_bytes=self.max_upload_bytes)
        token.raise_if_cancelled("validate")
        surface = await run_owned(self.decoder.decode, data, None, token)
        if token.cancelled:
            surface.close()
            token.raise_if_cancelled("decode")
        return surface

    @staticmethod
    def source_crop(
        surface: RasterSurface,
        crop: Optional[CropRegion],
        display: Optional[DisplayGeometry],
    ) -> CropRegion:
        """Crop in surface pixels; the whole surface when no crop is given."""
        if crop is None:
            return CropRegion.full(surface.width, surface.height)
        if display is None:
            return crop
        return map_display_crop(
            crop,
            display.natural_width or surface.width,
            display.natural_height or surface.height,
            display.display_width,
            display.display_height,
        )

    async def render(
        self,
        surface: RasterSurface,
        region: CropRegion,
        output: OutputSpec,
        token: CancellationToken,
    ) -> RenderedAsset:
        composed = await run_owned(composite, surface, region, output, token)
        try:
            token.raise_if_cancelled("composite")
            asset = await run_in_threadpool(encode, composed, output.format, output.quality, token)
        finally:
            composed.close()
        token.raise_if_cancelled("encode")
        return asset

    async def run(
        self,
        data: bytes,
        *,
        filename: Optional[str],
        mime_type: Optional[str],
        output: OutputSpec,
        crop: Optional[CropRegion] = None,
        display: Optional[DisplayGeometry] = None,
        token: Optional[CancellationToken] = None,
    ) -> RenderedAsset:
        """Normalize one upload into a single asset."""
        token = token or CancellationToken()
        surface = await self.decode(data, filename=filename, mime_type=mime_type, token=token)
        try:
            region = self.source_crop(surface, crop, display)
            asset = await self.render(surface, region, output, token)
        finally:
            surface.close()
        logger.debug(
            "Normalized %s (%d bytes) to %s %dx%d (%d bytes, decode=%s)",
            filename,
            len(data),
            asset.format,
            asset.width,
            asset.height,
            len(asset),
            surface.strategy,
        )
        return asset

    async def run_with_thumbnail(
        self,
        data: bytes,
        *,
        storage_key: str,
        filename: Optional[str],
        mime_type: Optional[str],
        output: OutputSpec,
        thumbnail: OutputSpec,
        crop: Optional[CropRegion] = None,
        display: Optional[DisplayGeometry] = None,
        token: Optional[CancellationToken] = None,
    ) -> tuple[StoredVariant, StoredVariant]:
        """Render the full asset and its thumbnail from a single decode."""
        thumb_key = to_thumb_key(storage_key)
        if thumb_key is None:
            raise ValidationError(f"Storage key {storage_key!r} must look like category/id/filename.")

        token = token or CancellationToken()
        surface = await self.decode(data, filename=filename, mime_type=mime_type, token=token)
        try:
            region = self.source_crop(surface, crop, display)
            full = await self.render(surface, region, output, token)
            thumb = await self.render(surface, region, thumbnail, token)
        finally:
            surface.close()
        return StoredVariant(key=storage_key, asset=full), StoredVariant(key=thumb_key, asset=thumb)
