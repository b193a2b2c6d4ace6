"""Test the async media normalization pipeline."""

import asyncio
import io
import threading

import pytest
from PIL import Image

from sunroad.errors import DecodeError, PipelineCancelled, ValidationError
from sunroad.image import (
    OUTPUT_PRESETS,
    CancellationToken,
    CropRegion,
    DecodeAttempt,
    DisplayGeometry,
    ImageDecoder,
    MediaPipeline,
    OutputSpec,
    PlainDecodeStrategy,
)
from sunroad.image import compositor
from sunroad.image.validation import HEIC_MESSAGE, UNSUPPORTED_MESSAGE

from tests.conftest import encode_image


class CancellingStrategy:
    """Decodes successfully, but the caller cancels while it runs."""

    name = "cancelling"

    def __init__(self, token: CancellationToken):
        self.token = token

    def attempt(self, data: bytes) -> DecodeAttempt:
        attempt = PlainDecodeStrategy().attempt(data)
        self.token.cancel("user navigated away")
        return DecodeAttempt(strategy=self.name, image=attempt.image)


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_run_produces_exact_output_size(sample_image_data: bytes):
    pipeline = MediaPipeline()
    spec = OutputSpec(width=60, height=45, format="jpeg", quality=0.82)

    asset = asyncio.run(pipeline.run(sample_image_data, filename="a.jpg", mime_type="image/jpeg", output=spec))

    assert (asset.width, asset.height) == (60, 45)
    assert _open(asset.data).size == (60, 45)
    assert asset.mime_type == "image/jpeg"


def test_transparent_png_to_work_preset(transparent_png_data: bytes):
    asset = asyncio.run(MediaPipeline().run(
        transparent_png_data,
        filename="logo.png",
        mime_type="image/png",
        output=OUTPUT_PRESETS["work"],
    ))

    decoded = _open(asset.data).convert("RGB")
    assert decoded.size == (1200, 900)
    # JPEG noise aside, the whole frame is the white background.
    low = min(band[0] for band in decoded.getextrema())
    assert low >= 250


def test_heic_upload_rejected_before_decode(monkeypatch, sample_image_data: bytes):
    decoder = ImageDecoder()
    monkeypatch.setattr(decoder, "decode", lambda *args, **kwargs: pytest.fail("decoded a HEIC file"))

    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(MediaPipeline(decoder=decoder).run(
            sample_image_data, filename="IMG_0001.HEIC", mime_type="", output=OUTPUT_PRESETS["avatar"],
        ))
    assert exc_info.value.client_message() == HEIC_MESSAGE


@pytest.mark.parametrize("filename,mime_type", [
    ("photo.gif", "image/gif"),
    ("notes.txt", "text/plain"),
    ("photo.jpg", None),
])
def test_unsupported_upload_rejected(sample_image_data: bytes, filename, mime_type):
    with pytest.raises(ValidationError, match=UNSUPPORTED_MESSAGE):
        asyncio.run(MediaPipeline().run(
            sample_image_data, filename=filename, mime_type=mime_type, output=OUTPUT_PRESETS["avatar"],
        ))


def test_upload_size_limit(sample_image_data: bytes):
    pipeline = MediaPipeline(max_upload_bytes=10)

    with pytest.raises(ValidationError, match="too large"):
        asyncio.run(pipeline.run(
            sample_image_data, filename="a.jpg", mime_type="image/jpeg", output=OUTPUT_PRESETS["avatar"],
        ))


def test_empty_upload_rejected():
    with pytest.raises(ValidationError, match="empty"):
        asyncio.run(MediaPipeline().run(
            b"", filename="a.jpg", mime_type="image/jpeg", output=OUTPUT_PRESETS["avatar"],
        ))


def test_corrupt_upload_raises_decode_error():
    with pytest.raises(DecodeError):
        asyncio.run(MediaPipeline().run(
            b"\xff\xd8garbage", filename="a.jpg", mime_type="image/jpeg", output=OUTPUT_PRESETS["avatar"],
        ))


def test_pre_cancelled_token(sample_image_data: bytes):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(PipelineCancelled):
        asyncio.run(MediaPipeline().run(
            sample_image_data, filename="a.jpg", mime_type="image/jpeg",
            output=OUTPUT_PRESETS["avatar"], token=token,
        ))


def test_cancel_during_decode_skips_remaining_stages(monkeypatch, sample_image_data: bytes):
    token = CancellationToken()
    pipeline = MediaPipeline(decoder=ImageDecoder(strategies=[CancellingStrategy(token)]))
    monkeypatch.setattr(
        "sunroad.image.pipeline.composite",
        lambda *args, **kwargs: pytest.fail("composited after cancellation"),
    )

    with pytest.raises(PipelineCancelled, match="user navigated away"):
        asyncio.run(pipeline.run(
            sample_image_data, filename="a.jpg", mime_type="image/jpeg",
            output=OUTPUT_PRESETS["avatar"], token=token,
        ))


def test_display_crop_is_mapped_to_source_pixels():
    img = Image.new('RGB', (400, 300), color='red')
    img.paste((0, 0, 255), (200, 0, 400, 300))
    data = encode_image(img, "PNG")
    spec = OutputSpec(width=20, height=20, format="png")

    # Crop drawn over a 200x150 preview of the right half.
    asset = asyncio.run(MediaPipeline().run(
        data,
        filename="a.png",
        mime_type="image/png",
        output=spec,
        crop=CropRegion(110, 10, 80, 80),
        display=DisplayGeometry(display_width=200, display_height=150),
    ))

    r, g, b = _open(asset.data).convert("RGB").getpixel((10, 10))
    assert b > 200 and r < 50


def test_source_crop_defaults_to_full_surface():
    surface = ImageDecoder().decode(encode_image(Image.new('RGB', (50, 40)), "PNG"))

    assert MediaPipeline.source_crop(surface, None, None) == CropRegion(0, 0, 50, 40)
    crop = CropRegion(1, 2, 3, 4)
    assert MediaPipeline.source_crop(surface, crop, None) is crop
    mapped = MediaPipeline.source_crop(surface, crop, DisplayGeometry(25, 20))
    assert mapped == CropRegion(2, 4, 6, 8)


def test_run_with_thumbnail(sample_image_data: bytes):
    full, thumb = asyncio.run(MediaPipeline().run_with_thumbnail(
        sample_image_data,
        storage_key="artworks/7/cover.jpg",
        filename="cover.jpg",
        mime_type="image/jpeg",
        output=OutputSpec(width=80, height=60, format="jpeg", quality=0.82),
        thumbnail=OutputSpec(width=30, height=30, format="jpeg", quality=0.8),
    ))

    assert full.key == "artworks/7/cover.jpg"
    assert thumb.key == "artworks/7/thumbs/cover.jpg"
    assert (full.asset.width, full.asset.height) == (80, 60)
    assert (thumb.asset.width, thumb.asset.height) == (30, 30)


def test_run_with_thumbnail_rejects_bad_key(sample_image_data: bytes):
    with pytest.raises(ValidationError):
        asyncio.run(MediaPipeline().run_with_thumbnail(
            sample_image_data,
            storage_key="cover.jpg",
            filename="cover.jpg",
            mime_type="image/jpeg",
            output=OUTPUT_PRESETS["work"],
            thumbnail=OUTPUT_PRESETS["thumbnail"],
        ))


def _recording_decoder(monkeypatch, surfaces, after=None) -> ImageDecoder:
    decoder = ImageDecoder()
    real_decode = decoder.decode

    def decode(*args, **kwargs):
        surface = real_decode(*args, **kwargs)
        surfaces.append(surface)
        if after is not None:
            after()
        return surface

    monkeypatch.setattr(decoder, "decode", decode)
    return decoder


def _run(pipeline, data, token):
    return asyncio.run(pipeline.run(
        data, filename="a.jpg", mime_type="image/jpeg",
        output=OutputSpec(width=40, height=40, format="jpeg"), token=token,
    ))


def test_cancel_after_decode_closes_surface(monkeypatch, close_tracker, sample_image_data: bytes):
    token = CancellationToken()
    surfaces = []
    decoder = _recording_decoder(monkeypatch, surfaces, after=token.cancel)

    with pytest.raises(PipelineCancelled):
        _run(MediaPipeline(decoder=decoder), sample_image_data, token)

    assert len(surfaces) == 1
    assert close_tracker.was_closed(surfaces[0].image)


def test_cancel_inside_composite_closes_everything(monkeypatch, close_tracker, sample_image_data: bytes):
    token = CancellationToken()
    surfaces = []
    resized = []
    decoder = _recording_decoder(monkeypatch, surfaces)
    original_resize = Image.Image.resize

    def resize(self, *args, **kwargs):
        out = original_resize(self, *args, **kwargs)
        resized.append(out)
        token.cancel("left the page")
        return out

    monkeypatch.setattr(Image.Image, "resize", resize)

    with pytest.raises(PipelineCancelled):
        _run(MediaPipeline(decoder=decoder), sample_image_data, token)

    assert len(resized) == 1
    assert close_tracker.was_closed(resized[0])
    assert close_tracker.was_closed(surfaces[0].image)


def test_cancel_between_composite_and_encode(monkeypatch, close_tracker, sample_image_data: bytes):
    token = CancellationToken()
    surfaces = []
    composed = []
    decoder = _recording_decoder(monkeypatch, surfaces)

    def cancelling_composite(*args, **kwargs):
        out = compositor.composite(*args, **kwargs)
        composed.append(out)
        token.cancel("left the page")
        return out

    monkeypatch.setattr("sunroad.image.pipeline.composite", cancelling_composite)
    monkeypatch.setattr(
        "sunroad.image.pipeline.encode",
        lambda *args, **kwargs: pytest.fail("encoded after cancellation"),
    )

    with pytest.raises(PipelineCancelled):
        _run(MediaPipeline(decoder=decoder), sample_image_data, token)

    assert len(composed) == 1
    assert close_tracker.was_closed(composed[0])
    assert close_tracker.was_closed(surfaces[0].image)


def test_task_cancelled_while_decoding_closes_surface(monkeypatch, close_tracker, sample_image_data: bytes):
    started = threading.Event()
    release = threading.Event()
    surfaces = []
    decoder = _recording_decoder(monkeypatch, surfaces)
    recording_decode = decoder.decode

    def slow_decode(*args, **kwargs):
        started.set()
        release.wait(5)
        return recording_decode(*args, **kwargs)

    monkeypatch.setattr(decoder, "decode", slow_decode)
    pipeline = MediaPipeline(decoder=decoder)

    async def scenario():
        task = asyncio.ensure_future(pipeline.run(
            sample_image_data, filename="a.jpg", mime_type="image/jpeg", output=OUTPUT_PRESETS["avatar"],
        ))
        await asyncio.get_running_loop().run_in_executor(None, started.wait, 5)
        task.cancel()
        release.set()
        with pytest.raises(asyncio.CancelledError):
            await task
        # The worker thread may finish after the task has gone.
        for _ in range(200):
            if surfaces and close_tracker.was_closed(surfaces[0].image):
                break
            await asyncio.sleep(0.01)

    asyncio.run(scenario())

    assert len(surfaces) == 1
    assert close_tracker.was_closed(surfaces[0].image)
