"""Test configuration and fixtures."""

import io
from typing import Optional

import pytest
from PIL import Image

from sunroad.cors import CorsPolicy
from sunroad.geocoding import AutocompleteProxy, QueryCache, UpstreamResponse
from sunroad.ratelimit import RateLimitDecision
from sunroad.settings import Settings


ORIGIN = "https://sunroad.io"

SAMPLE_FEATURES = {
    "features": [
        {
            "properties": {
                "formatted": "Austin, TX, United States of America",
                "city": "Austin",
                "state": "Texas",
                "country": "United States",
                "place_id": "abc123",
                "lat": 30.27,
                "lon": -97.74,
            }
        }
    ]
}


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """Deterministic upstream that records every call."""

    name = "geoapify"

    def __init__(self, response: Optional[UpstreamResponse] = None, error: Optional[Exception] = None,
                 configured: bool = True):
        self.response = response or UpstreamResponse(status_code=200, payload=SAMPLE_FEATURES)
        self.error = error
        self._configured = configured
        self.calls: list[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def autocomplete(self, text: str) -> UpstreamResponse:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.response


class FakeLimiter:
    """Limiter that returns a fixed decision and records checks."""

    def __init__(self, decision: Optional[RateLimitDecision] = None):
        self.decision = decision or RateLimitDecision(allowed=True)
        self.checks: list[tuple[str, str]] = []

    def check(self, client_id: str, bucket: str) -> RateLimitDecision:
        self.checks.append((client_id, bucket))
        return self.decision


class CloseTracker:
    """Records every Pillow image closed while installed."""

    def __init__(self):
        self.closed: list[Image.Image] = []

    def was_closed(self, image: Image.Image) -> bool:
        return any(image is closed for closed in self.closed)


def encode_image(image: Image.Image, fmt: str = "PNG", **params) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


@pytest.fixture
def sample_image_data():
    """Generate sample image data for testing."""
    img = Image.new('RGB', (100, 100), color='red')
    return encode_image(img, "JPEG")


@pytest.fixture
def transparent_png_data():
    """Fully transparent 120x90 PNG."""
    img = Image.new('RGBA', (120, 90), color=(0, 0, 0, 0))
    return encode_image(img, "PNG")


@pytest.fixture
def rotated_jpeg_data():
    """40x20 JPEG tagged with EXIF orientation 6 (rotate 90° clockwise to display)."""
    img = Image.new('RGB', (40, 20), color='blue')
    exif = Image.Exif()
    exif[0x0112] = 6
    return encode_image(img, "JPEG", exif=exif.tobytes())


@pytest.fixture
def close_tracker(monkeypatch):
    tracker = CloseTracker()
    original_close = Image.Image.close

    def close(self):
        tracker.closed.append(self)
        return original_close(self)

    monkeypatch.setattr(Image.Image, "close", close)
    return tracker


@pytest.fixture
def app_settings():
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, geoapify_api_key="test-key")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def limiter():
    return FakeLimiter()


@pytest.fixture
def cache(clock):
    return QueryCache(max_entries=1000, clock=clock)


@pytest.fixture
def proxy(cache, limiter, provider):
    return AutocompleteProxy(
        cache=cache,
        limiter=limiter,
        provider=provider,
        cors=CorsPolicy([ORIGIN]),
        ttl_seconds=3600,
    )
