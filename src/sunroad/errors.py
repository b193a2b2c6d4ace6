"""Error taxonomy shared by the media pipeline and the autocomplete proxy.

Every error carries the HTTP status it maps to and the message a caller may
see. ``ValidationError`` and ``RateLimitError`` describe user-fixable
conditions and expose their own message; everything else exposes only the
generic ``public_message`` and keeps the detail for the logs.
"""

from __future__ import annotations

from typing import Optional


class SunroadError(Exception):
    """Base class for all service errors."""

    status_code = 500
    public_message = "Internal server error"
    exposes_detail = False

    def client_message(self) -> str:
        """Message that is safe to return to the caller."""
        if self.exposes_detail and str(self):
            return str(self)
        return self.public_message


class ValidationError(SunroadError):
    """Bad query, crop rectangle or upload."""

    status_code = 400
    public_message = "Invalid request"
    exposes_detail = True


class RateLimitError(SunroadError):
    """Client quota exceeded."""

    status_code = 429
    public_message = "Too many requests. Please try again later."
    exposes_detail = True

    def __init__(self, retry_after_seconds: Optional[float] = None):
        super().__init__(self.public_message)
        self.retry_after_seconds = retry_after_seconds


class ConfigError(SunroadError):
    """A required provider credential or setting is missing."""

    public_message = "Server configuration error"


class UpstreamError(SunroadError):
    """Upstream provider answered with a non-2xx status."""

    public_message = "Failed to fetch location suggestions"

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Upstream responded {status_code}")
        self.status_code = status_code
        self.body = body


class DecodeError(SunroadError):
    """Image bytes are corrupt or in an unsupported format."""

    status_code = 422
    public_message = "Could not read this image. Please try a different file."


class GeometryError(SunroadError):
    """Displayed image dimensions are degenerate."""

    status_code = 400
    public_message = "Invalid crop geometry"


class CanvasError(SunroadError):
    """Drawing surface unavailable or encoder produced no data."""

    public_message = "Could not process this image"


class PipelineCancelled(SunroadError):
    """A media pipeline run was cancelled by its caller."""

    status_code = 499
    public_message = "Image processing cancelled"
