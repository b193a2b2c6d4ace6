"""Cross-origin headers for browser-facing API routes."""

from __future__ import annotations

from typing import Iterable, Optional

ALLOWED_METHODS = "GET, OPTIONS"
ALLOWED_HEADERS = "Content-Type"


class CorsPolicy:
    """Allow-list policy: echo the caller's origin only when it is listed.

    Unlisted origins get the method/header hints but no
    Access-Control-Allow-Origin, so browsers block the response.
    """

    def __init__(self, allowed_origins: Iterable[str]):
        self.allowed_origins = frozenset(o.rstrip("/") for o in allowed_origins if o)

    def is_allowed(self, origin: Optional[str]) -> bool:
        return bool(origin) and origin.rstrip("/") in self.allowed_origins

    def headers_for(self, origin: Optional[str]) -> dict[str, str]:
        headers = {
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        }
        if self.is_allowed(origin):
            headers["Access-Control-Allow-Origin"] = origin
            headers["Vary"] = "Origin"
        return headers
