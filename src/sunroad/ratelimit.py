"""Rate limiting using slowapi (in-memory, per instance; no cross-replica coordination)."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol

from limits import parse
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: Optional[float] = None


class RateLimiter(Protocol):
    """Per-client quota check for a named bucket."""

    def check(self, client_id: str, bucket: str) -> RateLimitDecision:
        """Count one request and say whether it is allowed."""


def _user_agent_hash(request: Request) -> str:
    user_agent = request.headers.get("user-agent", "")
    accept_language = request.headers.get("accept-language", "")
    digest = hashlib.sha256(f"{user_agent}:{accept_language}".encode("utf-8")).hexdigest()
    return digest[:16]


def client_identity(request: Request) -> str:
    """Best-effort client identity behind proxies.

    Checks x-forwarded-for (first hop), x-real-ip, cf-connecting-ip, then the
    socket peer. Falls back to a User-Agent hash so unidentifiable clients do
    not all share one bucket.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header, "").strip()
        if value:
            return value

    if request.client and request.client.host:
        return get_remote_address(request)

    return f"ua:{_user_agent_hash(request)}"


class SlowapiRateLimiter:
    """Moving-window quota buckets backed by slowapi's in-memory limits storage.

    State lives on the instance; the app factory builds one per process.
    """

    def __init__(
        self,
        buckets: Mapping[str, str],
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.enabled = enabled
        self._clock = clock
        self._limits = {name: parse(value) for name, value in buckets.items()}
        self._limiter = Limiter(
            key_func=client_identity,
            strategy="moving-window",
            storage_uri="memory://",
            enabled=enabled,
        )

    @property
    def buckets(self) -> list[str]:
        return sorted(self._limits)

    def check(self, client_id: str, bucket: str) -> RateLimitDecision:
        if not self.enabled:
            return RateLimitDecision(allowed=True)
        try:
            item = self._limits[bucket]
        except KeyError:
            raise ValueError(f"Unknown rate limit bucket: {bucket}")

        strategy = self._limiter.limiter
        if strategy.hit(item, bucket, client_id):
            return RateLimitDecision(allowed=True)

        reset_time, _remaining = strategy.get_window_stats(item, bucket, client_id)
        retry_after = max(0.0, float(reset_time) - self._clock())
        return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)
