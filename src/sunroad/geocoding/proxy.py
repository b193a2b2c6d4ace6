"""Quota-gated, cached proxy in front of the location autocomplete provider.

A request moves through these steps, any of which can end it early:

1. rate-limit check (429, nothing else runs)
2. query validation (400)
3. provider credential check (500, secret not named)
4. cache lookup (200, ``X-Cache: HIT``)
5. upstream fetch (upstream status on non-2xx, 500 on transport failure)
6. cache fill (200, ``X-Cache: MISS`` plus ``Cache-Control: public, s-maxage``)

Concurrent misses for one key share a single in-flight upstream request,
and only that request writes the cache.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from sunroad.cors import CorsPolicy
from sunroad.errors import (
    ConfigError,
    RateLimitError,
    SunroadError,
    UpstreamError,
    ValidationError,
)
from sunroad.geocoding.cache import QueryCache, cache_key
from sunroad.geocoding.provider import AutocompleteProvider
from sunroad.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class ProxyResponse:
    status_code: int
    body: Optional[dict] = None
    headers: dict[str, str] = field(default_factory=dict)


class AutocompleteProxy:
    """Orchestrates limiter, cache and upstream provider for one service instance."""

    def __init__(
        self,
        cache: QueryCache,
        limiter: RateLimiter,
        provider: AutocompleteProvider,
        cors: CorsPolicy,
        *,
        ttl_seconds: int = 3600,
        min_length: int = 3,
        max_length: int = 64,
        bucket: str = "strict",
        route_name: str = "location-autocomplete",
    ):
        self.cache = cache
        self.limiter = limiter
        self.provider = provider
        self.cors = cors
        self.ttl_seconds = ttl_seconds
        self.min_length = min_length
        self.max_length = max_length
        self.bucket = bucket
        self.route_name = route_name
        self._inflight: dict[str, asyncio.Task] = {}

    async def handle(
        self,
        query: Any,
        *,
        client_id: str,
        origin: Optional[str] = None,
    ) -> ProxyResponse:
        """Answer one autocomplete request."""
        cors_headers = self.cors.headers_for(origin)
        try:
            self.check_rate_limit(client_id)
            text = self.validate(query)
            self.check_config()

            key = cache_key(self.provider.name, text)
            entry = self.cache.lookup(key)
            if entry is not None:
                return ProxyResponse(200, entry.payload, {**cors_headers, "X-Cache": "HIT"})

            payload = await self.fetch(key, text)
            return ProxyResponse(
                200,
                payload,
                {
                    **cors_headers,
                    "Cache-Control": f"public, s-maxage={self.ttl_seconds}",
                    "X-Cache": "MISS",
                },
            )
        except SunroadError as exc:
            return self.error_response(exc, cors_headers)
        except Exception:
            logger.exception("Unexpected error in %s proxy", self.route_name)
            return ProxyResponse(500, {"error": SunroadError.public_message}, cors_headers)

    def preflight(self, origin: Optional[str]) -> ProxyResponse:
        return ProxyResponse(204, None, self.cors.headers_for(origin))

    def check_rate_limit(self, client_id: str) -> None:
        decision = self.limiter.check(f"{self.route_name}:{client_id}", self.bucket)
        if not decision.allowed:
            raise RateLimitError(decision.retry_after_seconds)

    def validate(self, query: Any) -> str:
        """Return the trimmed query or raise ``ValidationError``."""
        if not isinstance(query, str) or not query.strip():
            raise ValidationError(f"Query required (minimum {self.min_length} characters)")
        text = query.strip()
        if len(text) < self.min_length:
            raise ValidationError(f"Query too short (minimum {self.min_length} characters)")
        if len(text) > self.max_length:
            raise ValidationError(f"Query too long (maximum {self.max_length} characters)")
        return text

    def check_config(self) -> None:
        if not self.provider.configured:
            raise ConfigError(f"{self.provider.name} API key is not set")

    async def fetch(self, key: str, text: str) -> Any:
        """Fetch from upstream, joining an identical request already in flight."""
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(key, text))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        # Shielded so one caller disconnecting does not cancel the shared fetch.
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved even when every waiter went away.
            task.exception()

    async def _fetch_and_store(self, key: str, text: str) -> Any:
        try:
            upstream = await self.provider.autocomplete(text)
        except Exception as exc:
            logger.exception("Error calling %s autocomplete API", self.provider.name)
            raise SunroadError(f"{self.provider.name} request failed: {exc}") from exc

        if not upstream.ok:
            logger.error(
                "%s API error %s: %s",
                self.provider.name,
                upstream.status_code,
                upstream.body or "Unknown error",
            )
            raise UpstreamError(upstream.status_code, upstream.body)

        self.cache.set(key, upstream.payload, self.ttl_seconds)
        return upstream.payload

    def error_response(self, exc: SunroadError, cors_headers: dict[str, str]) -> ProxyResponse:
        headers = dict(cors_headers)
        if isinstance(exc, RateLimitError):
            retry_after = exc.retry_after_seconds
            if retry_after is not None and retry_after > 0:
                headers["Retry-After"] = str(math.ceil(retry_after))
        elif isinstance(exc, ConfigError):
            logger.error("%s proxy misconfigured: %s", self.route_name, exc)
        elif isinstance(exc, ValidationError):
            logger.debug("Rejected %s query: %s", self.route_name, exc)
        return ProxyResponse(exc.status_code, {"error": exc.client_message()}, headers)
