"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from sunroad.cors import CorsPolicy
from sunroad.geocoding import AutocompleteProvider, AutocompleteProxy, GeoapifyClient, QueryCache
from sunroad.ratelimit import RateLimiter, SlowapiRateLimiter
from sunroad.routers import location
from sunroad.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def build_autocomplete_proxy(
    app_settings: Settings,
    *,
    provider: Optional[AutocompleteProvider] = None,
    limiter: Optional[RateLimiter] = None,
    cache: Optional[QueryCache] = None,
) -> AutocompleteProxy:
    """Wire the proxy and the state it owns (cache, limiter, upstream client)."""
    if provider is None:
        provider = GeoapifyClient(
            api_key=app_settings.geoapify_api_key,
            endpoint=app_settings.geoapify_autocomplete_url,
            limit=app_settings.geoapify_result_limit,
            country_filter=app_settings.geoapify_country_filter,
            timeout=app_settings.geoapify_timeout_seconds,
        )
    if limiter is None:
        limiter = SlowapiRateLimiter(
            app_settings.rate_limit_buckets,
            enabled=app_settings.rate_limit_enabled,
        )
    if cache is None:
        cache = QueryCache(max_entries=app_settings.autocomplete_cache_max_entries)
    return AutocompleteProxy(
        cache=cache,
        limiter=limiter,
        provider=provider,
        cors=CorsPolicy(app_settings.allowed_origins),
        ttl_seconds=app_settings.autocomplete_cache_ttl_seconds,
        min_length=app_settings.autocomplete_query_min_length,
        max_length=app_settings.autocomplete_query_max_length,
        bucket=app_settings.autocomplete_rate_limit_bucket,
    )


def create_app(
    app_settings: Optional[Settings] = None,
    *,
    provider: Optional[AutocompleteProvider] = None,
    limiter: Optional[RateLimiter] = None,
    cache: Optional[QueryCache] = None,
) -> FastAPI:
    """Build the application with its per-instance services.

    The cache and limiter are constructed once here and live as long as the
    app. Their contents are disposable, so shutdown only closes the upstream
    HTTP client.
    """
    app_settings = app_settings or default_settings
    proxy = build_autocomplete_proxy(app_settings, provider=provider, limiter=limiter, cache=cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not proxy.provider.configured:
            logger.warning("Location autocomplete provider has no API key; requests will fail with 500")
        yield
        aclose = getattr(proxy.provider, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception:
                logger.exception("Failed to close autocomplete upstream client")

    app = FastAPI(
        title=app_settings.app_name,
        description="Media normalization and location autocomplete services",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.autocomplete_proxy = proxy

    app.include_router(location.router)

    @app.get("/health")
    async def health_check():
        """Liveness check."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sunroad.api:app",
        host=default_settings.api_host,
        port=default_settings.api_port,
        workers=default_settings.api_workers,
        reload=default_settings.debug
    )
