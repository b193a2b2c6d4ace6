"""Application settings and environment configuration."""

from typing import Optional
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "Sunroad"
    debug: bool = False
    environment: str = "dev"  # 'dev' or 'prod'

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_workers: int = 1

    # Public site URL, always allowed as a cross-origin caller
    app_url: str = "http://localhost:3000"
    cors_allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "https://sunroad.io",
        "https://www.sunroad.io",
        "https://sunroad-frontend.vercel.app",
    ]

    # Geoapify (location autocomplete)
    geoapify_api_key: Optional[str] = None
    geoapify_autocomplete_url: str = "https://api.geoapify.com/v1/geocode/autocomplete"
    geoapify_result_limit: int = 10
    # MVP is US-only
    geoapify_country_filter: str = "countrycode:us"
    geoapify_timeout_seconds: float = 10.0

    # Autocomplete cache and validation
    autocomplete_cache_ttl_seconds: int = 3600
    # Sweep threshold, not a hard cap: only expired entries are reclaimed.
    autocomplete_cache_max_entries: int = 1000
    autocomplete_query_min_length: int = 3
    autocomplete_query_max_length: int = 64
    autocomplete_rate_limit_bucket: str = "strict"

    # Rate limiting (in-memory, per instance)
    rate_limit_enabled: bool = True
    rate_limit_strict: str = "30/10 seconds"
    rate_limit_moderate: str = "10/10 seconds"
    rate_limit_loose: str = "60/60 seconds"
    rate_limit_webhook: str = "30/60 seconds"

    # Media
    media_max_upload_bytes: int = 8 * 1024 * 1024
    media_decode_max_dimension: int = 2000
    media_public_base_url: str = ""

    @property
    def allowed_origins(self) -> list[str]:
        """Cross-origin allow-list including the configured site URL."""
        origins = list(self.cors_allowed_origins)
        if self.app_url and self.app_url not in origins:
            origins.append(self.app_url)
        return origins

    @property
    def rate_limit_buckets(self) -> dict[str, str]:
        """Named quota buckets mapped to their limit strings."""
        return {
            "strict": self.rate_limit_strict,
            "moderate": self.rate_limit_moderate,
            "loose": self.rate_limit_loose,
            "webhook": self.rate_limit_webhook,
        }

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "dev"


settings = Settings()
