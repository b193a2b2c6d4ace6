"""Storage key helpers for uploaded media."""

from .keys import (
    VALID_KEY_PREFIXES,
    build_cleanup_paths,
    build_cleanup_paths_with_thumb_fallback,
    derive_thumb_key,
    get_media_url,
    normalize_storage_key,
    to_thumb_key,
)

__all__ = [
    "VALID_KEY_PREFIXES",
    "build_cleanup_paths",
    "build_cleanup_paths_with_thumb_fallback",
    "derive_thumb_key",
    "get_media_url",
    "normalize_storage_key",
    "to_thumb_key",
]
