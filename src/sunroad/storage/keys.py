"""Storage key conventions for uploaded media.

Keys look like ``{category}/{entity_id}/{filename}``; the thumbnail for a key
lives in a ``thumbs`` folder beside it with the same filename.
"""

from __future__ import annotations

import re
from typing import Optional

VALID_KEY_PREFIXES = ("avatars/", "banners/", "artworks/")
THUMBS_SEGMENT = "thumbs"
_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_MEDIA_MARKER = "/media/"


def to_thumb_key(full_key: Optional[str]) -> Optional[str]:
    """Insert a ``thumbs`` segment before the filename.

    ``"avatars/42/foo.jpg"`` -> ``"avatars/42/thumbs/foo.jpg"``. Returns None for
    keys with fewer than three segments or an empty filename.

    Not idempotent: feeding a derived key back in adds a second ``thumbs``
    segment, so always derive from the original key.
    """
    if not full_key or not isinstance(full_key, str):
        return None
    parts = full_key.split("/")
    if len(parts) < 3:
        return None
    filename = parts.pop()
    if not filename:
        return None
    return "/".join([*parts, THUMBS_SEGMENT, filename])


def normalize_storage_key(path_or_url: Optional[str]) -> Optional[str]:
    """Reduce a public media URL or key to a storage key.

    Unknown shapes return None so cleanup never touches paths it does not own.
    """
    if not path_or_url:
        return None
    trimmed = str(path_or_url).strip()
    if not trimmed:
        return None

    if _URL_RE.match(trimmed):
        index = trimmed.find(_MEDIA_MARKER)
        if index == -1:
            return None
        key = trimmed[index + len(_MEDIA_MARKER):]
        return key if key.startswith(VALID_KEY_PREFIXES) else None

    return trimmed if trimmed.startswith(VALID_KEY_PREFIXES) else None


def derive_thumb_key(full_key_or_url: Optional[str]) -> Optional[str]:
    """Thumbnail key for cleanup; keys already under ``thumbs/`` pass through."""
    key = normalize_storage_key(full_key_or_url)
    if not key:
        return None
    if f"/{THUMBS_SEGMENT}/" in key:
        return key
    directory, sep, filename = key.rpartition("/")
    if not sep:
        return None
    return f"{directory}/{THUMBS_SEGMENT}/{filename}"


def build_cleanup_paths(*paths_or_urls: Optional[str]) -> list[str]:
    """Normalized, de-duplicated keys in first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in paths_or_urls:
        key = normalize_storage_key(value)
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result


def build_cleanup_paths_with_thumb_fallback(
    full_key: Optional[str],
    explicit_thumb_key: Optional[str],
) -> list[str]:
    """Keys to delete when replacing an asset, deriving the thumb when unknown."""
    normalized_full = normalize_storage_key(full_key)
    normalized_thumb = normalize_storage_key(explicit_thumb_key)
    if not normalized_full:
        return [normalized_thumb] if normalized_thumb else []
    thumb_key = normalized_thumb or derive_thumb_key(normalized_full)
    return build_cleanup_paths(normalized_full, thumb_key)


def get_media_url(key_or_url: Optional[str], base_url: str) -> Optional[str]:
    """Public URL for a key; full URLs are returned unchanged."""
    if not key_or_url:
        return None
    trimmed = str(key_or_url).strip()
    if not trimmed:
        return None
    if _URL_RE.match(trimmed):
        return trimmed
    base = (base_url or "").rstrip("/")
    if not base:
        return None
    return f"{base}/{trimmed.lstrip('/')}"

