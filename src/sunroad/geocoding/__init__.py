"""Location autocomplete: upstream client, response cache and proxy."""

from .cache import CacheEntry, QueryCache, cache_key
from .provider import AutocompleteProvider, GeoapifyClient, UpstreamResponse
from .proxy import AutocompleteProxy, ProxyResponse

__all__ = [
    "CacheEntry",
    "QueryCache",
    "cache_key",
    "AutocompleteProvider",
    "GeoapifyClient",
    "UpstreamResponse",
    "AutocompleteProxy",
    "ProxyResponse",
]
