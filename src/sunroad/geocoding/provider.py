"""Geoapify autocomplete API client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx


@dataclass
class UpstreamResponse:
    """Raw upstream result: parsed JSON on success, text body otherwise."""

    status_code: int
    payload: Any = None
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class AutocompleteProvider(Protocol):
    """Upstream location-suggestion source."""

    name: str

    @property
    def configured(self) -> bool:
        """True when the provider credential is present."""

    async def autocomplete(self, text: str) -> UpstreamResponse:
        """Query the provider; transport failures raise."""


class GeoapifyClient:
    """Client for the Geoapify geocoding autocomplete endpoint."""

    name = "geoapify"

    def __init__(
        self,
        api_key: Optional[str],
        endpoint: str = "https://api.geoapify.com/v1/geocode/autocomplete",
        limit: int = 10,
        country_filter: Optional[str] = "countrycode:us",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint
        self._limit = limit
        self._country_filter = country_filter
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def build_params(self, text: str) -> dict[str, str]:
        params = {
            "text": text,
            "apiKey": self._api_key or "",
            "limit": str(self._limit),
        }
        if self._country_filter:
            params["filter"] = self._country_filter
        return params

    async def autocomplete(self, text: str) -> UpstreamResponse:
        response = await self._client.get(self._endpoint, params=self.build_params(text))
        if not response.is_success:
            return UpstreamResponse(status_code=response.status_code, body=response.text)
        return UpstreamResponse(status_code=response.status_code, payload=response.json())

    async def aclose(self) -> None:
        await self._client.aclose()
