"""Router for the location autocomplete proxy."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from sunroad.geocoding import AutocompleteProxy, ProxyResponse
from sunroad.ratelimit import client_identity

router = APIRouter(tags=["location"])


def get_autocomplete_proxy(request: Request) -> AutocompleteProxy:
    """Service-owned proxy built by the app factory."""
    return request.app.state.autocomplete_proxy


def _to_response(result: ProxyResponse) -> Response:
    if result.body is None:
        return Response(status_code=result.status_code, headers=result.headers)
    return JSONResponse(content=result.body, status_code=result.status_code, headers=result.headers)


@router.get("/location-autocomplete")
@router.get("/api/geoapify/autocomplete", include_in_schema=False)
async def location_autocomplete(
    request: Request,
    q: Optional[str] = Query(None, description="Location text, 3-64 characters after trimming"),
    proxy: AutocompleteProxy = Depends(get_autocomplete_proxy),
):
    """Suggest locations for partial input, cached per normalized query."""
    result = await proxy.handle(
        q,
        client_id=client_identity(request),
        origin=request.headers.get("origin"),
    )
    return _to_response(result)


@router.options("/location-autocomplete")
@router.options("/api/geoapify/autocomplete", include_in_schema=False)
async def location_autocomplete_preflight(
    request: Request,
    proxy: AutocompleteProxy = Depends(get_autocomplete_proxy),
):
    return _to_response(proxy.preflight(request.headers.get("origin")))
