"""Pass-through routes forwarding local paths to the Steam upstreams."""

from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# Local prefix -> name of the ``app.state`` attribute holding the upstream client.
PROXY_PREFIXES: dict[str, str] = {
    "/api/steam": "steam_api_http",
    "/api/steamstore": "steam_store_http",
}

_PASSTHROUGH_HEADERS = ("content-type", "cache-control", "expires", "last-modified")


def _upstream_client(fastapi_app: FastAPI, attribute: str) -> httpx.AsyncClient:
    client = getattr(fastapi_app.state, attribute, None)
    if not isinstance(client, httpx.AsyncClient):
        raise RuntimeError(f"Proxy client {attribute} not initialised")
    return client


async def forward(client: httpx.AsyncClient, path: str, request: Request) -> Response:
    """Relay a GET to ``client`` keeping the query string intact."""

    upstream_path = "/" + path.lstrip("/")
    logger.info("Proxying %s%s", client.base_url, upstream_path)
    try:
        upstream = await client.get(
            upstream_path, params=list(request.query_params.multi_items())
        )
    except httpx.HTTPError as exc:
        logger.warning("Proxy request to %s failed: %s", upstream_path, exc)
        return JSONResponse(
            {"error": "Proxy request failed", "details": str(exc) or exc.__class__.__name__},
            status_code=502,
        )

    headers = {
        name: upstream.headers[name]
        for name in _PASSTHROUGH_HEADERS
        if name in upstream.headers and name != "content-type"
    }
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=headers,
        media_type=upstream.headers.get("content-type"),
    )


def _build_endpoint(fastapi_app: FastAPI, attribute: str):
    async def _proxy(request: Request, path: str) -> Response:
        client = _upstream_client(fastapi_app, attribute)
        return await forward(client, path, request)

    return _proxy


def register_proxy_routes(fastapi_app: FastAPI) -> None:
    for prefix, attribute in PROXY_PREFIXES.items():
        fastapi_app.add_api_route(
            f"{prefix}/{{path:path}}",
            _build_endpoint(fastapi_app, attribute),
            methods=["GET"],
            name=f"proxy_{attribute}",
            include_in_schema=False,
        )
