"""Entry point for the FastAPI-powered Steam games browser."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .dataset import Dataset
from .database import Database
from .models import FilterSpec, SortSpec
from .popular_games import POPULAR_APPIDS, POPULAR_RANK
from .proxy import register_proxy_routes
from .services.assets import AssetPreloader
from .services.catalog import CatalogLoader, CatalogSource, PopularitySeeder
from .services.details import DetailBatchFetcher
from .services.orchestrator import LoadingOrchestrator
from .services.preferences import PreferenceStore
from .services.session import BrowseSession
from .services.steam import SteamClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    api_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.steam_api_url),
            timeout=httpx.Timeout(settings.request_timeout, connect=10.0),
        )
    )
    store_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.steam_store_url),
            timeout=httpx.Timeout(settings.request_timeout, connect=10.0),
        )
    )
    asset_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, connect=5.0), follow_redirects=True
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    steam = SteamClient(settings, api_http, store_http)
    fetcher = DetailBatchFetcher(settings, steam)
    loader = CatalogLoader(
        settings,
        CatalogSource(steam),
        PopularitySeeder(fetcher),
        curated=POPULAR_APPIDS,
    )
    orchestrator = LoadingOrchestrator(
        settings,
        loader,
        fetcher,
        AssetPreloader(asset_http, concurrency=settings.preload_concurrency),
        Dataset(),
        popularity_rank=POPULAR_RANK,
    )
    browse_session = BrowseSession(
        settings, orchestrator, PreferenceStore(database.session_factory)
    )

    fastapi_app.state.steam_api_http = api_http
    fastapi_app.state.steam_store_http = store_http
    fastapi_app.state.steam_client = steam
    fastapi_app.state.browse_session = browse_session
    fastapi_app.state.database = database
    await browse_session.start()

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await browse_session.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Browse the Steam catalog with popular titles first",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    register_proxy_routes(fastapi_app)
    return fastapi_app


def get_browse_session(fastapi_app: FastAPI) -> BrowseSession:
    session = getattr(fastapi_app.state, "browse_session", None)
    if not isinstance(session, BrowseSession):
        raise RuntimeError("Browse session not initialised")
    return session


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/status")
    async def status_endpoint() -> dict[str, Any]:
        return get_browse_session(fastapi_app).status.to_payload()

    @fastapi_app.get("/api/games")
    async def games_endpoint(
        q: str | None = None,
        genre: str | None = None,
        is_free: str | None = Query(default=None, alias="isFree"),
        platform: str | None = None,
        favorites_only: bool | None = Query(default=None, alias="favoritesOnly"),
        sort: str | None = None,
        order: str | None = None,
        page: int | None = Query(default=None, ge=1),
        limit: int | None = Query(default=None, ge=1),
        wait: bool = True,
    ) -> JSONResponse:
        session = get_browse_session(fastapi_app)
        try:
            # Omitted params keep the active filter; an empty value clears it.
            sent = {
                "genre": genre,
                "isFree": is_free,
                "platform": platform,
                "favoritesOnly": favorites_only,
            }
            filters = FilterSpec.model_validate(
                {
                    **session.view.filters.to_payload(),
                    **{key: value for key, value in sent.items() if value is not None},
                }
            )
            current_sort = session.view.sort
            sort_spec = SortSpec.model_validate(
                {
                    "field": sort or current_sort.field,
                    "order": order or current_sort.order,
                }
            )
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=exc.errors(include_url=False, include_context=False),
            ) from exc

        try:
            derived = await session.browse(
                query=q,
                filters=filters,
                sort=sort_spec,
                page=page,
                limit=limit,
                wait=wait,
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        payload = derived.to_payload()
        payload["status"] = session.status.to_payload()
        return JSONResponse(payload)

    @fastapi_app.post("/api/retry")
    async def retry_endpoint() -> dict[str, Any]:
        status = await get_browse_session(fastapi_app).retry()
        return status.to_payload()

    @fastapi_app.post("/api/refresh")
    async def refresh_endpoint() -> JSONResponse:
        session = get_browse_session(fastapi_app)
        derived = await session.refresh()
        payload = derived.to_payload()
        payload["status"] = session.status.to_payload()
        return JSONResponse(payload)

    @fastapi_app.post("/api/favorites/{appid}")
    async def toggle_favorite_endpoint(appid: int) -> dict[str, Any]:
        session = get_browse_session(fastapi_app)
        try:
            is_favorite = await session.toggle_favorite(appid)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"appid": appid, "isFavorite": is_favorite}

    @fastapi_app.get("/api/games/{appid}/players")
    async def player_count_endpoint(appid: int) -> dict[str, Any]:
        steam = getattr(fastapi_app.state, "steam_client", None)
        if not isinstance(steam, SteamClient):
            raise RuntimeError("Steam client not initialised")
        count = await steam.fetch_player_count(appid)
        return {"appid": appid, "playerCount": count}


app = create_app()
