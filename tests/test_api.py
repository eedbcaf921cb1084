from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.models import GameSummary
from app.services.assets import AssetPreloader
from app.services.catalog import CatalogLoader, CatalogSource, PopularitySeeder
from app.services.details import DetailBatchFetcher
from app.services.orchestrator import LoadingOrchestrator
from app.services.session import BrowseSession
from app.services.steam import SteamClient


class MemoryPreferences:
    def __init__(self):
        self.favorites: set[int] = set()

    async def get_favorites(self):
        return set(self.favorites)

    async def toggle_favorite(self, appid: int) -> bool:
        self.favorites ^= {appid}
        return appid in self.favorites

    async def set_last_query(self, query):
        pass

    async def set_last_filters(self, filters):
        pass

    async def set_last_sort(self, sort):
        pass


def _upstream(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://upstream.test")


@pytest.fixture
def client() -> TestClient:
    settings = Settings(_env_file=None)

    def steam_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/ISteamUserStats"):
            return httpx.Response(200, json={"response": {"player_count": 42}})
        return httpx.Response(200, json={"path": request.url.path, "query": dict(request.url.params)})

    def store_handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("store unreachable", request=request)

    api_http = _upstream(steam_handler)
    store_http = _upstream(store_handler)
    steam = SteamClient(settings, api_http, store_http)
    fetcher = DetailBatchFetcher(settings, steam)
    orchestrator = LoadingOrchestrator(
        settings,
        CatalogLoader(settings, CatalogSource(steam), PopularitySeeder(fetcher)),
        fetcher,
        AssetPreloader(api_http),
    )
    orchestrator.dataset.populate(
        [
            GameSummary(appid=20, name="Team Fortress Classic"),
            GameSummary(appid=10, name="Counter-Strike"),
            GameSummary(appid=30, name="Day of Defeat"),
        ]
    )
    session = BrowseSession(settings, orchestrator, MemoryPreferences())  # type: ignore[arg-type]

    app = create_app()
    app.state.browse_session = session
    app.state.steam_client = steam
    app.state.steam_api_http = api_http
    app.state.steam_store_http = store_http
    return TestClient(app)


def test_healthcheck(client: TestClient) -> None:
    assert client.get("/healthz").json() == {"status": "ok"}


def test_games_endpoint_returns_sorted_page_with_status(client: TestClient) -> None:
    response = client.get("/api/games", params={"sort": "appid", "limit": 2})

    assert response.status_code == 200
    payload = response.json()
    assert [item["appid"] for item in payload["items"]] == [10, 20]
    assert payload["totalCount"] == 3
    assert payload["totalPages"] == 2
    assert payload["items"][0]["detailState"] == "unfetched"
    assert payload["status"]["phase"] == "idle"


def test_games_endpoint_searches_by_name(client: TestClient) -> None:
    payload = client.get("/api/games", params={"q": "counter"}).json()

    assert [item["name"] for item in payload["items"]] == ["Counter-Strike"]


def test_games_endpoint_rejects_invalid_input(client: TestClient) -> None:
    assert client.get("/api/games", params={"q": "c"}).status_code == 400
    assert client.get("/api/games", params={"platform": "amiga"}).status_code == 400
    assert client.get("/api/games", params={"sort": "metacritic"}).status_code == 400
    assert client.get("/api/games", params={"limit": 500}).status_code == 400


def test_toggle_favorite(client: TestClient) -> None:
    response = client.post("/api/favorites/10")
    assert response.json() == {"appid": 10, "isFavorite": True}

    favorites = client.get("/api/games", params={"favoritesOnly": "true"}).json()
    flagged = [item["appid"] for item in favorites["items"] if item["isFavorite"]]
    assert flagged == [10]

    assert client.post("/api/favorites/999").status_code == 404


def test_retry_is_ignored_while_idle(client: TestClient) -> None:
    payload = client.post("/api/retry").json()

    assert payload["phase"] == "idle"
    assert payload["ready"] is False


def test_player_count(client: TestClient) -> None:
    assert client.get("/api/games/730/players").json() == {"appid": 730, "playerCount": 42}


def test_proxy_forwards_path_and_query(client: TestClient) -> None:
    response = client.get("/api/steam/ISteamApps/GetAppList/v2/", params={"format": "json"})

    assert response.status_code == 200
    assert response.json() == {
        "path": "/ISteamApps/GetAppList/v2/",
        "query": {"format": "json"},
    }


def test_proxy_reports_bad_gateway_on_transport_failure(client: TestClient) -> None:
    response = client.get("/api/steamstore/api/appdetails", params={"appids": "10"})

    assert response.status_code == 502
    assert response.json()["error"] == "Proxy request failed"


def test_omitted_filters_stay_active_across_pages(client: TestClient) -> None:
    session = client.app.state.browse_session

    client.get("/api/games", params={"genre": "Action", "q": "counter"})
    response = client.get("/api/games", params={"page": 2})

    assert response.status_code == 200
    assert response.json()["page"] == 2
    assert session.view.query == "counter"
    assert session.view.filters.genre == "Action"


def test_empty_filter_param_clears_it(client: TestClient) -> None:
    session = client.app.state.browse_session

    client.get("/api/games", params={"genre": "Action", "platform": "linux"})
    client.get("/api/games", params={"genre": ""})

    assert session.view.filters.genre is None
    assert session.view.filters.platform == "linux"
