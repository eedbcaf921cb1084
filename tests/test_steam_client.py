from __future__ import annotations

import httpx
import pytest

from app.config import Settings
from app.errors import NetworkError, RateLimitError, UpstreamStatusError, UpstreamTimeout
from app.services.steam import APP_DETAILS_PATH, APP_LIST_PATH, SteamClient


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _client(handler, **overrides) -> tuple[SteamClient, httpx.AsyncClient]:
    settings = Settings(_env_file=None, **overrides)
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://steam.test"
    )
    return SteamClient(settings, http), http


@pytest.mark.anyio("asyncio")
async def test_fetch_app_list_skips_malformed_entries() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.url.path == APP_LIST_PATH
        return httpx.Response(
            200,
            json={
                "applist": {
                    "apps": [
                        {"appid": 10, "name": "Counter-Strike"},
                        {"appid": 20, "name": ""},
                        {"name": "No id"},
                        "garbage",
                        {"appid": 30, "name": "Team Fortress Classic"},
                    ]
                }
            },
        )

    client, http = _client(handler, STEAM_API_KEY="secret")
    async with http:
        summaries = await client.fetch_app_list()

    assert [summary.appid for summary in summaries] == [10, 30]
    assert seen[0].url.params["key"] == "secret"


@pytest.mark.anyio("asyncio")
async def test_fetch_app_list_treats_404_as_empty() -> None:
    client, http = _client(lambda request: httpx.Response(404))
    async with http:
        assert await client.fetch_app_list() == []


@pytest.mark.anyio("asyncio")
async def test_fetch_app_list_maps_failures() -> None:
    client, http = _client(lambda request: httpx.Response(503))
    async with http:
        with pytest.raises(UpstreamStatusError) as excinfo:
            await client.fetch_app_list()
    assert excinfo.value.status_code == 503

    def raise_connect(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client, http = _client(raise_connect)
    async with http:
        with pytest.raises(NetworkError):
            await client.fetch_app_list()

    def raise_timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client, http = _client(raise_timeout)
    async with http:
        with pytest.raises(UpstreamTimeout):
            await client.fetch_app_list()


@pytest.mark.anyio("asyncio")
async def test_fetch_app_details_sends_ids_and_language() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == APP_DETAILS_PATH
        assert request.url.params["appids"] == "10,20"
        assert request.url.params["l"] == "english"
        return httpx.Response(200, json={"10": {"success": True, "data": {"name": "CS"}}})

    client, http = _client(handler, STORE_LANGUAGE="english")
    async with http:
        data = await client.fetch_app_details([10, 20])

    assert data == {"10": {"success": True, "data": {"name": "CS"}}}


@pytest.mark.anyio("asyncio")
async def test_fetch_app_details_raises_on_rate_limit() -> None:
    client, http = _client(lambda request: httpx.Response(429))
    async with http:
        with pytest.raises(RateLimitError):
            await client.fetch_app_details([10])


@pytest.mark.anyio("asyncio")
async def test_fetch_app_details_ignores_non_mapping_payload() -> None:
    client, http = _client(lambda request: httpx.Response(200, json=[]))
    async with http:
        assert await client.fetch_app_details([10]) == {}
        assert await client.fetch_app_details([]) == {}


@pytest.mark.anyio("asyncio")
async def test_fetch_player_count() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["appid"] == "730":
            return httpx.Response(200, json={"response": {"player_count": 1234, "result": 1}})
        return httpx.Response(404)

    client, http = _client(handler)
    async with http:
        assert await client.fetch_player_count(730) == 1234
        assert await client.fetch_player_count(1) is None
