from __future__ import annotations

import httpx
import pytest

from app.cancellation import SessionCounter
from app.errors import OperationCancelled
from app.services.assets import AssetPreloader


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio("asyncio")
async def test_preload_counts_failures_without_raising() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.path == "/broken.jpg":
            return httpx.Response(404)
        if request.url.path == "/offline.jpg":
            raise httpx.ConnectError("offline", request=request)
        return httpx.Response(200, content=b"image")

    done: list[bool] = []
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        preloader = AssetPreloader(http, concurrency=2)
        result = await preloader.preload(
            [
                "https://cdn.test/ok.jpg",
                "https://cdn.test/broken.jpg",
                None,
                "https://cdn.test/offline.jpg",
            ],
            SessionCounter().begin(),
            done.append,
        )

    assert result.loaded == 1
    assert result.failed == 3
    assert result.attempted == 4
    assert sorted(done) == [False, False, False, True]
    assert preloader.is_warm("https://cdn.test/ok.jpg")
    assert not preloader.is_warm("https://cdn.test/broken.jpg")
    assert len(requested) == 3


@pytest.mark.anyio("asyncio")
async def test_warm_urls_are_not_downloaded_twice() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, content=b"image")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        preloader = AssetPreloader(http)
        counter = SessionCounter()
        await preloader.preload(["https://cdn.test/a.jpg"], counter.begin())
        result = await preloader.preload(["https://cdn.test/a.jpg"], counter.begin())

    assert calls == 1
    assert result.loaded == 1


@pytest.mark.anyio("asyncio")
async def test_cancelled_preload_raises() -> None:
    counter = SessionCounter()
    token = counter.begin()
    token.cancel()

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200))
    ) as http:
        with pytest.raises(OperationCancelled):
            await AssetPreloader(http).preload(["https://cdn.test/a.jpg"], token)
