"""Failure-tolerant preloading of header images."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

import httpx

from ..cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PreloadResult:
    """Outcome counts for a preload pass."""

    loaded: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.loaded + self.failed


class AssetPreloader:
    """Warm header images so revealed cards do not render empty."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        concurrency: int = 6,
        timeout: float = 10.0,
    ) -> None:
        self._client = http_client
        self._semaphore = asyncio.Semaphore(concurrency)
        self._timeout = timeout
        self._warm: set[str] = set()

    def is_warm(self, url: str) -> bool:
        return url in self._warm

    async def preload(
        self,
        urls: Sequence[str | None],
        token: CancellationToken,
        on_done: Callable[[bool], None] | None = None,
    ) -> PreloadResult:
        """Fetch each URL once; every attempt counts toward completion.

        Missing URLs and failed downloads are reported as failures rather than
        raised. ``on_done`` is called after each attempt while the session is
        still active.
        """

        async def _load(url: str | None) -> bool:
            ok = await self._fetch(url, token)
            if on_done is not None and not token.cancelled:
                on_done(ok)
            return ok

        outcomes = await asyncio.gather(*(_load(url) for url in urls))
        token.raise_if_cancelled()
        loaded = sum(1 for ok in outcomes if ok)
        return PreloadResult(loaded=loaded, failed=len(outcomes) - loaded)

    async def _fetch(self, url: str | None, token: CancellationToken) -> bool:
        if not url:
            return False
        if url in self._warm:
            return True
        async with self._semaphore:
            if token.cancelled:
                return False
            try:
                response = await self._client.get(url, timeout=self._timeout)
            except httpx.HTTPError as exc:
                logger.warning("Preloading %s failed: %s", url, exc)
                return False
        if response.status_code >= 400:
            logger.info("Preloading %s returned HTTP %s", url, response.status_code)
            return False
        self._warm.add(url)
        return True
