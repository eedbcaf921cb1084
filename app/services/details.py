"""Rate-limited batch fetching of store details."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Iterator, Sequence

from pydantic import ValidationError

from ..cancellation import CancellationToken
from ..config import Settings
from ..dataset import Absent, Dataset, DetailState, Present
from ..errors import RateLimitError, UpstreamError
from ..models import GameDetail
from .steam import SteamClient

logger = logging.getLogger(__name__)

BatchCallback = Callable[[dict[int, DetailState]], None]


def chunked(items: Sequence[int], size: int) -> Iterator[list[int]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` ids."""

    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def parse_detail_entry(appid: int, entry: Any) -> DetailState:
    """Resolve one id from an upstream detail mapping."""

    if not isinstance(entry, dict):
        return Absent("missing from response")
    if not entry.get("success"):
        return Absent("upstream reported no data")
    data = entry.get("data")
    if not isinstance(data, dict):
        return Absent("empty data payload")
    try:
        return Present(GameDetail.model_validate(data))
    except ValidationError as exc:
        logger.debug("Malformed detail payload for %s: %s", appid, exc)
        return Absent("malformed data payload")


class DetailBatchFetcher:
    """Fetch store details in sequential batches of concurrent requests.

    Batches never overlap so the store's rate limit is respected; the ids of
    one batch are requested concurrently, ``ids_per_request`` at a time. Every
    requested id resolves to ``Present`` or ``Absent``; a throttled batch is
    degraded to ``Absent`` as a whole after a cooldown instead of retrying.
    """

    def __init__(
        self,
        settings: Settings,
        client: SteamClient,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._batch_size = settings.detail_batch_size
        self._ids_per_request = settings.ids_per_request
        self._batch_delay = settings.batch_delay_seconds
        self._cooldown = settings.rate_limit_cooldown_seconds
        self._sleep = sleep

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def fetch_details(
        self,
        appids: Iterable[int],
        token: CancellationToken,
        *,
        dataset: Dataset | None = None,
        on_batch: BatchCallback | None = None,
    ) -> dict[int, DetailState]:
        """Resolve every id in ``appids``.

        Each finished batch is committed to ``dataset`` (when given) before the
        next one starts. Once ``token`` is cancelled no further batch is issued
        and the results of any batch still in flight are discarded;
        ``OperationCancelled`` is raised to the caller.
        """

        ordered = list(dict.fromkeys(appids))
        results: dict[int, DetailState] = {}
        if not ordered:
            return results

        batches = list(chunked(ordered, self._batch_size))
        for index, batch in enumerate(batches):
            token.raise_if_cancelled()
            if index > 0 and self._batch_delay > 0:
                await self._sleep(self._batch_delay)
                token.raise_if_cancelled()

            outcomes, rate_limited = await self._fetch_batch(batch)
            # Anything that arrived after cancellation belongs to a stale session.
            if token.cancelled:
                logger.info(
                    "Discarding %s detail results for cancelled session %s",
                    len(outcomes),
                    token.session,
                )
                token.raise_if_cancelled()

            self.commit(outcomes, token, dataset=dataset)
            results.update(outcomes)
            if on_batch is not None:
                on_batch(outcomes)

            if rate_limited:
                logger.warning(
                    "Detail batch %s/%s was rate limited; marking %s ids absent and cooling down %.1fs",
                    index + 1,
                    len(batches),
                    len(batch),
                    self._cooldown,
                )
                if self._cooldown > 0:
                    await self._sleep(self._cooldown)

        return results

    def commit(
        self,
        outcomes: dict[int, DetailState],
        token: CancellationToken,
        *,
        dataset: Dataset | None,
    ) -> int:
        """Merge ``outcomes`` into ``dataset`` unless the session was cancelled."""

        token.raise_if_cancelled()
        if dataset is None:
            return 0
        return dataset.merge_details(outcomes)

    async def _fetch_batch(self, batch: list[int]) -> tuple[dict[int, DetailState], bool]:
        groups = list(chunked(batch, self._ids_per_request))
        responses = await asyncio.gather(
            *(self._client.fetch_app_details(group) for group in groups),
            return_exceptions=True,
        )

        if any(isinstance(response, RateLimitError) for response in responses):
            return {appid: Absent("rate limited") for appid in batch}, True

        outcomes: dict[int, DetailState] = {}
        for group, response in zip(groups, responses):
            if isinstance(response, BaseException):
                if not isinstance(response, Exception):
                    raise response
                if not isinstance(response, UpstreamError):
                    logger.error(
                        "Unexpected failure fetching details for %s",
                        group,
                        exc_info=response,
                    )
                else:
                    logger.warning("Detail request for %s failed: %s", group, response)
                for appid in group:
                    outcomes[appid] = Absent(str(response) or response.__class__.__name__)
                continue
            for appid in group:
                outcomes[appid] = parse_detail_entry(appid, response.get(str(appid)))

        absent = sum(1 for state in outcomes.values() if isinstance(state, Absent))
        if absent:
            logger.debug("%s of %s ids in batch resolved as absent", absent, len(batch))
        return outcomes, False
