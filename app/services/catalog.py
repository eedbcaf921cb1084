"""Catalog list loading and popularity seeding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ..cancellation import CancellationToken
from ..config import Settings
from ..dataset import DetailState, Present
from ..models import GameSummary
from ..popular_games import dedupe_appids
from .details import DetailBatchFetcher
from .steam import SteamClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SeedResult:
    """Merged catalog ordering and any details obtained while resolving it."""

    summaries: list[GameSummary]
    details: dict[int, DetailState] = field(default_factory=dict)
    dropped: list[int] = field(default_factory=list)


class CatalogSource:
    """Fetch the full list of catalog summaries."""

    def __init__(self, client: SteamClient):
        self._client = client

    async def fetch_catalog(self, token: CancellationToken) -> list[GameSummary]:
        """Return every summary; an empty list is a valid outcome.

        Raises ``NetworkError``/``UpstreamTimeout``/``UpstreamStatusError`` on
        failure and ``OperationCancelled`` if the session was cancelled while
        the request was in flight.
        """

        token.raise_if_cancelled()
        summaries = await self._client.fetch_app_list()
        token.raise_if_cancelled()
        logger.info("Fetched %s app summaries", len(summaries))
        return summaries


class PopularitySeeder:
    """Place curated titles ahead of the bulk list without duplicates."""

    def __init__(self, fetcher: DetailBatchFetcher):
        self._fetcher = fetcher

    async def seed(
        self,
        curated: Iterable[int],
        bulk: Sequence[GameSummary],
        token: CancellationToken,
        *,
        cap: int = 0,
    ) -> SeedResult:
        """Merge ``curated`` ids in front of ``bulk``.

        Curated ids are deduplicated keeping first occurrences. Names come
        from the bulk list when it carries the id; otherwise the id is looked
        up through the detail fetcher and dropped if that lookup fails. The
        optional ``cap`` truncates the merged sequence, never the raw bulk.
        """

        curated_ids = dedupe_appids(curated)
        bulk_names: dict[int, str] = {}
        for summary in bulk:
            bulk_names.setdefault(summary.appid, summary.name)

        unresolved = [appid for appid in curated_ids if appid not in bulk_names]
        details: dict[int, DetailState] = {}
        if unresolved:
            logger.info("Resolving %s curated ids missing from the app list", len(unresolved))
            details = await self._fetcher.fetch_details(unresolved, token)

        prefix: list[GameSummary] = []
        dropped: list[int] = []
        for appid in curated_ids:
            name = bulk_names.get(appid)
            if name is None:
                state = details.get(appid)
                if isinstance(state, Present) and state.detail.name.strip():
                    name = state.detail.name.strip()
            if name is None:
                dropped.append(appid)
                continue
            prefix.append(GameSummary(appid=appid, name=name))

        if dropped:
            logger.info("Dropped %s curated ids that could not be resolved", len(dropped))

        seeded = {summary.appid for summary in prefix}
        remainder: list[GameSummary] = []
        for summary in bulk:
            if summary.appid in seeded:
                continue
            seeded.add(summary.appid)
            remainder.append(summary)

        merged = prefix + remainder
        if cap > 0:
            merged = merged[:cap]
        kept = {summary.appid for summary in merged}
        return SeedResult(
            summaries=merged,
            details={
                appid: state
                for appid, state in details.items()
                if appid in kept and isinstance(state, Present)
            },
            dropped=dropped,
        )


class CatalogLoader:
    """Build the session catalog from the app list and the curated ordering."""

    def __init__(
        self,
        settings: Settings,
        source: CatalogSource,
        seeder: PopularitySeeder,
        curated: Sequence[int] = (),
    ):
        self._settings = settings
        self._source = source
        self._seeder = seeder
        self._curated = tuple(curated)

    async def load(self, token: CancellationToken) -> SeedResult:
        bulk = await self._source.fetch_catalog(token)
        if not bulk:
            return SeedResult(summaries=[])
        cap = self._settings.max_games
        if not self._settings.prioritize_popular or not self._curated:
            unique: dict[int, GameSummary] = {}
            for summary in bulk:
                unique.setdefault(summary.appid, summary)
            summaries = list(unique.values())
            return SeedResult(summaries=summaries[:cap] if cap > 0 else summaries)
        return await self._seeder.seed(self._curated, bulk, token, cap=cap)
