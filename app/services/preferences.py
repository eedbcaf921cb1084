"""Key/value persistence for favorites and the last browse inputs."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import Preference
from ..models import FilterSpec, SortSpec

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorites"
LAST_QUERY_KEY = "last_query"
LAST_FILTERS_KEY = "last_filters"
LAST_SORT_KEY = "last_sort"


class PreferenceStore:
    """Durable store for favorites and last-used query, filters and sort."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _get(self, key: str) -> Any:
        async with self._session_factory() as session:
            record = await session.get(Preference, key)
            return record.value if record is not None else None

    async def _set(self, key: str, value: Any) -> None:
        async with self._session_factory() as session:
            record = await session.get(Preference, key)
            if record is None:
                session.add(Preference(key=key, value=value))
            else:
                record.value = value
            await session.commit()

    async def get_favorites(self) -> set[int]:
        raw = await self._get(FAVORITES_KEY)
        if not isinstance(raw, list):
            return set()
        favorites: set[int] = set()
        for value in raw:
            try:
                favorites.add(int(value))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid stored favorite %r", value)
        return favorites

    async def set_favorites(self, favorites: set[int]) -> None:
        await self._set(FAVORITES_KEY, sorted(favorites))

    async def toggle_favorite(self, appid: int) -> bool:
        """Flip the favorite flag for ``appid`` and return the new value."""

        favorites = await self.get_favorites()
        if appid in favorites:
            favorites.discard(appid)
            is_favorite = False
        else:
            favorites.add(appid)
            is_favorite = True
        await self.set_favorites(favorites)
        return is_favorite

    async def get_last_query(self) -> str | None:
        raw = await self._get(LAST_QUERY_KEY)
        return raw if isinstance(raw, str) else None

    async def set_last_query(self, query: str) -> None:
        await self._set(LAST_QUERY_KEY, query)

    async def get_last_filters(self) -> FilterSpec | None:
        raw = await self._get(LAST_FILTERS_KEY)
        if raw is None:
            return None
        try:
            return FilterSpec.model_validate(raw)
        except ValidationError:
            logger.warning("Stored filters are invalid; using defaults")
            return None

    async def set_last_filters(self, filters: FilterSpec) -> None:
        await self._set(LAST_FILTERS_KEY, filters.to_payload())

    async def get_last_sort(self) -> SortSpec | None:
        raw = await self._get(LAST_SORT_KEY)
        if raw is None:
            return None
        try:
            return SortSpec.model_validate(raw)
        except ValidationError:
            logger.warning("Stored sort is invalid; using defaults")
            return None

    async def set_last_sort(self, sort: SortSpec) -> None:
        await self._set(LAST_SORT_KEY, sort.model_dump())

    async def clear(self) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(Preference))
            await session.commit()

    async def keys(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(select(Preference.key).order_by(Preference.key))
            return [row[0] for row in result.all()]
