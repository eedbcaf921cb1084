from __future__ import annotations

import pytest

from app.database import Database
from app.db_models import Preference
from app.models import FilterSpec, SortSpec
from app.services.preferences import LAST_SORT_KEY, PreferenceStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def database(tmp_path, anyio_backend):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'preferences.db'}")
    await database.create_all()
    try:
        yield database
    finally:
        await database.dispose()


@pytest.mark.anyio("asyncio")
async def test_defaults_when_nothing_stored(database: Database) -> None:
    store = PreferenceStore(database.session_factory)

    assert await store.get_favorites() == set()
    assert await store.get_last_query() is None
    assert await store.get_last_filters() is None
    assert await store.get_last_sort() is None


@pytest.mark.anyio("asyncio")
async def test_toggle_favorite_round_trips(database: Database) -> None:
    store = PreferenceStore(database.session_factory)

    assert await store.toggle_favorite(730) is True
    assert await store.toggle_favorite(570) is True
    assert await store.toggle_favorite(730) is False

    reopened = PreferenceStore(database.session_factory)
    assert await reopened.get_favorites() == {570}


@pytest.mark.anyio("asyncio")
async def test_last_inputs_persist(database: Database) -> None:
    store = PreferenceStore(database.session_factory)
    filters = FilterSpec(genre="RPG", is_free=False, platform="linux")
    sort = SortSpec(field="release_date", order="desc")

    await store.set_last_query("portal")
    await store.set_last_filters(filters)
    await store.set_last_sort(sort)

    assert await store.get_last_query() == "portal"
    assert await store.get_last_filters() == filters
    assert await store.get_last_sort() == sort
    assert await store.keys() == ["last_filters", "last_query", "last_sort"]


@pytest.mark.anyio("asyncio")
async def test_invalid_stored_values_fall_back_to_defaults(database: Database) -> None:
    async with database.session() as session:
        session.add(Preference(key=LAST_SORT_KEY, value={"field": "metacritic"}))
        session.add(Preference(key="favorites", value=[10, "not-a-number", "20"]))
        await session.commit()

    store = PreferenceStore(database.session_factory)

    assert await store.get_last_sort() is None
    assert await store.get_favorites() == {10, 20}

    await store.clear()
    assert await store.keys() == []
