"""Single-user browse session tying inputs, persistence and loading together."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import replace

from ..config import Settings
from ..models import FilterSpec, PageSpec, SortSpec
from ..pipeline import BrowseView, DerivedPage
from .orchestrator import PAGE_PHASES, LoadingOrchestrator, LoadPhase, LoadStatus
from .preferences import PreferenceStore

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 100


class BrowseSession:
    """Holds the current browse inputs and drives the orchestrator."""

    def __init__(
        self,
        settings: Settings,
        orchestrator: LoadingOrchestrator,
        preferences: PreferenceStore,
    ):
        self._settings = settings
        self._orchestrator = orchestrator
        self._preferences = preferences
        self._favorites: set[int] = set()
        self._view = BrowseView(page=PageSpec(limit=settings.default_page_size))
        self._load_task: asyncio.Task[None] | None = None
        self._page_tasks: set[asyncio.Task[DerivedPage | None]] = set()

    @property
    def view(self) -> BrowseView:
        return self._view

    @property
    def status(self) -> LoadStatus:
        return self._orchestrator.status

    @property
    def favorites(self) -> frozenset[int]:
        return frozenset(self._favorites)

    async def start(self, *, wait: bool = False) -> None:
        """Restore the last inputs and begin loading the catalog."""

        await self._restore()
        self._schedule_load()
        if wait and self._load_task is not None:
            await self._load_task

    async def stop(self) -> None:
        for task in (self._load_task, *self._page_tasks):
            if task is None or task.done():
                continue
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self._load_task = None
        self._page_tasks.clear()

    async def _restore(self) -> None:
        self._favorites = await self._preferences.get_favorites()
        query = await self._preferences.get_last_query() or ""
        filters = await self._preferences.get_last_filters() or FilterSpec()
        sort = await self._preferences.get_last_sort() or SortSpec()
        self._view = BrowseView(
            query=query,
            filters=filters,
            sort=sort,
            page=PageSpec(limit=self._settings.default_page_size),
            favorites=frozenset(self._favorites),
        )

    def _schedule_load(self) -> None:
        existing = self._load_task
        if existing and not existing.done():
            return

        async def _runner() -> None:
            try:
                status = await self._orchestrator.load_catalog()
                if status.phase in PAGE_PHASES:
                    await self._orchestrator.show(self._view)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Background catalog load failed: %s", exc)

        self._load_task = asyncio.create_task(_runner())

    @staticmethod
    def validate_query(query: str) -> str:
        if len(query) > MAX_QUERY_LENGTH:
            raise ValueError(
                f"Search query must be at most {MAX_QUERY_LENGTH} characters"
            )
        stripped = query.strip()
        if stripped and len(stripped) < MIN_QUERY_LENGTH:
            raise ValueError(
                f"Search query must be at least {MIN_QUERY_LENGTH} characters"
            )
        return stripped

    def validate_limit(self, limit: int) -> int:
        if limit < 1 or limit > self._settings.max_page_size:
            raise ValueError(
                f"Page size must be between 1 and {self._settings.max_page_size}"
            )
        return limit

    async def browse(
        self,
        *,
        query: str | None = None,
        filters: FilterSpec | None = None,
        sort: SortSpec | None = None,
        page: int | None = None,
        limit: int | None = None,
        wait: bool = True,
    ) -> DerivedPage:
        """Apply new inputs and return the visible page.

        Changing the query, filters, sort or page size returns to page 1
        unless a page is given explicitly. With ``wait`` the call returns
        once the page is ready; otherwise loading continues in the background
        and the current derivation is returned immediately.
        """

        current = self._view
        new_query = current.query if query is None else self.validate_query(query)
        new_filters = current.filters if filters is None else filters
        new_sort = current.sort if sort is None else sort
        new_limit = current.page.limit if limit is None else self.validate_limit(limit)

        if new_query != current.query:
            await self._preferences.set_last_query(new_query)
        if new_filters != current.filters:
            await self._preferences.set_last_filters(new_filters)
        if new_sort != current.sort:
            await self._preferences.set_last_sort(new_sort)

        inputs_changed = (
            new_query != current.query
            or new_filters != current.filters
            or new_sort != current.sort
            or new_limit != current.page.limit
        )
        if page is None:
            page = 1 if inputs_changed else current.page.page
        view = BrowseView(
            query=new_query,
            filters=new_filters,
            sort=new_sort,
            page=PageSpec(page=page, limit=new_limit),
            favorites=frozenset(self._favorites),
        )
        self._view = view

        if wait:
            return await self._orchestrator.show(view)
        task = asyncio.create_task(self._show_in_background(view))
        self._page_tasks.add(task)
        task.add_done_callback(self._page_tasks.discard)
        return self._orchestrator.page_for(view)

    async def _show_in_background(self, view: BrowseView) -> DerivedPage | None:
        try:
            return await self._orchestrator.show(view)
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception("Background page load failed: %s", exc)
            return None

    async def toggle_favorite(self, appid: int) -> bool:
        if appid not in self._orchestrator.dataset:
            raise KeyError(f"Unknown appid {appid}")
        is_favorite = await self._preferences.toggle_favorite(appid)
        if is_favorite:
            self._favorites.add(appid)
        else:
            self._favorites.discard(appid)
        self._view = replace(self._view, favorites=frozenset(self._favorites))
        return is_favorite

    async def retry(self, *, wait: bool = False) -> LoadStatus:
        """Restart catalog loading after an ``Error`` or ``Empty`` outcome."""

        if self._orchestrator.phase not in (LoadPhase.ERROR, LoadPhase.EMPTY):
            logger.info("Ignoring retry while %s", self._orchestrator.phase.value)
            return self.status
        self._orchestrator.reset()
        self._schedule_load()
        if wait and self._load_task is not None:
            await self._load_task
        return self.status

    async def refresh(self) -> DerivedPage:
        """Re-fetch visible records whose detail was previously absent."""

        return await self._orchestrator.show(self._view, refresh_absent=True)

    def current_page(self) -> DerivedPage:
        return self._orchestrator.page_for(self._view)
