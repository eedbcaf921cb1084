"""Loading phase state machine for the catalog and the visible page."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Mapping

from ..cancellation import CancellationToken, SessionCounter
from ..config import Settings
from ..dataset import Dataset
from ..errors import OperationCancelled, UpstreamError
from ..pipeline import BrowseView, DerivedPage, derive_view
from .assets import AssetPreloader
from .catalog import CatalogLoader
from .details import DetailBatchFetcher

logger = logging.getLogger(__name__)


class LoadPhase(str, Enum):
    IDLE = "idle"
    LIST_LOADING = "list_loading"
    ERROR = "error"
    EMPTY = "empty"
    LIST_LOADED = "list_loaded"
    DETAILS_LOADING = "details_loading"
    ASSETS_LOADING = "assets_loading"
    READY = "ready"


_TRANSITIONS: dict[LoadPhase, frozenset[LoadPhase]] = {
    LoadPhase.IDLE: frozenset({LoadPhase.LIST_LOADING}),
    LoadPhase.LIST_LOADING: frozenset(
        {LoadPhase.ERROR, LoadPhase.EMPTY, LoadPhase.LIST_LOADED}
    ),
    LoadPhase.LIST_LOADED: frozenset({LoadPhase.DETAILS_LOADING}),
    LoadPhase.DETAILS_LOADING: frozenset(
        {
            LoadPhase.DETAILS_LOADING,
            LoadPhase.ASSETS_LOADING,
            LoadPhase.READY,
            LoadPhase.ERROR,
        }
    ),
    LoadPhase.ASSETS_LOADING: frozenset(
        {LoadPhase.DETAILS_LOADING, LoadPhase.READY, LoadPhase.ERROR}
    ),
    LoadPhase.READY: frozenset({LoadPhase.DETAILS_LOADING}),
    LoadPhase.ERROR: frozenset({LoadPhase.IDLE}),
    LoadPhase.EMPTY: frozenset({LoadPhase.IDLE}),
}

PAGE_PHASES = frozenset(
    {
        LoadPhase.DETAILS_LOADING,
        LoadPhase.ASSETS_LOADING,
        LoadPhase.READY,
    }
)


@dataclass
class LoadStatus:
    """Single progress signal exposed to clients."""

    phase: LoadPhase = LoadPhase.IDLE
    progress: int = 0
    message: str = "Idle"
    error: str | None = None
    session: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "progress": self.progress,
            "message": self.message,
            "error": self.error,
            "session": self.session,
            "ready": self.phase is LoadPhase.READY,
        }


class LoadingOrchestrator:
    """Sequence catalog, detail and asset loading into one status.

    Each catalog load and each page load runs under its own session token.
    Starting a new session cancels the previous token, and results that
    arrive for a stale token are dropped before they touch the dataset or
    the status.
    """

    def __init__(
        self,
        settings: Settings,
        loader: CatalogLoader,
        fetcher: DetailBatchFetcher,
        preloader: AssetPreloader,
        dataset: Dataset | None = None,
        *,
        popularity_rank: Mapping[int, int] | None = None,
    ):
        self._settings = settings
        self._loader = loader
        self._fetcher = fetcher
        self._preloader = preloader
        self._dataset = dataset if dataset is not None else Dataset()
        self._rank = dict(popularity_rank or {})
        self._sessions = SessionCounter()
        self._status = LoadStatus()
        self._activity = 0

    @property
    def status(self) -> LoadStatus:
        return self._status

    @property
    def phase(self) -> LoadPhase:
        return self._status.phase

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    def page_for(self, view: BrowseView) -> DerivedPage:
        """Derive the visible page from a fresh snapshot."""

        return derive_view(self._dataset.snapshot(), view, self._rank)

    def _transition(
        self,
        phase: LoadPhase,
        *,
        progress: int,
        message: str,
        error: str | None = None,
        session: int | None = None,
    ) -> None:
        current = self._status.phase
        if phase not in _TRANSITIONS[current]:
            raise RuntimeError(f"Illegal load phase transition {current.value} -> {phase.value}")
        logger.debug("Load phase %s -> %s (%s%%)", current.value, phase.value, progress)
        self._status = LoadStatus(
            phase=phase,
            progress=progress,
            message=message,
            error=error,
            session=self._status.session if session is None else session,
        )

    def _report(self, token: CancellationToken, progress: int, message: str) -> None:
        """Advance progress within the running session, never backwards."""

        if not self._sessions.is_current(token):
            return
        self._status.progress = max(self._status.progress, min(progress, 100))
        self._status.message = message

    def _ensure_current(self, token: CancellationToken) -> None:
        token.raise_if_cancelled()
        if self._sessions.current is not token:
            raise OperationCancelled(token.session)

    async def load_catalog(self) -> LoadStatus:
        """Run the list-loading phase from ``Idle``."""

        token = self._sessions.begin()
        self._transition(
            LoadPhase.LIST_LOADING,
            progress=0,
            message="Loading catalog",
            session=token.session,
        )
        try:
            result = await self._loader.load(token)
        except OperationCancelled:
            logger.info("Catalog load for session %s was cancelled", token.session)
            return self._status
        except UpstreamError as exc:
            if self._sessions.is_current(token):
                logger.warning("Catalog load failed: %s", exc)
                self._transition(
                    LoadPhase.ERROR,
                    progress=0,
                    message="Failed to load catalog",
                    error=str(exc) or exc.__class__.__name__,
                )
            return self._status
        except Exception as exc:
            logger.exception("Unexpected failure while loading the catalog")
            if self._sessions.is_current(token):
                self._transition(
                    LoadPhase.ERROR,
                    progress=0,
                    message="Failed to load catalog",
                    error=str(exc) or exc.__class__.__name__,
                )
            return self._status

        if not self._sessions.is_current(token):
            logger.info("Discarding catalog for stale session %s", token.session)
            return self._status

        if not result.summaries:
            self._transition(LoadPhase.EMPTY, progress=100, message="No games found")
            return self._status

        added = self._dataset.populate(result.summaries)
        self._fetcher.commit(result.details, token, dataset=self._dataset)
        logger.info("Catalog loaded with %s games", added)
        low = self._settings.low_watermark
        self._transition(LoadPhase.LIST_LOADED, progress=low, message=f"Loaded {added} games")
        self._transition(LoadPhase.DETAILS_LOADING, progress=low, message="Loading game details")
        return self._status

    def reset(self) -> None:
        """Return to ``Idle`` after a terminal ``Error`` or ``Empty`` phase."""

        if LoadPhase.IDLE not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Cannot retry while {self.phase.value}")
        self._sessions.begin().cancel()
        self._transition(LoadPhase.IDLE, progress=0, message="Idle")

    async def show(self, view: BrowseView, *, refresh_absent: bool = False) -> DerivedPage:
        """Load details and images for the page described by ``view``.

        Before the catalog is available this only derives the page. Otherwise
        a new page session starts, superseding any page load still running.
        With ``refresh_absent`` the visible ``Absent`` records are re-fetched.
        """

        if self.phase not in PAGE_PHASES:
            return self.page_for(view)

        token = self._sessions.begin()
        low = self._settings.low_watermark
        self._transition(
            LoadPhase.DETAILS_LOADING,
            progress=low,
            message="Loading game details",
            session=token.session,
        )
        try:
            finished = await self._watch(self._load_details(view, token, refresh_absent), token)
            if not finished:
                if self._sessions.current is token:
                    logger.warning(
                        "No detail progress for %.1fs in session %s; revealing page",
                        self._settings.stall_timeout_seconds,
                        token.session,
                    )
                    self._transition(LoadPhase.READY, progress=100, message="Finalizing")
                return self.page_for(view)
            await self._load_assets(self.page_for(view), token)
        except OperationCancelled:
            logger.debug("Page session %s superseded", token.session)
        return self.page_for(view)

    async def _watch(self, work: Awaitable[Any], token: CancellationToken) -> bool:
        """Run ``work`` until done or until it stops making progress."""

        task = asyncio.ensure_future(work)
        try:
            seen = self._activity
            while True:
                done, _ = await asyncio.wait(
                    {task}, timeout=self._settings.stall_timeout_seconds
                )
                if done:
                    task.result()
                    return True
                if self._activity == seen:
                    token.cancel()
                    task.cancel()
                    with suppress(asyncio.CancelledError, OperationCancelled):
                        await task
                    return False
                seen = self._activity
        finally:
            if not task.done():
                task.cancel()

    def _report_details(self, view: BrowseView, token: CancellationToken) -> DerivedPage:
        page = self.page_for(view)
        total = len(page.items)
        resolved = sum(1 for item in page.items if item.record.is_resolved)
        fraction = resolved / total if total else 1.0
        progress = self._settings.low_watermark + int(fraction * self._settings.details_band)
        self._report(token, progress, f"Loading game details ({resolved}/{total})")
        return page

    async def _load_details(
        self, view: BrowseView, token: CancellationToken, refresh_absent: bool
    ) -> None:
        forced: list[int] = []
        if refresh_absent:
            forced = self._dataset.absent_ids(self.page_for(view).appids)

        def _on_batch(_: object) -> None:
            self._activity += 1
            self._report_details(view, token)

        # Fetched records can drop out of a filtered page and pull unfetched
        # ones in, so keep going until the visible page is fully resolved.
        while True:
            self._ensure_current(token)
            page = self._report_details(view, token)
            pending = self._dataset.unfetched(page.appids) + forced
            forced = []
            if not pending:
                return
            await self._fetcher.fetch_details(
                pending, token, dataset=self._dataset, on_batch=_on_batch
            )

    async def _load_assets(self, page: DerivedPage, token: CancellationToken) -> None:
        self._ensure_current(token)
        start = self._settings.assets_watermark
        band = 100 - start
        items = page.items[: self._settings.preload_count]
        urls = [
            item.record.present_detail.header_image
            if item.record.present_detail is not None
            else None
            for item in items
        ]
        self._transition(LoadPhase.ASSETS_LOADING, progress=start, message="Loading images")

        completed = 0

        def _on_done(_: bool) -> None:
            nonlocal completed
            completed += 1
            self._activity += 1
            self._report(
                token,
                start + int(completed / len(urls) * band),
                f"Loading images ({completed}/{len(urls)})",
            )

        if urls:
            result = await self._preloader.preload(urls, token, _on_done)
            if result.failed:
                logger.info("%s of %s images failed to preload", result.failed, result.attempted)
        self._ensure_current(token)
        self._transition(LoadPhase.READY, progress=100, message="Ready")
