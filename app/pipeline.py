"""Pure search, filter, sort and paginate pipeline over a dataset snapshot."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Mapping, Sequence

from .dataset import Absent, GameRecord, Present, Unfetched
from .models import FilterSpec, PageSpec, SortSpec
from .utils import fold_text, strip_html, truncate_text


@dataclass(frozen=True, slots=True)
class EnrichedRecord:
    """A record annotated with per-session flags for display."""

    record: GameRecord
    is_favorite: bool

    @property
    def appid(self) -> int:
        return self.record.appid

    @property
    def name(self) -> str:
        return self.record.name

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON representation used by the browse API."""

        state = self.record.detail
        payload: dict[str, Any] = {
            "appid": self.appid,
            "name": self.name,
            "isFavorite": self.is_favorite,
            "detailState": _state_label(state),
            "details": None,
        }
        if isinstance(state, Present):
            detail = state.detail
            payload["details"] = {
                "shortDescription": truncate_text(
                    strip_html(detail.short_description), 200
                ),
                "headerImage": detail.header_image,
                "isFree": detail.is_free,
                "price": detail.price_overview.display() if detail.price_overview else None,
                "discountPercent": (
                    detail.price_overview.discount_percent if detail.price_overview else 0
                ),
                "genres": detail.genre_names(),
                "platforms": detail.platforms.model_dump(),
                "releaseDate": detail.release_date.date if detail.release_date else None,
                "developers": list(detail.developers),
            }
        return payload


@dataclass(frozen=True, slots=True)
class BrowseView:
    """Everything the visible page depends on besides the dataset."""

    query: str = ""
    filters: FilterSpec = field(default_factory=FilterSpec)
    sort: SortSpec = field(default_factory=SortSpec)
    page: PageSpec = field(default_factory=PageSpec)
    favorites: frozenset[int] = frozenset()


@dataclass(frozen=True, slots=True)
class DerivedPage:
    """Visible slice of the catalog plus the pre-pagination count."""

    items: tuple[EnrichedRecord, ...]
    total_count: int
    page: PageSpec

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page.limit) if self.total_count else 0

    @property
    def appids(self) -> list[int]:
        return [item.appid for item in self.items]

    def to_payload(self) -> dict[str, Any]:
        return {
            "items": [item.to_payload() for item in self.items],
            "totalCount": self.total_count,
            "page": self.page.page,
            "limit": self.page.limit,
            "totalPages": self.total_pages,
        }


def _state_label(state: object) -> str:
    if isinstance(state, Present):
        return "present"
    if isinstance(state, Absent):
        return "absent"
    return "unfetched"


def search_records(records: Sequence[GameRecord], query: str | None) -> list[GameRecord]:
    """Keep records whose name contains ``query`` case-insensitively."""

    needle = (query or "").strip().casefold()
    if not needle:
        return list(records)
    return [record for record in records if needle in record.name.casefold()]


def passes_filters(item: EnrichedRecord, filters: FilterSpec) -> bool:
    """Apply the active filters to a single enriched record.

    Records whose detail has not been fetched are kept regardless of the
    filters; they are re-evaluated once their detail arrives. Absent records
    have no detail attributes and so fail every detail-based filter.
    """

    state = item.record.detail
    if isinstance(state, Unfetched):
        return True

    detail = state.detail if isinstance(state, Present) else None
    if filters.genre:
        if detail is None or filters.genre not in detail.genre_names():
            return False
    if filters.is_free is not None:
        if detail is None or detail.is_free != filters.is_free:
            return False
    if filters.platform:
        if detail is None or not detail.supports(filters.platform):
            return False
    if filters.favorites_only and not item.is_favorite:
        return False
    return True


def _sort_key(
    sort_field: str, popularity_rank: Mapping[int, int]
) -> Callable[[EnrichedRecord], Any]:
    if sort_field == "name":
        return lambda item: (fold_text(item.name), item.name.casefold(), item.name)
    if sort_field == "appid":
        return lambda item: item.appid
    if sort_field == "popularity":
        unranked = len(popularity_rank)
        return lambda item: (popularity_rank.get(item.appid, unranked), item.appid)
    if sort_field == "release_date":

        # Undated records sort before every dated one, pre-1970 dates included.
        def release_key(item: EnrichedRecord) -> tuple[int, float]:
            detail = item.record.present_detail
            released = detail.released_at() if detail is not None else None
            if released is None:
                return (0, 0.0)
            return (1, released.timestamp())

        return release_key
    raise ValueError(f"Unsupported sort field: {sort_field}")


def sort_records(
    items: Sequence[EnrichedRecord],
    sort: SortSpec,
    popularity_rank: Mapping[int, int],
) -> list[EnrichedRecord]:
    """Stable sort; descending order reverses the ascending comparison only."""

    key = _sort_key(sort.field, popularity_rank)
    # ``reverse=True`` keeps equal elements in their original order.
    return sorted(items, key=key, reverse=sort.order == "desc")


def derive(
    snapshot: Sequence[GameRecord],
    query: str | None,
    filters: FilterSpec,
    sort: SortSpec,
    page: PageSpec,
    *,
    favorites: Collection[int] = frozenset(),
    popularity_rank: Mapping[int, int] | None = None,
) -> DerivedPage:
    """Compute the visible page for the given snapshot and browse inputs."""

    searched = search_records(snapshot, query)
    enriched = [
        EnrichedRecord(record=record, is_favorite=record.appid in favorites)
        for record in searched
    ]
    if filters.is_active():
        enriched = [item for item in enriched if passes_filters(item, filters)]
    ordered = sort_records(enriched, sort, popularity_rank or {})
    start = page.offset
    return DerivedPage(
        items=tuple(ordered[start : start + page.limit]),
        total_count=len(ordered),
        page=page,
    )


def derive_view(
    snapshot: Sequence[GameRecord],
    view: BrowseView,
    popularity_rank: Mapping[int, int] | None = None,
) -> DerivedPage:
    return derive(
        snapshot,
        view.query,
        view.filters,
        view.sort,
        view.page,
        favorites=view.favorites,
        popularity_rank=popularity_rank,
    )
