"""Session-owned catalog of games and their detail state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Iterator, Union

from .models import GameDetail, GameSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Unfetched:
    """No detail fetch has been attempted for the record yet."""


@dataclass(frozen=True, slots=True)
class Absent:
    """A fetch was attempted but the upstream had no usable data."""

    reason: str = field(default="", compare=False)


@dataclass(frozen=True, slots=True)
class Present:
    """Detail successfully retrieved."""

    detail: GameDetail


DetailState = Union[Unfetched, Absent, Present]

UNFETCHED = Unfetched()


@dataclass(frozen=True, slots=True)
class GameRecord:
    """A catalog entry with its tri-state detail."""

    appid: int
    name: str
    detail: DetailState = UNFETCHED

    @property
    def is_resolved(self) -> bool:
        return not isinstance(self.detail, Unfetched)

    @property
    def present_detail(self) -> GameDetail | None:
        if isinstance(self.detail, Present):
            return self.detail.detail
        return None


class Dataset:
    """Arena of game records keyed by appid.

    Records are only ever added or have their ``detail`` replaced; nothing is
    removed for the lifetime of the dataset. Readers take an immutable
    snapshot so writers can keep merging while a derivation runs.
    """

    def __init__(self, summaries: Iterable[GameSummary] = ()) -> None:
        self._records: dict[int, GameRecord] = {}
        self.populate(summaries)

    def populate(self, summaries: Iterable[GameSummary]) -> int:
        """Insert unseen summaries in order and return how many were added."""

        added = 0
        for summary in summaries:
            if summary.appid in self._records:
                continue
            self._records[summary.appid] = GameRecord(summary.appid, summary.name)
            added += 1
        return added

    def merge_detail(self, appid: int, state: DetailState) -> bool:
        """Merge a fetch outcome into a single record.

        ``Unfetched`` is never written and ``Absent`` never replaces an
        already present detail, so merges from overlapping sessions commute.
        Returns whether the record changed.
        """

        record = self._records.get(appid)
        if record is None:
            logger.debug("Ignoring detail for unknown appid %s", appid)
            return False
        if isinstance(state, Unfetched):
            return False
        if isinstance(state, Absent) and isinstance(record.detail, Present):
            return False
        if record.detail == state:
            return False
        self._records[appid] = replace(record, detail=state)
        return True

    def merge_details(self, outcomes: dict[int, DetailState]) -> int:
        return sum(1 for appid, state in outcomes.items() if self.merge_detail(appid, state))

    def get(self, appid: int) -> GameRecord | None:
        return self._records.get(appid)

    def snapshot(self) -> tuple[GameRecord, ...]:
        return tuple(self._records.values())

    def unfetched(self, appids: Iterable[int]) -> list[int]:
        """Return the ids among ``appids`` whose detail is still unknown."""

        pending: list[int] = []
        for appid in appids:
            record = self._records.get(appid)
            if record is not None and not record.is_resolved:
                pending.append(appid)
        return pending

    def absent_ids(self, appids: Iterable[int] | None = None) -> list[int]:
        candidates = self._records.keys() if appids is None else appids
        return [
            appid
            for appid in candidates
            if isinstance(getattr(self._records.get(appid), "detail", None), Absent)
        ]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, appid: object) -> bool:
        return appid in self._records

    def __iter__(self) -> Iterator[GameRecord]:
        return iter(self.snapshot())
