"""Pydantic models describing Steam payloads and browse queries."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .utils import parse_release_date

Platform = Literal["windows", "mac", "linux"]
SortField = Literal["name", "appid", "popularity", "release_date"]
SortOrder = Literal["asc", "desc"]

PLATFORMS: tuple[str, ...] = ("windows", "mac", "linux")


class GameSummary(BaseModel):
    """Entry of the bulk app list: a stable id and a display name."""

    model_config = ConfigDict(frozen=True)

    appid: int = Field(ge=1)
    name: str = Field(min_length=1)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class Genre(BaseModel):
    """Store genre tag."""

    id: str | None = None
    description: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if value is None:
            return None
        return str(value)


class Platforms(BaseModel):
    """Operating systems a title ships on."""

    windows: bool = False
    mac: bool = False
    linux: bool = False


class PriceOverview(BaseModel):
    """Store price information, amounts in cents."""

    currency: str | None = None
    initial: int | None = None
    final: int | None = None
    discount_percent: int = 0
    initial_formatted: str | None = None
    final_formatted: str | None = None

    def display(self) -> str | None:
        if self.final_formatted:
            return self.final_formatted
        if self.final is None:
            return None
        amount = self.final / 100
        if self.currency:
            return f"{amount:.2f} {self.currency}"
        return f"{amount:.2f}"


class ReleaseDate(BaseModel):
    """Release date as formatted by the store."""

    coming_soon: bool = False
    date: str | None = None


class GameDetail(BaseModel):
    """Rich store attributes for a single title."""

    model_config = ConfigDict(extra="ignore")

    name: str
    steam_appid: int | None = None
    type: str = "game"
    is_free: bool = False
    short_description: str | None = None
    about_the_game: str | None = None
    header_image: str | None = None
    website: str | None = None
    developers: list[str] = Field(default_factory=list)
    publishers: list[str] = Field(default_factory=list)
    genres: list[Genre] = Field(default_factory=list)
    platforms: Platforms = Field(default_factory=Platforms)
    price_overview: PriceOverview | None = None
    release_date: ReleaseDate | None = None

    def genre_names(self) -> list[str]:
        return [genre.description for genre in self.genres]

    def supports(self, platform: str) -> bool:
        return bool(getattr(self.platforms, platform, False))

    def released_at(self) -> datetime | None:
        if self.release_date is None:
            return None
        return parse_release_date(self.release_date.date)


class FilterSpec(BaseModel):
    """Active browse filters; ``None`` leaves a dimension unconstrained."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    genre: str | None = None
    is_free: bool | None = Field(
        default=None, validation_alias=AliasChoices("isFree", "is_free")
    )
    platform: Platform | None = None
    favorites_only: bool = Field(
        default=False,
        validation_alias=AliasChoices("favoritesOnly", "favorites_only"),
    )

    @field_validator("genre", "platform", "is_free", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    def has_detail_filters(self) -> bool:
        return bool(self.genre or self.is_free is not None or self.platform)

    def is_active(self) -> bool:
        return self.has_detail_filters() or self.favorites_only

    def to_payload(self) -> dict[str, object]:
        return {
            "genre": self.genre,
            "isFree": self.is_free,
            "platform": self.platform,
            "favoritesOnly": self.favorites_only,
        }


class SortSpec(BaseModel):
    """Sort field and direction."""

    model_config = ConfigDict(frozen=True)

    field: SortField = "name"
    order: SortOrder = "asc"


class PageSpec(BaseModel):
    """1-indexed page selection."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
