"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Steam Games Browser", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3001, alias="PORT")

    steam_api_key: str | None = Field(default=None, alias="STEAM_API_KEY")
    steam_api_url: HttpUrl = Field(
        default="https://api.steampowered.com", alias="STEAM_API_URL"
    )
    steam_store_url: HttpUrl = Field(
        default="https://store.steampowered.com", alias="STEAM_STORE_URL"
    )
    store_language: str = Field(default="portuguese", alias="STORE_LANGUAGE")
    request_timeout: float = Field(default=15.0, alias="REQUEST_TIMEOUT", gt=0)

    detail_batch_size: int = Field(
        default=10, alias="DETAIL_BATCH_SIZE", ge=1, le=100
    )
    ids_per_request: int = Field(default=1, alias="IDS_PER_REQUEST", ge=1, le=100)
    batch_delay_seconds: float = Field(default=0.25, alias="BATCH_DELAY", ge=0)
    rate_limit_cooldown_seconds: float = Field(
        default=5.0, alias="RATE_LIMIT_COOLDOWN", ge=0
    )

    prioritize_popular: bool = Field(default=True, alias="PRIORITIZE_POPULAR")
    max_games: int = Field(default=10_000, alias="MAX_GAMES", ge=0)

    default_page_size: int = Field(default=20, alias="DEFAULT_PAGE_SIZE", ge=1)
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE", ge=1)

    low_watermark: int = Field(default=30, alias="LOW_WATERMARK", ge=0, le=100)
    details_band: int = Field(default=40, alias="DETAILS_BAND", ge=0, le=100)
    preload_count: int = Field(default=12, alias="PRELOAD_COUNT", ge=0, le=100)
    preload_concurrency: int = Field(
        default=6, alias="PRELOAD_CONCURRENCY", ge=1, le=64
    )
    stall_timeout_seconds: float = Field(default=20.0, alias="STALL_TIMEOUT", gt=0)

    database_url: str = Field(
        default="sqlite+aiosqlite:///./steambrowser.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "Settings":
        """Keep page sizes and progress bands internally consistent."""

        if self.default_page_size > self.max_page_size:
            raise ValueError("DEFAULT_PAGE_SIZE must not exceed MAX_PAGE_SIZE")
        if self.low_watermark + self.details_band >= 100:
            raise ValueError(
                "LOW_WATERMARK plus DETAILS_BAND must leave room for asset loading"
            )
        return self

    @property
    def assets_watermark(self) -> int:
        """Progress value at which asset preloading starts."""

        return self.low_watermark + self.details_band

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
