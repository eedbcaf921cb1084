"""Utilities for communicating with the Steam Web API and store."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..errors import (
    NetworkError,
    RateLimitError,
    UpstreamError,
    UpstreamStatusError,
    UpstreamTimeout,
)
from ..models import GameSummary

logger = logging.getLogger(__name__)

APP_LIST_PATH = "/ISteamApps/GetAppList/v2/"
PLAYER_COUNT_PATH = "/ISteamUserStats/GetNumberOfCurrentPlayers/v1/"
APP_DETAILS_PATH = "/api/appdetails"


class SteamClient:
    """Thin wrapper around the Steam list, detail and stats endpoints."""

    def __init__(
        self,
        settings: Settings,
        api_client: httpx.AsyncClient,
        store_client: httpx.AsyncClient | None = None,
    ):
        self._settings = settings
        self._api = api_client
        self._store = store_client or api_client

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": f"{self._settings.app_name} (steambrowser)"}

    async def _get(
        self, client: httpx.AsyncClient, path: str, params: dict[str, Any]
    ) -> httpx.Response:
        try:
            return await client.get(
                path,
                params=params,
                headers=self._headers(),
                timeout=self._settings.request_timeout,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"Request to {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Request to {path} failed: {exc}") from exc

    async def fetch_app_list(self) -> list[GameSummary]:
        """Fetch every app summary from the list endpoint.

        A 404 is reported by Steam when the list is temporarily unavailable
        and is treated as an empty catalog.
        """

        params: dict[str, Any] = {}
        if self._settings.steam_api_key:
            params["key"] = self._settings.steam_api_key
        response = await self._get(self._api, APP_LIST_PATH, params)
        if response.status_code == 404:
            logger.info("Steam app list returned 404, treating as empty")
            return []
        if response.status_code == 429:
            raise RateLimitError("Steam app list is rate limited")
        if response.status_code >= 400:
            raise UpstreamStatusError(response.status_code, "Failed to fetch Steam app list")

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError("Unexpected non-JSON Steam app list response") from exc
        return self._parse_app_list(payload)

    @staticmethod
    def _parse_app_list(payload: Any) -> list[GameSummary]:
        if not isinstance(payload, dict):
            logger.warning("Unexpected Steam app list structure")
            return []
        container = payload.get("response") or payload.get("applist") or {}
        apps = container.get("apps") if isinstance(container, dict) else None
        if not isinstance(apps, list):
            return []

        summaries: list[GameSummary] = []
        skipped = 0
        for entry in apps:
            if not isinstance(entry, dict):
                skipped += 1
                continue
            try:
                summaries.append(GameSummary.model_validate(entry))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.debug("Skipped %s malformed app list entries", skipped)
        return summaries

    async def fetch_app_details(self, appids: Iterable[int]) -> dict[str, Any]:
        """Fetch raw store detail entries for one request worth of ids.

        Returns the upstream mapping keyed by stringified appid. Entries are
        left unparsed so callers can resolve each id independently.
        """

        ids = [str(appid) for appid in appids]
        if not ids:
            return {}
        params = {"appids": ",".join(ids), "l": self._settings.store_language}
        response = await self._get(self._store, APP_DETAILS_PATH, params)
        if response.status_code == 429:
            raise RateLimitError(f"Store rate limited detail request for {len(ids)} ids")
        if response.status_code == 404:
            return {}
        if response.status_code >= 400:
            raise UpstreamStatusError(response.status_code)

        try:
            data = response.json()
        except ValueError:
            logger.warning("Unexpected non-JSON detail response for %s", ",".join(ids))
            return {}
        if not isinstance(data, dict):
            logger.warning("Unexpected detail response structure for %s", ",".join(ids))
            return {}
        return data

    async def fetch_player_count(self, appid: int) -> int | None:
        """Return the current player count for ``appid`` if Steam reports one."""

        params: dict[str, Any] = {"appid": appid}
        if self._settings.steam_api_key:
            params["key"] = self._settings.steam_api_key
        try:
            response = await self._get(self._api, PLAYER_COUNT_PATH, params)
        except UpstreamError as exc:
            logger.warning("Failed to fetch player count for %s: %s", appid, exc)
            return None
        if response.status_code >= 400:
            logger.warning(
                "Player count request for %s failed with HTTP %s",
                appid,
                response.status_code,
            )
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        body = data.get("response") if isinstance(data, dict) else None
        count = body.get("player_count") if isinstance(body, dict) else None
        if isinstance(count, int) and not isinstance(count, bool):
            return count
        return None
