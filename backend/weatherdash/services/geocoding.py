"""Location lookup: free text to coordinates, reverse lookup and suggestions.

Geocoding never raises to callers. Every failure (auth, rate limit, network,
empty result) is logged and surfaces as ``None`` or ``[]``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from time import monotonic
from typing import Any, Awaitable, Callable

import httpx
from cachetools import TTLCache

from weatherdash.schemas import Coordinates
from weatherdash.services.weather_client import WeatherClient


logger = logging.getLogger(__name__)

COORDINATE_PATTERN = re.compile(r"^\s*(-?\d+(\.\d+)?)\s*,\s*(-?\d+(\.\d+)?)\s*$")
MIN_SUGGESTION_CHARS = 2
SUGGESTION_DEBOUNCE_SECONDS = 0.3
DEFAULT_SUGGESTION_LIMIT = 8


class GeocodeCache:
    """Bounded TTL cache for resolved locations.

    Keys are normalized (trimmed, lowercased). Entries expire ``ttl_seconds``
    after insertion; when full, the least recently used entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = 86400,
        max_entries: int = 512,
        timer: Callable[[], float] = monotonic,
    ) -> None:
        self._entries: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)

    @staticmethod
    def normalize_key(query: str) -> str:
        return query.strip().lower()

    def get(self, query: str) -> Coordinates | None:
        return self._entries.get(self.normalize_key(query))

    def set(self, query: str, coordinates: Coordinates) -> None:
        key = self.normalize_key(query)
        if key:
            self._entries[key] = coordinates

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)


def is_coordinate_query(query: str) -> bool:
    return COORDINATE_PATTERN.match(query) is not None


class CoordinateResolver:
    def __init__(self, client: WeatherClient, cache: GeocodeCache, suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT):
        self.client = client
        self.cache = cache
        self.suggestion_limit = suggestion_limit

    async def get_coordinates(self, query: str) -> Coordinates | None:
        if not query or not query.strip():
            return None

        match = COORDINATE_PATTERN.match(query)
        if match:
            return Coordinates(lat=float(match.group(1)), lon=float(match.group(3)), name=query.strip())

        cached = self.cache.get(query)
        if cached is not None:
            logger.debug("Geocode cache hit for %r", query)
            return cached

        results = await self._safe_lookup(
            lambda: self.client.geocode_direct(query.strip(), limit=1),
            description=f"geocode {query.strip()!r}",
        )
        if not results:
            return None

        coordinates = _to_coordinates(results[0])
        if coordinates is None:
            return None
        self.cache.set(query, coordinates)
        return coordinates

    async def get_city_from_coordinates(self, latitude: float, longitude: float) -> Coordinates | None:
        results = await self._safe_lookup(
            lambda: self.client.geocode_reverse(latitude, longitude, limit=1),
            description=f"reverse geocode {latitude},{longitude}",
        )
        if not results:
            return None

        first = results[0]
        if not isinstance(first, dict):
            return None
        return Coordinates(
            lat=latitude,
            lon=longitude,
            name=first.get("name"),
            country=first.get("country"),
            state=first.get("state"),
        )

    async def get_city_suggestions(
        self, query: str, cancel_event: asyncio.Event | None = None
    ) -> list[Coordinates]:
        """Autocomplete candidates for a partially typed city name.

        The caller debounces keystrokes (``SUGGESTION_DEBOUNCE_SECONDS``) and
        sets ``cancel_event`` when a newer query supersedes this one; a
        cancelled lookup returns ``[]`` and leaves the cache untouched.
        """
        trimmed = (query or "").strip()
        if len(trimmed) < MIN_SUGGESTION_CHARS or is_coordinate_query(trimmed):
            return []
        if cancel_event is not None and cancel_event.is_set():
            return []

        results = await self._safe_lookup(
            lambda: self.client.geocode_direct(trimmed, limit=self.suggestion_limit),
            description=f"suggestions for {trimmed!r}",
        )
        if cancel_event is not None and cancel_event.is_set():
            logger.debug("Suggestions for %r cancelled", trimmed)
            return []

        suggestions: list[Coordinates] = []
        seen: set[tuple[str | None, str | None, str | None]] = set()
        for item in results or []:
            coordinates = _to_coordinates(item)
            if coordinates is None:
                continue
            identity = (coordinates.name, coordinates.country, coordinates.state)
            if identity in seen:
                continue
            seen.add(identity)
            suggestions.append(coordinates)
            if coordinates.name:
                self.cache.set(coordinates.name, coordinates)
            if len(suggestions) >= self.suggestion_limit:
                break
        return suggestions

    async def _safe_lookup(
        self, request: Callable[[], Awaitable[list[dict]]], *, description: str
    ) -> list[dict] | None:
        try:
            return await request()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            if status_code == 401:
                logger.error("Geocoding auth failed (401) for %s; check OPENWEATHER_API_KEY", description)
            elif status_code == 429:
                logger.warning("Geocoding rate limit hit (429) for %s", description)
            else:
                logger.warning("Geocoding provider returned %s for %s", status_code, description)
        except httpx.HTTPError as exc:
            logger.warning("Geocoding request failed for %s: %s", description, exc)
        except ValueError as exc:
            logger.warning("Geocoding response for %s was not valid JSON: %s", description, exc)
        return None


def _to_coordinates(item: Any) -> Coordinates | None:
    if not isinstance(item, dict):
        return None
    try:
        latitude = float(item.get("lat"))
        longitude = float(item.get("lon"))
    except (TypeError, ValueError):
        return None
    return Coordinates(
        lat=latitude,
        lon=longitude,
        name=item.get("name"),
        country=item.get("country"),
        state=item.get("state"),
    )
