from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from weatherdash.config import Settings
from weatherdash.schemas import TemperatureUnit


logger = logging.getLogger(__name__)

RETRYABLE_HTTP_STATUS = {408, 500, 502, 503, 504}


@dataclass
class WeatherClient:
    """Thin async client for the OpenWeather-shaped upstream endpoints.

    Returns raw JSON; normalization happens in ``weather_normalize``.
    """

    settings: Settings
    transport: httpx.AsyncBaseTransport | None = None
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.settings.openweather_api_key:
            logger.error("OPENWEATHER_API_KEY is not set; upstream requests will be rejected")
        self._client = httpx.AsyncClient(
            timeout=self.settings.request_timeout_seconds,
            transport=self.transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_current_weather(self, latitude: float, longitude: float, unit: TemperatureUnit) -> dict:
        return await self._get_json(
            url=f"{self.settings.openweather_base_url}/weather",
            params={"lat": latitude, "lon": longitude, "units": unit.api_units},
        )

    async def fetch_forecast(self, latitude: float, longitude: float, unit: TemperatureUnit) -> dict:
        return await self._get_json(
            url=f"{self.settings.openweather_base_url}/forecast",
            params={"lat": latitude, "lon": longitude, "units": unit.api_units},
        )

    async def fetch_air_quality(self, latitude: float, longitude: float) -> dict:
        return await self._get_json(
            url=f"{self.settings.openweather_base_url}/air_pollution",
            params={"lat": latitude, "lon": longitude},
        )

    async def geocode_direct(self, query: str, limit: int = 1) -> list[dict]:
        payload = await self._get_json(
            url=f"{self.settings.openweather_geo_url}/direct",
            params={"q": query, "limit": limit},
            retry_attempts=0,
        )
        return payload if isinstance(payload, list) else []

    async def geocode_reverse(self, latitude: float, longitude: float, limit: int = 1) -> list[dict]:
        payload = await self._get_json(
            url=f"{self.settings.openweather_geo_url}/reverse",
            params={"lat": latitude, "lon": longitude, "limit": limit},
            retry_attempts=0,
        )
        return payload if isinstance(payload, list) else []

    async def _get_json(
        self,
        *,
        url: str,
        params: dict[str, Any] | None = None,
        retry_attempts: int | None = None,
    ) -> Any:
        query = dict(params or {})
        query["appid"] = self.settings.openweather_api_key

        attempts = self.settings.api_retry_attempts if retry_attempts is None else max(0, retry_attempts)
        for attempt in range(attempts + 1):
            try:
                response = await self._client.get(url, params=query)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_HTTP_STATUS or attempt >= attempts:
                    raise
                logger.warning("Upstream %s returned %s, retrying (%d/%d)", url, status_code, attempt + 1, attempts)
            except httpx.RequestError as exc:
                if attempt >= attempts:
                    raise
                logger.warning("Request to %s failed: %s, retrying (%d/%d)", url, exc, attempt + 1, attempts)
            await asyncio.sleep(0.35 * (attempt + 1))

        raise RuntimeError("Failed to fetch upstream JSON payload.")
