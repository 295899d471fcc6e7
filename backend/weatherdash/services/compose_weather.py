from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from time import time

import httpx

from weatherdash.errors import (
    CoordinateValidationError,
    FetchCancelledError,
    LocationNotFoundError,
    WeatherdashError,
    WeatherFetchError,
)
from weatherdash.schemas import AirQuality, CurrentWeather, TemperatureUnit, WeatherData, WeatherDerived
from weatherdash.services.derived_weather import compute_derived
from weatherdash.services.forecast_aggregator import build_daily_forecast, build_hourly_forecast
from weatherdash.services.geocoding import CoordinateResolver
from weatherdash.services.weather_client import WeatherClient
from weatherdash.services.weather_condition import DEFAULT_PRECIPITATION_POLICY, PrecipitationPolicy
from weatherdash.services.weather_normalize import normalize_current_from_api


logger = logging.getLogger(__name__)


def validate_coordinates(latitude: object, longitude: object) -> tuple[float, float]:
    """Reject unusable coordinates before any network call."""
    for label, value, bound in (("latitude", latitude, 90.0), ("longitude", longitude, 180.0)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise CoordinateValidationError(f"Invalid {label}: expected a number, got {value!r}.")
        if not math.isfinite(value):
            raise CoordinateValidationError(f"Invalid {label}: {value!r} is not a finite number.")
        if not -bound <= value <= bound:
            raise CoordinateValidationError(f"Invalid {label}: {value} is outside [-{bound:g}, {bound:g}].")
    return float(latitude), float(longitude)


def format_local_time(epoch_ms: int | None, timezone_offset_seconds: int) -> str | None:
    if epoch_ms is None:
        return None
    local = datetime.fromtimestamp(epoch_ms / 1000 + timezone_offset_seconds, tz=timezone.utc)
    return local.strftime("%H:%M")


class WeatherComposer:
    """Builds one :class:`WeatherData` per fetch cycle.

    Stages run strictly in order: validate, current weather (fatal on
    failure), forecast list (degrades to empty), air quality (degrades to
    ``None``). A set ``cancel_event`` aborts between stages.
    """

    def __init__(
        self,
        client: WeatherClient,
        resolver: CoordinateResolver | None = None,
        policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY,
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.policy = policy

    async def compose(
        self,
        latitude: float,
        longitude: float,
        unit: TemperatureUnit = TemperatureUnit.CELSIUS,
        location_label: str | None = None,
        *,
        now_ms: int | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> WeatherData:
        latitude, longitude = validate_coordinates(latitude, longitude)
        _raise_if_cancelled(cancel_event)

        try:
            current_raw = await self.client.fetch_current_weather(latitude, longitude, unit)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Current weather fetch failed for %s,%s: %s", latitude, longitude, exc)
            raise WeatherFetchError(f"Current weather unavailable: {exc}") from exc
        _raise_if_cancelled(cancel_event)

        forecast_list: list[dict] = []
        try:
            forecast_raw = await self.client.fetch_forecast(latitude, longitude, unit)
            raw_list = forecast_raw.get("list") if isinstance(forecast_raw, dict) else None
            forecast_list = raw_list if isinstance(raw_list, list) else []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Forecast fetch failed for %s,%s, continuing without it: %s", latitude, longitude, exc)
        _raise_if_cancelled(cancel_event)

        air_quality: AirQuality | None = None
        try:
            air_quality = _parse_air_quality(await self.client.fetch_air_quality(latitude, longitude))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Air quality fetch failed for %s,%s, continuing without it: %s", latitude, longitude, exc)
        _raise_if_cancelled(cancel_event)

        return self._build(
            current_raw=current_raw if isinstance(current_raw, dict) else {},
            forecast_list=forecast_list,
            air_quality=air_quality,
            latitude=latitude,
            longitude=longitude,
            unit=unit,
            location_label=location_label,
            now_ms=now_ms if now_ms is not None else int(time() * 1000),
        )

    async def compose_for_query(
        self, query: str, unit: TemperatureUnit = TemperatureUnit.CELSIUS, *, now_ms: int | None = None
    ) -> WeatherData:
        if self.resolver is None:
            raise LocationNotFoundError("No location resolver configured.")
        coordinates = await self.resolver.get_coordinates(query)
        if coordinates is None:
            raise LocationNotFoundError(f"Location not found: {query!r}")
        return await self.compose(coordinates.lat, coordinates.lon, unit, coordinates.label, now_ms=now_ms)

    def _build(
        self,
        *,
        current_raw: dict,
        forecast_list: list[dict],
        air_quality: AirQuality | None,
        latitude: float,
        longitude: float,
        unit: TemperatureUnit,
        location_label: str | None,
        now_ms: int,
    ) -> WeatherData:
        offset = current_raw.get("timezone")
        timezone_offset_seconds = int(offset) if isinstance(offset, (int, float)) and not isinstance(offset, bool) else 0
        slot = normalize_current_from_api(current_raw)

        current = CurrentWeather(
            **slot.model_dump(),
            location=location_label or _label_from_payload(current_raw, latitude, longitude),
            sunrise_text=format_local_time(slot.sunrise, timezone_offset_seconds),
            sunset_text=format_local_time(slot.sunset, timezone_offset_seconds),
        )
        hourly = build_hourly_forecast(
            forecast_list, slot, timezone_offset_seconds, now_ms=now_ms, policy=self.policy
        )
        daily = build_daily_forecast(forecast_list, slot, timezone_offset_seconds, policy=self.policy)

        logger.info(
            "Composed weather for %s: %d hourly, %d daily, aqi=%s",
            current.location,
            len(hourly),
            len(daily),
            air_quality.aqi if air_quality else None,
        )
        return WeatherData(
            current=current,
            forecast=daily,
            hourly=hourly,
            air_quality=air_quality,
            timezone_offset_seconds=timezone_offset_seconds,
            latitude=latitude,
            longitude=longitude,
            unit=unit,
        )


class WeatherSession:
    """Latest composed weather for one viewer, guarded by a generation id.

    Each :meth:`refresh` supersedes the previous one: the older cycle's cancel
    event is set, and if it still completes, its result is discarded. The
    generation check also covers composers that never look at the event.

    A location label sticks to the coordinates it was given for; refreshing
    elsewhere without a label drops it and the payload's city name is used.
    """

    def __init__(self, composer: WeatherComposer) -> None:
        self.composer = composer
        self.weather: WeatherData | None = None
        self.derived: WeatherDerived | None = None
        self.error: str | None = None
        self.location_label: str | None = None
        self._label_coordinates: tuple[float, float] | None = None
        self._generation = 0
        self._cancel_event: asyncio.Event | None = None

    @property
    def generation(self) -> int:
        return self._generation

    async def refresh(
        self,
        latitude: float,
        longitude: float,
        unit: TemperatureUnit = TemperatureUnit.CELSIUS,
        location_label: str | None = None,
        *,
        now_ms: int | None = None,
    ) -> WeatherData | None:
        self._generation += 1
        generation = self._generation
        if self._cancel_event is not None:
            self._cancel_event.set()
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        if location_label is not None:
            self.location_label = location_label
            self._label_coordinates = (latitude, longitude)
        elif self._label_coordinates is None:
            self._label_coordinates = (latitude, longitude)
        elif self._label_coordinates != (latitude, longitude):
            self.location_label = None
            self._label_coordinates = None

        try:
            weather = await self.composer.compose(
                latitude,
                longitude,
                unit,
                self.location_label,
                now_ms=now_ms,
                cancel_event=cancel_event,
            )
        except FetchCancelledError:
            logger.debug("Fetch cycle %d cancelled by a newer request", generation)
            return None
        except WeatherdashError as exc:
            if generation == self._generation:
                self.error = str(exc)
            raise

        if generation != self._generation:
            logger.info("Discarding stale weather from cycle %d (latest is %d)", generation, self._generation)
            return None

        self.weather = weather
        self.derived = compute_derived(weather, self.composer.policy)
        self.error = None
        return weather

    def set_location_label(self, label: str) -> None:
        self.location_label = label
        if self.weather is not None:
            self._label_coordinates = (self.weather.latitude, self.weather.longitude)
            self.weather.current.location = label


def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise FetchCancelledError("Fetch cycle superseded by a newer request.")


def _parse_air_quality(payload: object) -> AirQuality | None:
    if not isinstance(payload, dict):
        return None
    entries = payload.get("list")
    if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
        return None

    first = entries[0]
    main = first.get("main") if isinstance(first.get("main"), dict) else {}
    aqi = main.get("aqi")
    components = first.get("components") if isinstance(first.get("components"), dict) else {}
    return AirQuality(
        aqi=int(aqi) if isinstance(aqi, (int, float)) and not isinstance(aqi, bool) else None,
        components={
            key: float(value)
            for key, value in components.items()
            if isinstance(value, (int, float)) and not isinstance(value, bool)
        },
    )


def _label_from_payload(current_raw: dict, latitude: float, longitude: float) -> str:
    name = current_raw.get("name")
    sys_block = current_raw.get("sys") if isinstance(current_raw.get("sys"), dict) else {}
    country = sys_block.get("country")
    if name and country:
        return f"{name}, {country}"
    if name:
        return str(name)
    return f"{latitude},{longitude}"
