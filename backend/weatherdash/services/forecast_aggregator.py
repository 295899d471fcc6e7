"""Regroup the 3-hour forecast list into the 48-hour strip and 5-day strip."""

from __future__ import annotations

import logging
from bisect import bisect_right
from datetime import datetime, timezone
from time import time

from weatherdash.schemas import ForecastItem, HourlyItem, NormalizedWeatherSlot, SunTimes
from weatherdash.services.weather_condition import (
    DEFAULT_PRECIPITATION_POLICY,
    PrecipitationPolicy,
    get_unified_condition,
    seconds_since_local_midnight,
)
from weatherdash.services.weather_normalize import (
    normalize_forecast_item_from_api,
    to_forecast_item,
    to_hourly_item,
)


logger = logging.getLogger(__name__)

HOURLY_LIMIT = 48
DAILY_LIMIT = 5
FORECAST_STEP_SECONDS = 3 * 3600
LOCAL_NOON_SECONDS = 12 * 3600

# Fields copied from the live observation onto the first hourly tile.
_CURRENT_OVERRIDE_FIELDS = (
    "temperature",
    "feels_like",
    "condition",
    "condition_code",
    "rain_1h",
    "rain_3h",
    "clouds",
    "pop",
)


def sun_times_of(slot: NormalizedWeatherSlot | None) -> SunTimes | None:
    if slot is None or slot.sunrise is None or slot.sunset is None:
        return None
    return SunTimes(sunrise=slot.sunrise, sunset=slot.sunset)


def normalize_forecast_list(forecast_list: list[dict] | None) -> list[NormalizedWeatherSlot]:
    """Normalized slots ordered by time; entries without ``dt`` are dropped."""
    slots = [
        normalize_forecast_item_from_api(item)
        for item in forecast_list or []
        if isinstance(item, dict) and item.get("dt") is not None
    ]
    return sorted(slots, key=lambda slot: slot.timestamp or 0)


def build_hourly_forecast(
    forecast_list: list[dict] | None,
    current: NormalizedWeatherSlot,
    timezone_offset_seconds: int = 0,
    *,
    now_ms: int | None = None,
    policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY,
) -> list[HourlyItem]:
    """Up to 48 hourly tiles starting at the current local hour.

    Each tile reuses the latest forecast slot at or before its hour; values are
    never interpolated. Tile 0 carries the live observation so the "now" card
    and the first tile always match.
    """
    slots = normalize_forecast_list(forecast_list)
    if not slots:
        return []

    stamps = [(slot.timestamp or 0) // 1000 for slot in slots]
    now_seconds = (now_ms if now_ms is not None else int(time() * 1000)) // 1000
    base_hour = now_seconds - seconds_since_local_midnight(now_seconds, timezone_offset_seconds) % 3600
    last_covered = stamps[-1] + FORECAST_STEP_SECONDS
    sun = sun_times_of(current)
    current_values = {name: getattr(current, name) for name in _CURRENT_OVERRIDE_FIELDS}

    hourly: list[HourlyItem] = []
    for offset in range(HOURLY_LIMIT):
        target = base_hour + offset * 3600
        if target > last_covered:
            break

        idx = bisect_right(stamps, target) - 1
        source = slots[max(idx, 0)]
        update: dict = {
            "timestamp": target * 1000,
            "sunrise": sun.sunrise if sun else None,
            "sunset": sun.sunset if sun else None,
        }
        if offset == 0:
            update.update(current_values)
        stamped = source.model_copy(update=update)

        unified = get_unified_condition(stamped, sun, timezone_offset_seconds, policy=policy)
        label = f"{seconds_since_local_midnight(target, timezone_offset_seconds) // 3600:02d}"
        hourly.append(to_hourly_item(stamped, label, target, unified))

    logger.debug("Built %d hourly tiles from %d forecast slots", len(hourly), len(slots))
    return hourly


def build_daily_forecast(
    forecast_list: list[dict] | None,
    current: NormalizedWeatherSlot,
    timezone_offset_seconds: int = 0,
    *,
    policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY,
) -> list[ForecastItem]:
    slots = normalize_forecast_list(forecast_list)
    by_day: dict[str, list[NormalizedWeatherSlot]] = {}
    for slot in slots:
        by_day.setdefault(_utc_day_key(slot.timestamp or 0), []).append(slot)

    sun = sun_times_of(current)
    daily: list[ForecastItem] = []
    for day_index, (day_key, day_slots) in enumerate(by_day.items()):
        if len(daily) >= DAILY_LIMIT:
            break

        temps = [slot.temperature for slot in day_slots if slot.temperature is not None]
        if day_index == 0 and current.temperature is not None:
            temps.append(current.temperature)
        if not temps:
            logger.debug("Skipping %s: no temperatures in forecast slots", day_key)
            continue

        noon_slot = _closest_to_local_noon(day_slots, timezone_offset_seconds)
        if sun is not None:
            noon_slot = noon_slot.model_copy(update={"sunrise": sun.sunrise, "sunset": sun.sunset})
        unified = get_unified_condition(noon_slot, sun, timezone_offset_seconds, policy=policy)
        daily.append(to_forecast_item(day_key, min(temps), max(temps), noon_slot, unified))

    return daily


def _closest_to_local_noon(
    day_slots: list[NormalizedWeatherSlot], timezone_offset_seconds: int
) -> NormalizedWeatherSlot:
    # min() keeps the first slot on ties.
    return min(
        day_slots,
        key=lambda slot: abs(
            seconds_since_local_midnight((slot.timestamp or 0) // 1000, timezone_offset_seconds)
            - LOCAL_NOON_SECONDS
        ),
    )


def _utc_day_key(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()
