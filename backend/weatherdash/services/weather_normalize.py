"""Map raw upstream payloads onto :class:`NormalizedWeatherSlot`.

Nothing downstream reads raw API dicts; everything goes through these
functions first. Missing values stay ``None``.
"""

from __future__ import annotations

from time import time
from typing import Any

from weatherdash.schemas import ForecastItem, HourlyItem, NormalizedWeatherSlot, UnifiedConditionResult


def normalize_current_from_api(raw: dict | None) -> NormalizedWeatherSlot:
    raw = raw if isinstance(raw, dict) else {}
    sys_block = _block(raw, "sys")
    dt = _number(raw.get("dt"))
    timestamp = int(dt * 1000) if dt is not None else int(time() * 1000)
    sunrise = _number(sys_block.get("sunrise"))
    sunset = _number(sys_block.get("sunset"))

    return NormalizedWeatherSlot(
        **_common_fields(raw),
        timestamp=timestamp,
        sunrise=int(sunrise * 1000) if sunrise is not None else None,
        sunset=int(sunset * 1000) if sunset is not None else None,
    )


def normalize_forecast_item_from_api(item: dict | None) -> NormalizedWeatherSlot:
    item = item if isinstance(item, dict) else {}
    dt = _number(item.get("dt"))
    timestamp = int(dt * 1000) if dt is not None else 0
    return NormalizedWeatherSlot(**_common_fields(item), timestamp=timestamp)


def to_hourly_item(
    slot: NormalizedWeatherSlot, time_label: str, dt: int, unified: UnifiedConditionResult
) -> HourlyItem:
    return HourlyItem(
        **slot.model_dump(),
        time=time_label,
        dt=dt,
        temp=slot.temperature if slot.temperature is not None else 0.0,
        condition_kind=unified.condition,
        icon_index=unified.icon_index,
    )


def to_forecast_item(
    date: str,
    temp_min: float,
    temp_max: float,
    noon_slot: NormalizedWeatherSlot | None,
    unified: UnifiedConditionResult,
) -> ForecastItem:
    return ForecastItem(
        date=date,
        min=temp_min,
        max=temp_max,
        condition=noon_slot.condition if noon_slot else None,
        condition_code=noon_slot.condition_code if noon_slot else None,
        slot=noon_slot,
        condition_kind=unified.condition,
        icon_index=unified.icon_index,
    )


def _common_fields(raw: dict) -> dict[str, Any]:
    main = _block(raw, "main")
    wind = _block(raw, "wind")
    clouds = _block(raw, "clouds")
    rain = _block(raw, "rain")
    weather_list = raw.get("weather")
    weather = weather_list[0] if isinstance(weather_list, list) and weather_list else {}
    if not isinstance(weather, dict):
        weather = {}

    code = _number(weather.get("id"))
    description = weather.get("description")

    return {
        "temperature": _number(main.get("temp")),
        "feels_like": _number(main.get("feels_like")),
        "humidity": _number(main.get("humidity")),
        "pressure": _number(main.get("pressure")),
        "wind_speed": _number(wind.get("speed")),
        "wind_deg": _number(wind.get("deg")),
        "clouds": _number(clouds.get("all")),
        "pop": _normalize_pop(raw.get("pop")),
        "rain_1h": _number(rain.get("1h")),
        "rain_3h": _number(rain.get("3h")),
        "condition_code": int(code) if code is not None else None,
        "condition": description if isinstance(description, str) else None,
    }


def _normalize_pop(value: object) -> int:
    # Forecast items carry 0..1, some proxies already send percent.
    pop = _number(value)
    if pop is None:
        return 0
    return round(pop if pop > 1 else pop * 100)


def _block(raw: dict, key: str) -> dict:
    value = raw.get(key)
    return value if isinstance(value, dict) else {}


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)
