"""Rule-based derived values: AQI category, "feel" insight and radar insight.

All outputs are translation keys; the view layer owns the text. Precipitation
checks use the same :class:`PrecipitationPolicy` as the icon classifier, so the
insight text can never mention rain next to a clear-sky icon.
"""

from __future__ import annotations

import re

from weatherdash.schemas import InsightKeys, NormalizedWeatherSlot, WeatherData, WeatherDerived
from weatherdash.services.forecast_aggregator import sun_times_of
from weatherdash.services.weather_condition import (
    CONDITION_TO_BACKGROUND,
    DEFAULT_PRECIPITATION_POLICY,
    PrecipitationPolicy,
    get_unified_condition,
)


MAX_FEEL_KEYS = 3
DEFAULT_PRESSURE_HPA = 1013
RADAR_PREFIX = "radar.insight.now."
FEEL_PREFIX = "aiInsight.feel."

_AQI_BUCKETS = (
    (50, "good", "aqi.range.good.text"),
    (100, "moderate", "aqi.range.moderate.text"),
    (150, "unhealthyForSensitiveGroups", "aqi.range.unhealthySensitive.text"),
    (200, "unhealthy", "aqi.range.unhealthy.text"),
)
_FOG_PATTERN = re.compile(r"fog|mist|haze")


def _aqi_bucket(aqi: float | None) -> tuple[str, str]:
    if aqi is None:
        return "unknown", "aqi.range.unavailable"
    for upper, category, text_key in _AQI_BUCKETS:
        if aqi <= upper:
            return category, text_key
    return "veryUnhealthy", "aqi.range.veryUnhealthy.text"


def get_aqi_category_key(aqi: float | None) -> str:
    return _aqi_bucket(aqi)[0]


def get_aqi_range_text_key(aqi: float | None) -> str:
    return _aqi_bucket(aqi)[1]


def _is_storm(slot: NormalizedWeatherSlot) -> bool:
    code = slot.condition_code if slot.condition_code is not None else 800
    return 200 <= code < 300


def get_insight_keys(
    current: NormalizedWeatherSlot | None, policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY
) -> InsightKeys:
    """How the weather may feel, as up to three ordered keys.

    One key per category, in priority order: temperature, comfort
    (humidity/wind), then hazard. Rain is only ever "possible".
    """
    slot = current or NormalizedWeatherSlot()
    temp = round(slot.temperature or 0)
    humidity = slot.humidity or 0
    wind_speed = slot.wind_speed or 0
    pop = slot.pop or 0

    keys: list[str] = []

    if temp >= 32:
        keys.append(FEEL_PREFIX + "hot")
    elif temp >= 26:
        keys.append(FEEL_PREFIX + "warm")
    elif temp <= 2:
        keys.append(FEEL_PREFIX + "cold")
    elif temp <= 10:
        keys.append(FEEL_PREFIX + "cool")
    else:
        keys.append(FEEL_PREFIX + "mild")

    if humidity > 78:
        keys.append(FEEL_PREFIX + "humid")
    elif wind_speed >= 25:
        keys.append(FEEL_PREFIX + "windy")
    elif wind_speed >= 12:
        keys.append(FEEL_PREFIX + "breeze")

    if _is_storm(slot):
        keys.append(FEEL_PREFIX + "stormPossible")
    elif _FOG_PATTERN.search((slot.condition or "").lower()):
        keys.append(FEEL_PREFIX + "fog")
    elif policy.is_real(slot) or pop > 0:
        keys.append(FEEL_PREFIX + "rainPossible")

    return InsightKeys(feel_keys=keys[:MAX_FEEL_KEYS])


def get_radar_insight_keys(
    weather: WeatherData | None,
    layer: str = "clouds",
    policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY,
) -> list[str]:
    """Radar banner keys. The ``layer`` ("clouds", "wind" or "precipitation")
    does not change the rules yet; every overlay describes the same observation."""
    if weather is None or weather.current is None:
        return [RADAR_PREFIX + "loading"]

    current = weather.current
    pressure = current.pressure if current.pressure is not None else DEFAULT_PRESSURE_HPA
    wind_speed = current.wind_speed or 0
    clouds = current.clouds or 0

    high_pressure = pressure > 1015
    low_pressure = pressure < 1005
    strong_wind = wind_speed >= 8
    moderate_wind = 4 <= wind_speed < 8
    weak_wind = wind_speed < 4

    keys: list[str] = []
    if high_pressure and weak_wind:
        keys.append(RADAR_PREFIX + "highPressureLightWinds")
    elif low_pressure and (strong_wind or moderate_wind):
        keys.append(RADAR_PREFIX + "lowPressureBreezy")
    elif strong_wind:
        keys.append(RADAR_PREFIX + "strongWindsChanges")
    elif moderate_wind:
        keys.append(RADAR_PREFIX + "moderateWindsClouds")

    if clouds > 30:
        keys.append(RADAR_PREFIX + "cloudsModerateTemp")

    if policy.is_real(current):
        keys.append(RADAR_PREFIX + ("precipHeavy" if _is_storm(current) else "precipLight"))
    else:
        keys.append(RADAR_PREFIX + "precipLow")

    return keys or [RADAR_PREFIX + "fallbackStable"]


def compute_derived(
    weather: WeatherData, policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY
) -> WeatherDerived:
    """All derived values for one composed snapshot."""
    aqi = weather.air_quality.aqi if weather.air_quality is not None else None
    category_key, range_text_key = _aqi_bucket(aqi)
    current_condition = get_unified_condition(
        weather.current,
        sun_times_of(weather.current),
        weather.timezone_offset_seconds,
        policy=policy,
    )
    return WeatherDerived(
        aqi_category_key=category_key,
        aqi_range_text_key=range_text_key,
        insight_keys=get_insight_keys(weather.current, policy),
        background_key=CONDITION_TO_BACKGROUND[current_condition.condition],
        current_condition=current_condition,
    )
