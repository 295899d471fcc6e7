"""Unified condition classification.

Every surface that shows an icon, a background or a day/night decision goes
through :func:`get_unified_condition`. Nothing else may branch on the
free-text ``condition`` description for logic; it is display-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from time import time

from weatherdash.schemas import NormalizedWeatherSlot, SunTimes, UnifiedCondition, UnifiedConditionResult


SECONDS_PER_DAY = 86400
CLOUDS_CLOUDY = 70
CLOUDS_PARTLY = 30
NIGHT_START_HOUR = 18
DAY_START_HOUR = 6
CLEAR_SKY_CODE = 800

CONDITION_TO_BACKGROUND = {
    UnifiedCondition.CLEAR: "clear",
    UnifiedCondition.PARTLY_CLOUDY: "partly_cloudy",
    UnifiedCondition.CLOUDY: "overcast",
    UnifiedCondition.RAIN: "rain",
    UnifiedCondition.THUNDER: "thunderstorm",
    UnifiedCondition.SNOW: "snow",
    UnifiedCondition.SNOW_RAIN: "rain",
}

_RAINY_WORDS = ("rain", "drizzle", "shower")


@dataclass(frozen=True)
class PrecipitationPolicy:
    """What counts as real precipitation.

    The classifier and the insight engine both take this object so icon and
    text decisions always agree on the same threshold.
    """

    threshold_mm: float = 0.3

    def amount_mm(self, slot: NormalizedWeatherSlot | None) -> float:
        if slot is None:
            return 0.0
        return max(slot.rain_1h or 0.0, slot.rain_3h or 0.0)

    def is_real(self, slot: NormalizedWeatherSlot | None) -> bool:
        return self.amount_mm(slot) > self.threshold_mm


DEFAULT_PRECIPITATION_POLICY = PrecipitationPolicy()


def seconds_since_local_midnight(epoch_seconds: int, timezone_offset_seconds: int) -> int:
    """Local time-of-day in seconds for an epoch instant, in ``[0, 86400)``."""
    return (epoch_seconds + timezone_offset_seconds) % SECONDS_PER_DAY


def get_precipitation_mm(
    slot: NormalizedWeatherSlot | None, policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY
) -> float:
    return policy.amount_mm(slot)


def has_precipitation(
    slot: NormalizedWeatherSlot | None, policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY
) -> bool:
    return policy.is_real(slot)


def _resolve_sun_times(
    slot: NormalizedWeatherSlot, sunrise_sunset: SunTimes | None
) -> tuple[int | None, int | None]:
    sunrise = slot.sunrise if slot.sunrise is not None else (sunrise_sunset.sunrise if sunrise_sunset else None)
    sunset = slot.sunset if slot.sunset is not None else (sunrise_sunset.sunset if sunrise_sunset else None)
    return sunrise, sunset


def _is_night(
    timestamp_ms: int,
    sunrise_ms: int | None,
    sunset_ms: int | None,
    timezone_offset_seconds: int | None,
) -> bool:
    ts_seconds = timestamp_ms // 1000
    if sunrise_ms is None or sunset_ms is None or timezone_offset_seconds is None:
        hour = seconds_since_local_midnight(ts_seconds, timezone_offset_seconds or 0) // 3600
        return hour >= NIGHT_START_HOUR or hour < DAY_START_HOUR

    local_now = seconds_since_local_midnight(ts_seconds, timezone_offset_seconds)
    local_sunrise = seconds_since_local_midnight(sunrise_ms // 1000, timezone_offset_seconds)
    local_sunset = seconds_since_local_midnight(sunset_ms // 1000, timezone_offset_seconds)
    return local_now < local_sunrise or local_now >= local_sunset


def _slot_timestamp(slot: NormalizedWeatherSlot) -> int:
    return slot.timestamp if slot.timestamp is not None else int(time() * 1000)


def get_unified_condition(
    slot: NormalizedWeatherSlot | None,
    sunrise_sunset: SunTimes | None = None,
    timezone_offset_seconds: int | None = None,
    *,
    policy: PrecipitationPolicy = DEFAULT_PRECIPITATION_POLICY,
) -> UnifiedConditionResult:
    """Condition + icon index for one slot. First matching rule wins.

    Icon indices: 0 clear day, 1 clear night, 2 cloudy, 3 partly cloudy,
    4 drizzle, 5 rain with sun, 6 rain, 7 thunder, 8 thunder with rain,
    9 light snow, 10 heavy snow, 11 sleet.
    """
    if slot is None:
        return UnifiedConditionResult(condition=UnifiedCondition.CLEAR, icon_index=0)

    precip_mm = policy.amount_mm(slot)
    clouds = slot.clouds if slot.clouds is not None else 0
    code = slot.condition_code if slot.condition_code is not None else CLEAR_SKY_CODE
    sunrise, sunset = _resolve_sun_times(slot, sunrise_sunset)
    is_night = _is_night(_slot_timestamp(slot), sunrise, sunset, timezone_offset_seconds)

    if precip_mm > policy.threshold_mm:
        if 200 <= code < 300:
            description = (slot.condition or "").lower()
            rainy = any(word in description for word in _RAINY_WORDS)
            return UnifiedConditionResult(condition=UnifiedCondition.THUNDER, icon_index=8 if rainy else 7)
        if 600 <= code < 700:
            if 615 <= code <= 616:
                return UnifiedConditionResult(condition=UnifiedCondition.SNOW_RAIN, icon_index=11)
            return UnifiedConditionResult(
                condition=UnifiedCondition.SNOW, icon_index=10 if clouds >= CLOUDS_CLOUDY else 9
            )
        if 300 <= code < 400:
            return UnifiedConditionResult(condition=UnifiedCondition.RAIN, icon_index=4)
        sunny_spell = not is_night and CLOUDS_PARTLY <= clouds <= CLOUDS_CLOUDY
        return UnifiedConditionResult(condition=UnifiedCondition.RAIN, icon_index=5 if sunny_spell else 6)

    if clouds >= CLOUDS_CLOUDY:
        return UnifiedConditionResult(condition=UnifiedCondition.CLOUDY, icon_index=2)
    if clouds >= CLOUDS_PARTLY:
        return UnifiedConditionResult(condition=UnifiedCondition.PARTLY_CLOUDY, icon_index=3)
    return UnifiedConditionResult(condition=UnifiedCondition.CLEAR, icon_index=1 if is_night else 0)


def is_night_for_slot(
    slot: NormalizedWeatherSlot | None,
    sunrise_sunset: SunTimes | None = None,
    timezone_offset_seconds: int | None = None,
) -> bool:
    if slot is None:
        return False
    sunrise, sunset = _resolve_sun_times(slot, sunrise_sunset)
    return _is_night(_slot_timestamp(slot), sunrise, sunset, timezone_offset_seconds)


def get_unified_icon_index(
    slot: NormalizedWeatherSlot | None,
    sunrise_sunset: SunTimes | None = None,
    timezone_offset_seconds: int | None = None,
) -> int:
    return get_unified_condition(slot, sunrise_sunset, timezone_offset_seconds).icon_index


def get_background_key(
    slot: NormalizedWeatherSlot | None,
    sunrise_sunset: SunTimes | None = None,
    timezone_offset_seconds: int | None = None,
) -> str:
    result = get_unified_condition(slot, sunrise_sunset, timezone_offset_seconds)
    return CONDITION_TO_BACKGROUND.get(result.condition, "clear")
