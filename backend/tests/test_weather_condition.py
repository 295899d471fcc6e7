import pytest

from weatherdash.schemas import NormalizedWeatherSlot, SunTimes, UnifiedCondition
from weatherdash.services.weather_condition import (
    PrecipitationPolicy,
    get_background_key,
    get_precipitation_mm,
    get_unified_condition,
    get_unified_icon_index,
    has_precipitation,
    is_night_for_slot,
    seconds_since_local_midnight,
)


DAY = 1_699_920_000
SUN = SunTimes(sunrise=(DAY + 6 * 3600) * 1000, sunset=(DAY + 18 * 3600) * 1000)
NOON_MS = (DAY + 12 * 3600) * 1000
LATE_EVENING_MS = (DAY + 21 * 3600) * 1000


def _slot(**kwargs) -> NormalizedWeatherSlot:
    defaults = {"clouds": 0, "condition_code": 800, "timestamp": NOON_MS}
    defaults.update(kwargs)
    return NormalizedWeatherSlot(**defaults)


def test_seconds_since_local_midnight_wraps_into_one_day() -> None:
    assert seconds_since_local_midnight(DAY + 3600, 0) == 3600
    assert seconds_since_local_midnight(DAY + 3600, 7200) == 3 * 3600
    assert seconds_since_local_midnight(DAY + 3600, -7200) == 23 * 3600
    assert 0 <= seconds_since_local_midnight(DAY, -5 * 3600) < 86400


def test_classifier_is_deterministic() -> None:
    slot = _slot(clouds=45, rain_1h=0.8, condition_code=501, condition="moderate rain")
    results = {get_unified_condition(slot, SUN, 0) for _ in range(5)}
    assert len(results) == 1


def test_clear_sky_uses_day_and_night_icons() -> None:
    day_slot = _slot(rain_1h=0.0)
    night_slot = _slot(rain_1h=0.0, timestamp=LATE_EVENING_MS)

    day = get_unified_condition(day_slot, SUN, 0)
    night = get_unified_condition(night_slot, SUN, 0)

    assert day.condition is UnifiedCondition.CLEAR and day.icon_index == 0
    assert night.condition is UnifiedCondition.CLEAR and night.icon_index == 1


def test_sunset_instant_counts_as_night() -> None:
    slot = _slot(timestamp=SUN.sunset)
    assert get_unified_condition(slot, SUN, 0).icon_index == 1


def test_slot_sun_times_take_priority_over_fallback_sun() -> None:
    slot = _slot(
        timestamp=(DAY + 20 * 3600) * 1000,
        sunrise=(DAY + 5 * 3600) * 1000,
        sunset=(DAY + 21 * 3600) * 1000,
    )
    assert get_unified_condition(slot, SUN, 0).icon_index == 0


def test_timezone_offset_shifts_day_night_decision() -> None:
    # 12:00 UTC is 22:00 at +10h, sun times expressed in the same instants.
    slot = _slot()
    assert get_unified_condition(slot, SUN, 10 * 3600).icon_index == 1


def test_missing_sun_data_falls_back_to_clock_hours() -> None:
    assert get_unified_condition(_slot(timestamp=(DAY + 19 * 3600) * 1000), None, 0).icon_index == 1
    assert get_unified_condition(_slot(timestamp=(DAY + 5 * 3600) * 1000), None, 0).icon_index == 1
    assert get_unified_condition(_slot(timestamp=(DAY + 9 * 3600) * 1000), None, 0).icon_index == 0


@pytest.mark.parametrize(
    "code,description,clouds,expected",
    [
        (211, "thunderstorm", 90, (UnifiedCondition.THUNDER, 7)),
        (201, "thunderstorm with rain", 90, (UnifiedCondition.THUNDER, 8)),
        (615, "light rain and snow", 90, (UnifiedCondition.SNOW_RAIN, 11)),
        (601, "snow", 90, (UnifiedCondition.SNOW, 10)),
        (600, "light snow", 40, (UnifiedCondition.SNOW, 9)),
        (301, "drizzle", 50, (UnifiedCondition.RAIN, 4)),
        (500, "light rain", 40, (UnifiedCondition.RAIN, 5)),
        (502, "heavy intensity rain", 95, (UnifiedCondition.RAIN, 6)),
        (800, "clear sky", 10, (UnifiedCondition.RAIN, 6)),
    ],
)
def test_precipitation_branches(code, description, clouds, expected) -> None:
    slot = _slot(condition_code=code, condition=description, clouds=clouds, rain_3h=1.2)
    result = get_unified_condition(slot, SUN, 0)
    assert (result.condition, result.icon_index) == expected


def test_rain_with_sun_icon_only_during_daytime() -> None:
    slot = _slot(condition_code=500, clouds=40, rain_1h=0.5, timestamp=LATE_EVENING_MS)
    assert get_unified_condition(slot, SUN, 0).icon_index == 6


def test_real_precipitation_never_yields_dry_condition() -> None:
    dry = {UnifiedCondition.CLEAR, UnifiedCondition.CLOUDY, UnifiedCondition.PARTLY_CLOUDY}
    for code in (200, 310, 500, 511, 600, 616, 701, 800, 804):
        for clouds in (0, 35, 80):
            slot = _slot(condition_code=code, clouds=clouds, rain_1h=0.31)
            assert get_unified_condition(slot, SUN, 0).condition not in dry


def test_small_amounts_do_not_count_as_precipitation() -> None:
    slot = _slot(condition_code=500, clouds=75, rain_1h=0.3, rain_3h=0.1)
    result = get_unified_condition(slot, SUN, 0)
    assert result.condition is UnifiedCondition.CLOUDY
    assert result.icon_index == 2
    assert has_precipitation(slot) is False


def test_cloud_cover_thresholds() -> None:
    assert get_unified_condition(_slot(clouds=70), SUN, 0).condition is UnifiedCondition.CLOUDY
    assert get_unified_condition(_slot(clouds=30), SUN, 0).icon_index == 3
    assert get_unified_condition(_slot(clouds=29), SUN, 0).condition is UnifiedCondition.CLEAR


def test_precipitation_amount_uses_larger_window() -> None:
    assert get_precipitation_mm(_slot(rain_1h=0.2, rain_3h=1.4)) == 1.4
    assert get_precipitation_mm(_slot()) == 0.0
    assert get_precipitation_mm(None) == 0.0


def test_missing_slot_is_clear_day() -> None:
    result = get_unified_condition(None)
    assert result.condition is UnifiedCondition.CLEAR
    assert result.icon_index == 0


def test_policy_threshold_is_injectable() -> None:
    strict = PrecipitationPolicy(threshold_mm=1.0)
    slot = _slot(condition_code=500, rain_1h=0.5, clouds=10)
    assert get_unified_condition(slot, SUN, 0, policy=strict).condition is UnifiedCondition.CLEAR
    assert get_unified_condition(slot, SUN, 0).condition is UnifiedCondition.RAIN


def test_background_key_and_night_helper_follow_classifier() -> None:
    assert get_background_key(_slot(clouds=80), SUN, 0) == "overcast"
    assert get_background_key(_slot(condition_code=616, rain_1h=2.0), SUN, 0) == "rain"
    assert is_night_for_slot(_slot(timestamp=LATE_EVENING_MS), SUN, 0) is True
    assert is_night_for_slot(None) is False
    assert get_unified_icon_index(_slot(clouds=45), SUN, 0) == 3
    assert get_unified_icon_index(_slot(timestamp=LATE_EVENING_MS), SUN, 0) == 1
