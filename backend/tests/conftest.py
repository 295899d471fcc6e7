import pytest


# 2023-11-14 00:00:00 UTC
DAY = 1_699_920_000


def forecast_entry(dt, temp, code=800, description="clear sky", clouds=0, rain_3h=None, pop=0.0):
    entry = {
        "dt": dt,
        "main": {"temp": temp, "feels_like": temp, "humidity": 60, "pressure": 1012},
        "wind": {"speed": 3.0, "deg": 180},
        "clouds": {"all": clouds},
        "weather": [{"id": code, "description": description}],
        "pop": pop,
        "dt_txt": "",
    }
    if rain_3h is not None:
        entry["rain"] = {"3h": rain_3h}
    return entry


@pytest.fixture
def day_start() -> int:
    return DAY


@pytest.fixture
def current_payload() -> dict:
    return {
        "name": "Lisbon",
        "dt": DAY + 10 * 3600 + 1200,
        "timezone": 0,
        "main": {"temp": 21.5, "feels_like": 21.0, "humidity": 55, "pressure": 1018},
        "wind": {"speed": 2.5, "deg": 270},
        "clouds": {"all": 10},
        "weather": [{"id": 800, "description": "clear sky"}],
        "sys": {"country": "PT", "sunrise": DAY + 6 * 3600, "sunset": DAY + 18 * 3600},
    }


@pytest.fixture
def forecast_payload() -> dict:
    return {
        "list": [
            forecast_entry(DAY + 9 * 3600 + step * 3 * 3600, 15.0 + (step % 8))
            for step in range(40)
        ]
    }


@pytest.fixture
def air_quality_payload() -> dict:
    return {"list": [{"main": {"aqi": 55}, "components": {"pm2_5": 12.4, "no2": 8.0}}]}
