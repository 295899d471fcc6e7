from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TemperatureUnit(str, Enum):
    CELSIUS = "C"
    FAHRENHEIT = "F"

    @property
    def api_units(self) -> str:
        return "metric" if self is TemperatureUnit.CELSIUS else "imperial"


class UnifiedCondition(str, Enum):
    CLEAR = "CLEAR"
    PARTLY_CLOUDY = "PARTLY_CLOUDY"
    CLOUDY = "CLOUDY"
    RAIN = "RAIN"
    THUNDER = "THUNDER"
    SNOW = "SNOW"
    SNOW_RAIN = "SNOW_RAIN"


class Coordinates(BaseModel):
    lat: float
    lon: float
    name: str | None = Field(default=None, description="City or place name.")
    country: str | None = None
    state: str | None = None

    @property
    def label(self) -> str:
        if self.name and self.country:
            return f"{self.name}, {self.country}"
        if self.name:
            return self.name
        return f"{self.lat},{self.lon}"


class SunTimes(BaseModel):
    """Sunrise and sunset as epoch milliseconds."""

    model_config = ConfigDict(frozen=True)

    sunrise: int
    sunset: int


class NormalizedWeatherSlot(BaseModel):
    """One point-in-time weather sample.

    ``None`` always means the upstream payload carried no value; it is never
    the same thing as zero (``rain_1h=None`` is "no data", ``0.0`` is "no rain").
    """

    temperature: float | None = None
    feels_like: float | None = None
    humidity: float | None = None
    pressure: float | None = None
    wind_speed: float | None = None
    wind_deg: float | None = None
    clouds: float | None = None
    pop: int | None = None
    rain_1h: float | None = None
    rain_3h: float | None = None
    condition_code: int | None = None
    condition: str | None = Field(default=None, description="Display-only description.")
    timestamp: int | None = Field(default=None, description="Epoch milliseconds.")
    sunrise: int | None = None
    sunset: int | None = None


class UnifiedConditionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    condition: UnifiedCondition
    icon_index: int


class CurrentWeather(NormalizedWeatherSlot):
    location: str | None = None
    sunrise_text: str | None = None
    sunset_text: str | None = None
    uv_index: float = 0.0


class HourlyItem(NormalizedWeatherSlot):
    time: str
    dt: int = Field(description="Epoch seconds of the target hour.")
    temp: float = 0.0
    condition_kind: UnifiedCondition = UnifiedCondition.CLEAR
    icon_index: int = 0


class ForecastItem(BaseModel):
    date: str
    min: float
    max: float
    condition: str | None = None
    condition_code: int | None = None
    slot: NormalizedWeatherSlot | None = None
    condition_kind: UnifiedCondition = UnifiedCondition.CLEAR
    icon_index: int = 0


class AirQuality(BaseModel):
    aqi: int | None = None
    components: dict[str, float] = Field(default_factory=dict)


class WeatherData(BaseModel):
    current: CurrentWeather
    forecast: list[ForecastItem] = Field(default_factory=list, max_length=5)
    hourly: list[HourlyItem] = Field(default_factory=list, max_length=48)
    air_quality: AirQuality | None = None
    timezone_offset_seconds: int = 0
    moon_illumination: float | None = None
    latitude: float
    longitude: float
    unit: TemperatureUnit = TemperatureUnit.CELSIUS


class InsightKeys(BaseModel):
    feel_keys: list[str] = Field(default_factory=list, max_length=3)


class WeatherDerived(BaseModel):
    aqi_category_key: str
    aqi_range_text_key: str
    insight_keys: InsightKeys
    background_key: str
    current_condition: UnifiedConditionResult
