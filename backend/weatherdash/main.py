from __future__ import annotations

from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from weatherdash.config import get_settings
from weatherdash.errors import CoordinateValidationError, LocationNotFoundError, WeatherFetchError
from weatherdash.logging_config import configure_logging
from weatherdash.schemas import TemperatureUnit, WeatherData
from weatherdash.services.compose_weather import WeatherComposer
from weatherdash.services.derived_weather import compute_derived, get_radar_insight_keys
from weatherdash.services.geocoding import CoordinateResolver, GeocodeCache
from weatherdash.services.weather_client import WeatherClient


settings = get_settings()
configure_logging(settings.log_level)

weather_client = WeatherClient(settings=settings)
geocode_cache = GeocodeCache(
    ttl_seconds=settings.geocode_cache_ttl_seconds,
    max_entries=settings.geocode_cache_max_entries,
)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.frontend_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await weather_client.close()


@app.get("/api/health")
async def health() -> dict:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timestamp_utc": datetime.now(tz=timezone.utc).isoformat(),
    }


@app.get("/api/geocode")
async def geocode(query: str = Query(min_length=1, max_length=80)) -> dict:
    result = await _resolver().get_coordinates(query)
    if result is None:
        raise HTTPException(status_code=404, detail="Location not found.")
    return {"result": result.model_dump()}


@app.get("/api/geocode/reverse")
async def reverse_geocode(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
) -> dict:
    result = await _resolver().get_city_from_coordinates(latitude, longitude)
    return {"result": result.model_dump() if result else None}


@app.get("/api/geocode/suggestions")
async def city_suggestions(query: str = Query(default="", max_length=80)) -> dict:
    results = await _resolver().get_city_suggestions(query)
    return {"results": [item.model_dump() for item in results]}


@app.get("/api/weather")
async def weather(
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    location_query: str | None = Query(default=None, max_length=80),
    unit: TemperatureUnit = Query(default=TemperatureUnit.CELSIUS),
    label: str | None = Query(default=None, max_length=120),
) -> dict:
    composed = await _compose(latitude, longitude, location_query, unit, label)
    return {
        "weather": composed.model_dump(mode="json"),
        "derived": compute_derived(composed).model_dump(mode="json"),
    }


@app.get("/api/weather/radar-insight")
async def radar_insight(
    latitude: float | None = Query(default=None),
    longitude: float | None = Query(default=None),
    location_query: str | None = Query(default=None, max_length=80),
    unit: TemperatureUnit = Query(default=TemperatureUnit.CELSIUS),
    layer: str = Query(default="clouds", pattern="^(clouds|wind|precipitation)$"),
) -> dict:
    composed = await _compose(latitude, longitude, location_query, unit, None)
    return {
        "layer": layer,
        "tile_url": _tile_url(layer),
        "keys": get_radar_insight_keys(composed, layer),
    }


def _tile_url(layer: str) -> str:
    tile_urls = {
        "clouds": settings.clouds_tile_url,
        "wind": settings.wind_tile_url,
        "precipitation": settings.precipitation_tile_url,
    }
    return tile_urls[layer]


def _resolver() -> CoordinateResolver:
    return CoordinateResolver(weather_client, geocode_cache, suggestion_limit=settings.suggestion_limit)


async def _compose(
    latitude: float | None,
    longitude: float | None,
    location_query: str | None,
    unit: TemperatureUnit,
    label: str | None,
) -> WeatherData:
    composer = WeatherComposer(weather_client, _resolver())
    try:
        if latitude is not None or longitude is not None:
            return await composer.compose(latitude, longitude, unit, label)
        if not (location_query or "").strip():
            raise HTTPException(status_code=422, detail="Provide either location_query or latitude/longitude.")
        return await composer.compose_for_query(location_query, unit)
    except CoordinateValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except LocationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except WeatherFetchError as exc:
        raise HTTPException(status_code=502, detail=f"Weather provider error: {exc}") from exc
