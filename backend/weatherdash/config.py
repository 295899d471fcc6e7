from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    app_name: str = "Weatherdash API"
    app_version: str = "1.0.0"
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_geo_url: str = "https://api.openweathermap.org/geo/1.0"
    precipitation_tile_url: str = "https://tile.openweathermap.org/map/precipitation_new/{z}/{x}/{y}.png"
    clouds_tile_url: str = "https://tile.openweathermap.org/map/clouds_new/{z}/{x}/{y}.png"
    wind_tile_url: str = "https://tile.openweathermap.org/map/wind_new/{z}/{x}/{y}.png"
    geocode_cache_ttl_seconds: int = 86400
    geocode_cache_max_entries: int = 512
    suggestion_limit: int = 8
    api_retry_attempts: int = 1
    request_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    frontend_origins: tuple[str, ...] = ("http://localhost:5173", "http://127.0.0.1:5173")


def get_settings() -> Settings:
    origins_raw = os.getenv("FRONTEND_ORIGINS", "").strip()
    cache_ttl_raw = os.getenv("GEOCODE_CACHE_TTL_SECONDS", "").strip()
    cache_max_raw = os.getenv("GEOCODE_CACHE_MAX_ENTRIES", "").strip()
    retry_attempts_raw = os.getenv("API_RETRY_ATTEMPTS", "").strip()
    timeout_raw = os.getenv("REQUEST_TIMEOUT_SECONDS", "").strip()

    parsed_origins = tuple(item.strip() for item in origins_raw.split(",") if item.strip())

    try:
        cache_ttl_seconds = int(cache_ttl_raw) if cache_ttl_raw else 86400
    except ValueError:
        cache_ttl_seconds = 86400

    try:
        cache_max_entries = int(cache_max_raw) if cache_max_raw else 512
    except ValueError:
        cache_max_entries = 512

    try:
        retry_attempts = int(retry_attempts_raw) if retry_attempts_raw else 1
    except ValueError:
        retry_attempts = 1

    try:
        request_timeout_seconds = float(timeout_raw) if timeout_raw else 10.0
    except ValueError:
        request_timeout_seconds = 10.0

    return Settings(
        openweather_api_key=os.getenv("OPENWEATHER_API_KEY", "").strip(),
        openweather_base_url=os.getenv("OPENWEATHER_BASE_URL", "").strip() or Settings.openweather_base_url,
        openweather_geo_url=os.getenv("OPENWEATHER_GEO_URL", "").strip() or Settings.openweather_geo_url,
        precipitation_tile_url=os.getenv("PRECIPITATION_TILE_URL", "").strip() or Settings.precipitation_tile_url,
        clouds_tile_url=os.getenv("CLOUDS_TILE_URL", "").strip() or Settings.clouds_tile_url,
        wind_tile_url=os.getenv("WIND_TILE_URL", "").strip() or Settings.wind_tile_url,
        geocode_cache_ttl_seconds=max(60, cache_ttl_seconds),
        geocode_cache_max_entries=max(1, cache_max_entries),
        api_retry_attempts=max(0, retry_attempts),
        request_timeout_seconds=max(1.0, request_timeout_seconds),
        log_level=os.getenv("LOG_LEVEL", "").strip().upper() or Settings.log_level,
        frontend_origins=parsed_origins or Settings.frontend_origins,
    )
