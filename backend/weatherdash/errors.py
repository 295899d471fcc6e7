from __future__ import annotations


class WeatherdashError(Exception):
    """Base class for errors raised by the weather composition pipeline."""


class CoordinateValidationError(WeatherdashError, ValueError):
    """Raised before any network call when latitude/longitude are unusable."""


class WeatherFetchError(WeatherdashError):
    """The current-weather fetch failed; nothing else can render without it."""


class LocationNotFoundError(WeatherdashError):
    pass


class FetchCancelledError(WeatherdashError):
    """A newer fetch cycle superseded this one."""
