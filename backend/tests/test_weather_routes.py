import httpx
from fastapi.testclient import TestClient

from weatherdash import main as main_module
from weatherdash.services.geocoding import GeocodeCache


class _FakeRouteWeatherClient:
    def __init__(self, current, forecast, air_quality, fail_current=False) -> None:
        self.current = current
        self.forecast = forecast
        self.air_quality = air_quality
        self.fail_current = fail_current

    async def close(self) -> None:
        return None

    async def fetch_current_weather(self, latitude, longitude, unit):
        if self.fail_current:
            request = httpx.Request("GET", "https://weather.test/weather")
            response = httpx.Response(503, request=request)
            raise httpx.HTTPStatusError("upstream down", request=request, response=response)
        return self.current

    async def fetch_forecast(self, latitude, longitude, unit):
        return self.forecast

    async def fetch_air_quality(self, latitude, longitude):
        return self.air_quality

    async def geocode_direct(self, query: str, limit: int = 1) -> list[dict]:
        if query.lower().startswith("lis"):
            return [{"name": "Lisbon", "country": "PT", "lat": 38.72, "lon": -9.14}][:limit]
        return []

    async def geocode_reverse(self, latitude: float, longitude: float, limit: int = 1) -> list[dict]:
        return [{"name": "Lisbon", "country": "PT"}]


def _install(monkeypatch, current_payload, forecast_payload, air_quality_payload, **kwargs) -> TestClient:
    fake = _FakeRouteWeatherClient(current_payload, forecast_payload, air_quality_payload, **kwargs)
    monkeypatch.setattr(main_module, "weather_client", fake)
    monkeypatch.setattr(main_module, "geocode_cache", GeocodeCache())
    return TestClient(main_module.app)


def test_health_route() -> None:
    client = TestClient(main_module.app)
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_weather_route_returns_weather_and_derived(
    monkeypatch, current_payload, forecast_payload, air_quality_payload
) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    response = client.get("/api/weather", params={"latitude": 38.72, "longitude": -9.14, "unit": "F"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["weather"]["current"]["location"] == "Lisbon, PT"
    assert payload["weather"]["unit"] == "F"
    assert len(payload["weather"]["forecast"]) <= 5
    assert len(payload["weather"]["hourly"]) <= 48
    assert payload["derived"]["aqi_category_key"] == "moderate"
    assert payload["derived"]["current_condition"]["condition"] == "CLEAR"


def test_weather_route_resolves_location_query(
    monkeypatch, current_payload, forecast_payload, air_quality_payload
) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    response = client.get("/api/weather", params={"location_query": "Lisbon"})
    assert response.status_code == 200
    assert response.json()["weather"]["latitude"] == 38.72


def test_weather_route_rejects_out_of_range_latitude(
    monkeypatch, current_payload, forecast_payload, air_quality_payload
) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    response = client.get("/api/weather", params={"latitude": 95, "longitude": 0})
    assert response.status_code == 422
    assert "latitude" in response.json()["detail"]


def test_weather_route_requires_a_location(monkeypatch, current_payload, forecast_payload, air_quality_payload) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)
    assert client.get("/api/weather").status_code == 422


def test_weather_route_maps_upstream_failure_to_502(
    monkeypatch, current_payload, forecast_payload, air_quality_payload
) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload, fail_current=True)

    response = client.get("/api/weather", params={"latitude": 1.0, "longitude": 2.0})
    assert response.status_code == 502
    assert "Weather provider error" in response.json()["detail"]


def test_unknown_location_returns_404(monkeypatch, current_payload, forecast_payload, air_quality_payload) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    assert client.get("/api/geocode", params={"query": "Atlantis"}).status_code == 404
    assert client.get("/api/weather", params={"location_query": "Atlantis"}).status_code == 404


def test_geocode_routes(monkeypatch, current_payload, forecast_payload, air_quality_payload) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    direct = client.get("/api/geocode", params={"query": "Lisbon"}).json()
    reverse = client.get("/api/geocode/reverse", params={"latitude": 38.7, "longitude": -9.1}).json()
    suggestions = client.get("/api/geocode/suggestions", params={"query": "Lis"}).json()
    too_short = client.get("/api/geocode/suggestions", params={"query": "L"}).json()

    assert direct["result"]["name"] == "Lisbon"
    assert reverse["result"]["country"] == "PT"
    assert [item["name"] for item in suggestions["results"]] == ["Lisbon"]
    assert too_short["results"] == []


def test_radar_insight_route(monkeypatch, current_payload, forecast_payload, air_quality_payload) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    response = client.get("/api/weather/radar-insight", params={"latitude": 38.7, "longitude": -9.1, "layer": "wind"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["layer"] == "wind"
    assert payload["keys"]
    assert all(key.startswith("radar.insight.now.") for key in payload["keys"])


def test_radar_insight_rejects_unknown_layer() -> None:
    client = TestClient(main_module.app)
    response = client.get("/api/weather/radar-insight", params={"latitude": 1, "longitude": 2, "layer": "snow"})
    assert response.status_code == 422


def test_radar_insight_exposes_tile_template_per_layer(
    monkeypatch, current_payload, forecast_payload, air_quality_payload
) -> None:
    client = _install(monkeypatch, current_payload, forecast_payload, air_quality_payload)

    for layer, setting in (
        ("clouds", main_module.settings.clouds_tile_url),
        ("wind", main_module.settings.wind_tile_url),
        ("precipitation", main_module.settings.precipitation_tile_url),
    ):
        response = client.get(
            "/api/weather/radar-insight", params={"latitude": 38.7, "longitude": -9.1, "layer": layer}
        )
        assert response.status_code == 200
        assert response.json()["tile_url"] == setting
        assert "{z}/{x}/{y}" in setting
