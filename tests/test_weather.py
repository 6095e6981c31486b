"""Weather lookup: caching by normalized location, code mapping, failures."""

import httpx
import pytest

from errors import LocationNotFoundError, ProviderTimeoutError, ServiceUnavailableError
from services.weather import DEFAULT_ICON, weather_description, weather_icon


async def test_lookup_builds_snapshot(weather_service):
    snapshot = await weather_service.lookup("Paris")
    assert snapshot == {
        "temperature": 19,
        "condition": "Clear sky",
        "humidity": 60,
        "windSpeed": 12.3,
        "icon": "☀️",
        "description": "Clear sky",
        "cityName": "Paris",
        "country": "France",
    }


async def test_lookups_differing_in_case_and_whitespace_share_cache(weather_service, open_meteo):
    first = await weather_service.lookup("  PaRiS ")
    assert open_meteo.call_count == 2

    second = await weather_service.lookup("paris")
    assert second == first
    assert open_meteo.call_count == 2
    assert weather_service.peek(" PARIS") == first


async def test_expired_entry_is_refetched(weather_service, open_meteo, clock):
    await weather_service.lookup("Paris")
    clock.advance(301)
    await weather_service.lookup("Paris")
    assert open_meteo.call_count == 4


async def test_request_parameters(weather_service, open_meteo):
    await weather_service.lookup("London")
    geocode, forecast = open_meteo.requests
    assert geocode.url.params["name"] == "London"
    assert geocode.url.params["count"] == "1"
    assert geocode.headers["user-agent"] == "Weather-Dashboard/1.0"
    assert forecast.url.params["current"] == "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m"
    assert "apikey" not in forecast.url.params


async def test_api_key_is_sent_when_configured(weather_service, open_meteo):
    weather_service.api_key = "secret"
    await weather_service.lookup("London")
    assert all(r.url.params["apikey"] == "secret" for r in open_meteo.requests)


async def test_thunderstorm_with_hail(weather_service):
    snapshot = await weather_service.lookup("London")
    assert snapshot["description"] == "Thunderstorm with hail"
    assert snapshot["icon"] == "⛈️"
    assert snapshot["temperature"] == 11
    assert snapshot["windSpeed"] == 20.1


async def test_code_without_description_uses_threshold_icon(weather_service):
    snapshot = await weather_service.lookup("Fogtown")
    assert snapshot["icon"] == "🌫️"
    assert snapshot["description"] == "Unknown"


@pytest.mark.parametrize(
    "code,icon",
    [
        (0, "☀️"),
        (1, "⛅"),
        (3, "⛅"),
        (10, "🌫️"),
        (48, "🌫️"),
        (61, "🌧️"),
        (67, "🌧️"),
        (75, "🌨️"),
        (80, "🌦️"),
        (99, "⛈️"),
        (100, DEFAULT_ICON),
    ],
)
def test_weather_icon_thresholds(code, icon):
    assert weather_icon(code) == icon


def test_weather_description_table():
    assert weather_description(0) == "Clear sky"
    assert weather_description(96) == "Thunderstorm with hail"
    assert weather_description(10) == "Unknown"


async def test_unknown_location_raises_not_found(weather_service, open_meteo):
    with pytest.raises(LocationNotFoundError):
        await weather_service.lookup("Atlantis")
    assert open_meteo.call_count == 1
    assert weather_service.peek("Atlantis") is None


async def test_geocode_timeout(weather_service, open_meteo):
    open_meteo.geocode_error = httpx.ReadTimeout("timed out")
    with pytest.raises(ProviderTimeoutError, match="Geocoding service timeout"):
        await weather_service.lookup("Paris")


async def test_forecast_timeout(weather_service, open_meteo):
    open_meteo.forecast_error = httpx.ConnectTimeout("timed out")
    with pytest.raises(ProviderTimeoutError, match="Weather service timeout"):
        await weather_service.lookup("Paris")


async def test_provider_error_status(weather_service, open_meteo):
    open_meteo.forecast_error = 502
    with pytest.raises(ServiceUnavailableError, match="Weather API error: 502"):
        await weather_service.lookup("Paris")
    assert weather_service.peek("Paris") is None


async def test_network_error(weather_service, open_meteo):
    open_meteo.geocode_error = httpx.ConnectError("refused")
    with pytest.raises(ServiceUnavailableError, match="Network error"):
        await weather_service.lookup("Paris")


def test_cache_stats_and_sweep(weather_service, weather_cache, clock):
    weather_cache.set("stale", {})
    clock.advance(301)
    assert weather_service.cache_stats()["expiredItems"] == 1
    assert weather_service.sweep_cache() == 1
    assert weather_service.cache_stats()["totalItems"] == 0


async def test_malformed_current_conditions_is_provider_error(weather_service):
    with pytest.raises(ServiceUnavailableError, match="malformed current conditions"):
        await weather_service.lookup("Nullville")
    assert weather_service.peek("Nullville") is None


async def test_malformed_geocode_result_is_provider_error(weather_service):
    def handler(request):
        return httpx.Response(200, json={"results": [{"name": "Paris"}]})

    weather_service._transport = httpx.MockTransport(handler)
    with pytest.raises(ServiceUnavailableError, match="malformed result"):
        await weather_service.lookup("Paris")
