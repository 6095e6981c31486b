"""Open-Meteo weather client: geocode a place name, fetch current conditions.

Results are cached per normalized location (lower-cased, trimmed). Provider
failures are raised with their specific kind so routes can map them to
404/503; nothing is fabricated on failure.
"""

import logging

import httpx

from errors import LocationNotFoundError, ProviderTimeoutError, ServiceUnavailableError
from services.cache import TTLCache

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10.0
USER_AGENT = "Weather-Dashboard/1.0"

# (inclusive upper bound, icon), checked in ascending order
WEATHER_ICONS = [
    (0, "☀️"),
    (3, "⛅"),
    (48, "🌫️"),
    (67, "🌧️"),
    (77, "🌨️"),
    (82, "🌦️"),
    (99, "⛈️"),
]
DEFAULT_ICON = "🌤️"

# WMO weather interpretation codes
WEATHER_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Thunderstorm with heavy hail",
}


def weather_icon(code: int) -> str:
    if code == 0:
        return WEATHER_ICONS[0][1]
    for upper, icon in WEATHER_ICONS[1:]:
        if code <= upper:
            return icon
    return DEFAULT_ICON


def weather_description(code: int) -> str:
    return WEATHER_DESCRIPTIONS.get(code, "Unknown")


def normalize_location(location: str) -> str:
    return location.strip().lower()


def _snapshot(current: dict, place: dict) -> dict:
    """Build the snapshot; malformed provider payloads count as provider errors."""
    try:
        code = int(current["weather_code"])
        description = weather_description(code)
        return {
            "temperature": round(current["temperature_2m"]),
            "condition": description,
            "humidity": current["relative_humidity_2m"],
            "windSpeed": round(current["wind_speed_10m"], 1),
            "icon": weather_icon(code),
            "description": description,
            "cityName": place["name"],
            "country": place["country"],
        }
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("Malformed current conditions from provider: %r", current)
        raise ServiceUnavailableError("Weather API error: malformed current conditions") from e


class WeatherService:
    def __init__(
        self,
        cache: TTLCache,
        geocoding_url: str,
        forecast_url: str,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cache = cache
        self.geocoding_url = geocoding_url
        self.forecast_url = forecast_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )

    async def _get_json(self, client: httpx.AsyncClient, service: str, url: str, params: dict) -> dict:
        if self.api_key:
            params = {**params, "apikey": self.api_key}
        try:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException as e:
            logger.warning("%s request timed out: %s", service, e)
            raise ProviderTimeoutError(service) from e
        except httpx.HTTPStatusError as e:
            logger.warning("%s API returned %s", service, e.response.status_code)
            raise ServiceUnavailableError(f"{service} API error: {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("%s request failed: %s", service, e)
            raise ServiceUnavailableError(f"{service} API error: Network error") from e
        except ValueError as e:
            raise ServiceUnavailableError(f"{service} API error: invalid response body") from e

    async def _geocode(self, client: httpx.AsyncClient, location: str) -> dict:
        data = await self._get_json(
            client,
            "Geocoding",
            self.geocoding_url,
            {"name": location, "count": 1, "language": "en", "format": "json"},
        )
        results = data.get("results") or []
        if not results:
            raise LocationNotFoundError(location)
        first = results[0]
        try:
            return {
                "latitude": first["latitude"],
                "longitude": first["longitude"],
                "name": first.get("name", location),
                "country": first.get("country", ""),
            }
        except (KeyError, TypeError, AttributeError) as e:
            raise ServiceUnavailableError("Geocoding API error: malformed result") from e

    async def _current_conditions(self, client: httpx.AsyncClient, latitude: float, longitude: float) -> dict:
        data = await self._get_json(
            client,
            "Weather",
            self.forecast_url,
            {
                "latitude": latitude,
                "longitude": longitude,
                "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
                "timezone": "auto",
            },
        )
        try:
            return data["current"]
        except KeyError as e:
            raise ServiceUnavailableError("Weather API error: missing current conditions") from e

    async def lookup(self, location: str) -> dict:
        """Current conditions for a place name, served from cache when fresh."""
        key = normalize_location(location)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for location: %s", location)
            return cached

        logger.info("Cache miss for location: %s, fetching fresh data", location)
        async with self._client() as client:
            place = await self._geocode(client, location.strip())
            current = await self._current_conditions(client, place["latitude"], place["longitude"])

        snapshot = _snapshot(current, place)
        self.cache.set(key, snapshot)
        return snapshot

    def peek(self, location: str) -> dict | None:
        """Cached snapshot for a location without touching the network."""
        return self.cache.get(normalize_location(location))

    def sweep_cache(self) -> int:
        return self.cache.sweep()

    def cache_stats(self) -> dict:
        return self.cache.stats()
