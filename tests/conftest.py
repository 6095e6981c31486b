"""
Shared fixtures for the weather dashboard test suite.

Provides:
- a controllable clock for TTL logic
- an Open-Meteo stub served through httpx.MockTransport
- an in-memory stand-in for the Mongo widgets collection
- an async client bound to a freshly built app (no lifespan, no Mongo)
"""

import os
import re
from copy import deepcopy
from types import SimpleNamespace

import httpx
import pytest
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo.errors import DuplicateKeyError

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.pop("OPENAI_API_KEY", None)

GEOCODING_URL = "https://geocoding.test/v1/search"
FORECAST_URL = "https://forecast.test/v1/forecast"


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Open-Meteo stub
# ---------------------------------------------------------------------------

PLACES = {
    "paris": {"name": "Paris", "country": "France", "latitude": 48.85, "longitude": 2.35},
    "london": {"name": "London", "country": "United Kingdom", "latitude": 51.51, "longitude": -0.13},
    "fogtown": {"name": "Fogtown", "country": "Nowhere", "latitude": 10.0, "longitude": 10.0},
    "nullville": {"name": "Nullville", "country": "Nowhere", "latitude": 20.0, "longitude": 20.0},
}

CONDITIONS = {
    (48.85, 2.35): {"temperature_2m": 18.6, "relative_humidity_2m": 60, "weather_code": 0, "wind_speed_10m": 12.34},
    (51.51, -0.13): {"temperature_2m": 11.2, "relative_humidity_2m": 81, "weather_code": 96, "wind_speed_10m": 20.06},
    (10.0, 10.0): {"temperature_2m": 5.4, "relative_humidity_2m": 95, "weather_code": 10, "wind_speed_10m": 3.0},
    (20.0, 20.0): {"temperature_2m": None, "relative_humidity_2m": 50, "weather_code": None, "wind_speed_10m": 1.0},
}


class OpenMeteoStub:
    """Callable handler for httpx.MockTransport mimicking both Open-Meteo APIs."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.geocode_error: Exception | int | None = None
        self.forecast_error: Exception | int | None = None

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def _fail(self, error, request):
        if isinstance(error, int):
            return httpx.Response(error, json={"error": True, "reason": "stubbed"})
        raise error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "geocoding.test":
            if self.geocode_error is not None:
                return self._fail(self.geocode_error, request)
            place = PLACES.get(request.url.params["name"].lower())
            return httpx.Response(200, json={"results": [place]} if place else {"generationtime_ms": 0.1})

        if self.forecast_error is not None:
            return self._fail(self.forecast_error, request)
        key = (float(request.url.params["latitude"]), float(request.url.params["longitude"]))
        return httpx.Response(200, json={"current": CONDITIONS[key]})


# ---------------------------------------------------------------------------
# In-memory widgets collection
# ---------------------------------------------------------------------------

class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs

    def sort(self, field: str, direction: int):
        self._docs = sorted(self._docs, key=lambda d: d[field], reverse=direction == -1)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """The subset of AsyncCollection used by WidgetStore. Records every call."""

    def __init__(self):
        self.docs: list[dict] = []
        self.calls: list[str] = []
        # mimic the case-insensitive unique index on location
        self.unique_locations = False

    def _matches(self, doc: dict, query: dict) -> bool:
        for field, cond in query.items():
            value = doc.get(field)
            if isinstance(cond, dict) and "$regex" in cond:
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                if value is None or not re.match(cond["$regex"], value, flags):
                    return False
            elif value != cond:
                return False
        return True

    def find(self, query: dict | None = None) -> FakeCursor:
        self.calls.append("find")
        return FakeCursor([deepcopy(d) for d in self.docs if self._matches(d, query or {})])

    async def find_one(self, query: dict) -> dict | None:
        self.calls.append("find_one")
        for doc in self.docs:
            if self._matches(doc, query):
                return deepcopy(doc)
        return None

    async def insert_one(self, doc: dict):
        self.calls.append("insert_one")
        if self.unique_locations and any(d["location"].lower() == doc["location"].lower() for d in self.docs):
            raise DuplicateKeyError("E11000 duplicate key error collection: widgets", code=11000)
        stored = deepcopy(doc)
        stored.setdefault("_id", ObjectId())
        self.docs.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one_and_delete(self, query: dict) -> dict | None:
        self.calls.append("find_one_and_delete")
        for i, doc in enumerate(self.docs):
            if self._matches(doc, query):
                return self.docs.pop(i)
        return None


class FakeCompletion:
    """Stand-in for ai_client.complete. Raises `error` when set."""

    def __init__(self, reply: str = "Generated by the model", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    def __call__(self, messages: list[dict], max_tokens: int = 1000, temperature: float = 0.7) -> str:
        self.calls.append({"messages": messages, "max_tokens": max_tokens})
        if self.error is not None:
            raise self.error
        return self.reply


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def open_meteo():
    return OpenMeteoStub()


@pytest.fixture
def weather_cache(clock):
    from services.cache import TTLCache

    return TTLCache(duration_seconds=300, clock=clock)


@pytest.fixture
def weather_service(weather_cache, open_meteo):
    from services.weather import WeatherService

    return WeatherService(
        weather_cache,
        geocoding_url=GEOCODING_URL,
        forecast_url=FORECAST_URL,
        transport=httpx.MockTransport(open_meteo),
    )


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def ai_cache(clock):
    from services.cache import TTLCache

    return TTLCache(duration_seconds=300, clock=clock)


@pytest.fixture
def assistant(weather_service, ai_cache, completion):
    from services.assistant import AIAssistant

    return AIAssistant(weather_service, ai_cache, complete=completion)


@pytest.fixture
def widgets_collection():
    return FakeCollection()


@pytest.fixture
def app(weather_service, weather_cache, assistant, ai_cache, widgets_collection):
    """Fresh app with stubbed providers and the in-memory widgets collection."""
    from app import create_app
    from services.widgets import WidgetStore

    _app = create_app()
    _app.state.weather_cache = weather_cache
    _app.state.ai_cache = ai_cache
    _app.state.weather = weather_service
    _app.state.assistant = assistant
    _app.state.widgets = WidgetStore(widgets_collection)
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
