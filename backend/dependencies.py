"""FastAPI dependencies resolving the shared service instances on app.state."""

from fastapi import Request

from services.assistant import AIAssistant
from services.weather import WeatherService
from services.widgets import WidgetStore


def get_weather_service(request: Request) -> WeatherService:
    return request.app.state.weather


def get_assistant(request: Request) -> AIAssistant:
    return request.app.state.assistant


def get_widget_store(request: Request) -> WidgetStore:
    store = getattr(request.app.state, "widgets", None)
    if store is None:
        raise RuntimeError("Widget store is not initialized")
    return store
