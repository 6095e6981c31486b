"""Weather routes: current conditions and cache maintenance.

Provider failures propagate as DashboardError subclasses and are mapped to
404/503 by the centralized handlers in errors.py.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from dependencies import get_weather_service
from errors import ValidationError
from services.weather import WeatherService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/weather", tags=["weather"])


@router.post("/cache/clear")
async def clear_cache(weather: WeatherService = Depends(get_weather_service)) -> dict:
    """Evict expired weather entries."""
    removed = weather.sweep_cache()
    logger.info("Manual cache sweep removed %d entries", removed)
    return {
        "message": "Cache cleared successfully",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/cache/stats")
async def cache_stats(weather: WeatherService = Depends(get_weather_service)) -> dict:
    return weather.cache_stats()


@router.get("/{location}")
async def current_weather(location: str, weather: WeatherService = Depends(get_weather_service)) -> dict:
    if not location.strip():
        raise ValidationError("Location is required", title="Invalid location")
    return await weather.lookup(location.strip())
