"""FastAPI application entry point for the weather dashboard API."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

import db
from config import settings
from errors import register_error_handlers
from middleware import BodySizeLimitMiddleware, RateLimitMiddleware
from services.assistant import AIAssistant
from services.cache import TTLCache
from services.weather import WeatherService
from services.widgets import WidgetStore

# Structured logging: JSON for production, human-readable for local
if settings.is_production:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
        stream=sys.stdout,
    )
else:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = settings.validate()
    if missing:
        logger.warning("Missing env vars (AI features may fail): %s", ", ".join(missing))

    await db.init_client()
    app.state.widgets = WidgetStore(db.collection(db.WIDGETS_COLLECTION))

    for cache in (app.state.weather_cache, app.state.ai_cache):
        cache.start()
    logger.info("Environment: %s", settings.environment)
    try:
        yield
    finally:
        for cache in (app.state.weather_cache, app.state.ai_cache):
            await cache.stop()
        await db.close_client()


def create_app() -> FastAPI:
    app = FastAPI(title="Weather Dashboard API", version="1.0.0", lifespan=lifespan)

    # Shared services; the widget store is attached once Mongo is connected
    app.state.weather_cache = TTLCache(duration_seconds=settings.cache_duration_seconds)
    app.state.ai_cache = TTLCache(duration_seconds=settings.cache_duration_seconds)
    app.state.weather = WeatherService(
        app.state.weather_cache,
        geocoding_url=settings.geocoding_api_url,
        forecast_url=settings.forecast_api_url,
        api_key=settings.weather_api_key,
    )
    app.state.assistant = AIAssistant(app.state.weather, app.state.ai_cache)
    app.state.widgets = None

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_minutes * 60,
        trust_forwarded=settings.trust_proxy,
    )

    # Security headers
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # CORS last so it wraps rate-limit and size rejections too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    )

    # Centralized error handlers
    register_error_handlers(app)

    from routes.ai import router as ai_router
    from routes.health import router as health_router
    from routes.weather import router as weather_router
    from routes.widgets import router as widgets_router

    app.include_router(health_router)
    app.include_router(widgets_router)
    app.include_router(ai_router)
    app.include_router(weather_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
