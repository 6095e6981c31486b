"""Centralized configuration: all env vars in one place."""

import os
from urllib.parse import urlsplit

DEFAULT_MONGODB_URI = "mongodb://localhost:27017/weather-dashboard"
DEFAULT_DATABASE = "weather-dashboard"


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.environment: str = os.getenv("ENVIRONMENT", "development")
        self.port: int = int(os.getenv("PORT", "5000"))
        self.frontend_url: str | None = os.getenv("FRONTEND_URL")

        # MongoDB
        self.mongodb_uri: str = os.getenv("MONGODB_URI", DEFAULT_MONGODB_URI)
        self.mongodb_database: str = os.getenv("MONGODB_DATABASE") or _database_from_uri(self.mongodb_uri)

        # Weather (Open-Meteo)
        self.cache_duration_minutes: float = float(os.getenv("CACHE_DURATION_MINUTES", "5"))
        self.geocoding_api_url: str = os.getenv(
            "GEOCODING_API_URL", "https://geocoding-api.open-meteo.com/v1/search"
        )
        self.forecast_api_url: str = os.getenv("FORECAST_API_URL", "https://api.open-meteo.com/v1/forecast")
        self.weather_api_key: str | None = os.getenv("WEATHER_API_KEY")

        # Generative text (any OpenAI-compatible endpoint)
        self.openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
        self.ai_base_url: str | None = os.getenv("AI_BASE_URL")
        self.ai_model: str = os.getenv("AI_MODEL", "gpt-4o-mini")

        # Request limits
        self.rate_limit_window_minutes: float = float(os.getenv("RATE_LIMIT_WINDOW_MINUTES", "15"))
        self.rate_limit_max_requests: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
        # Only set behind a reverse proxy that overwrites X-Forwarded-For
        self.trust_proxy: bool = os.getenv("TRUST_PROXY", "false").lower() in ("1", "true", "yes")
        self.max_body_bytes: int = int(os.getenv("MAX_BODY_BYTES", str(10 * 1024 * 1024)))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins(self) -> list[str]:
        if self.is_production:
            return [self.frontend_url] if self.frontend_url else []
        return ["http://localhost:3000"]

    @property
    def cache_duration_seconds(self) -> float:
        return self.cache_duration_minutes * 60

    def validate(self) -> list[str]:
        """Return list of missing required env vars for AI features."""
        required = ["OPENAI_API_KEY"]
        if self.is_production:
            required.append("FRONTEND_URL")
        return [var for var in required if not getattr(self, var.lower())]


def _database_from_uri(uri: str) -> str:
    path = urlsplit(uri).path.lstrip("/")
    return path or DEFAULT_DATABASE


settings = Settings()
