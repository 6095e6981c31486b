"""AI weather assistant: chat, multi-location summary, suggestions, trivia.

Each request kind caches generated text under a key built from the kind plus
its parameters. Weather context is gathered concurrently; a location that
cannot be looked up becomes an "unavailable" line instead of failing the
request.

Provider failures never reach the caller. A deterministic fallback built from
whatever weather data was fetched is returned instead, so the AI endpoints
always answer 200. This is the opposite of the weather routes, which surface
provider errors as 404/503.
"""

import asyncio
import json
import logging
from typing import Callable

from errors import ValidationError
from services import ai_client
from services.cache import TTLCache
from services.weather import WeatherService

logger = logging.getLogger(__name__)

CHAT_MAX_TOKENS = 200
SUMMARY_MAX_TOKENS = 300
SUGGESTIONS_MAX_TOKENS = 400
TRIVIA_MAX_TOKENS = 200

FALLBACK_SUGGESTIONS = [
    "Barcelona, Spain - Great climate for outdoor activities",
    "Vancouver, Canada - Perfect for nature lovers",
    "Sydney, Australia - Ideal for beach and city experiences",
    "Tokyo, Japan - Fascinating weather patterns and seasons",
    "Reykjavik, Iceland - Unique Arctic weather phenomena",
]


def cache_key(kind: str, params) -> str:
    """Deterministic key for a request kind and its parameters."""
    return f"{kind}-{json.dumps(params, sort_keys=True, ensure_ascii=False)}"


def _describe(location: str, weather: dict, humidity: bool = False) -> str:
    line = f"{location}: {weather['temperature']}°C, {weather['description'].lower()}"
    if humidity:
        line += f", humidity {weather['humidity']}%"
    return line


class AIAssistant:
    def __init__(
        self,
        weather: WeatherService,
        cache: TTLCache,
        complete: Callable[..., str] = ai_client.complete,
    ):
        self.weather = weather
        self.cache = cache
        self._complete = complete

    async def _gather_weather(self, locations: list[str]) -> list[dict | None]:
        """Look up every location concurrently; failures become None."""
        results = await asyncio.gather(
            *[self.weather.lookup(loc) for loc in locations],
            return_exceptions=True,
        )
        gathered = []
        for location, result in zip(locations, results):
            if isinstance(result, Exception):
                logger.warning("Weather context unavailable for %s: %s", location, result)
                gathered.append(None)
            else:
                gathered.append(result)
        return gathered

    async def _generate(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Run one chat completion off the event loop. Raises CompletionError."""
        return await asyncio.to_thread(
            self._complete,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
        )

    async def _cached_or_generate(
        self,
        key: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        fallback: Callable[[], str],
    ) -> str:
        try:
            text = await self._generate(system_prompt, user_prompt, max_tokens)
        except ai_client.CompletionError as e:
            logger.warning("AI provider failed, returning fallback text: %s", e)
            return fallback()
        self.cache.set(key, text)
        return text

    async def chat(self, question: str, locations: list[str] | None = None) -> str:
        locations = locations or []
        key = cache_key("chat", {"question": question, "locations": locations})
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        weather_context = ""
        if locations:
            results = await self._gather_weather(locations)
            weather_context = ". ".join(
                _describe(loc, data, humidity=True) if data else f"{loc}: Weather data unavailable"
                for loc, data in zip(locations, results)
            )

        return await self._cached_or_generate(
            key,
            "You are a helpful weather assistant. Answer weather questions in a "
            "conversational, friendly way. Use the provided weather data when "
            "available. Keep responses concise and informative (under 100 words).",
            f"Question: {question}\nCurrent weather data: {weather_context or 'none provided'}",
            CHAT_MAX_TOKENS,
            lambda: (
                "I can help with weather questions! You're currently tracking "
                f"{len(locations)} locations. Check your weather widgets for current conditions."
            ),
        )

    async def summary(self, locations: list[str]) -> str:
        ordered = sorted(locations)
        key = cache_key("summary", ordered)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        results = await self._gather_weather(ordered)
        available = [(loc, data) for loc, data in zip(ordered, results) if data]
        if not available:
            raise ValidationError(
                "No weather data available for provided locations",
                title="Weather data unavailable",
            )

        weather_summary = " ".join(f"{_describe(loc, data)}." for loc, data in available)

        def fallback() -> str:
            average = sum(data["temperature"] for _, data in available) / len(available)
            return (
                f"Weather Summary: Average temperature across {len(available)} "
                f"locations is {average:.1f}°C. {weather_summary}"
            )

        return await self._cached_or_generate(
            key,
            "You are a weather reporter writing concise, engaging daily summaries.",
            f"Create a daily weather summary for these locations: {weather_summary}\n\n"
            "Please:\n"
            "- Highlight interesting patterns or contrasts\n"
            "- Provide brief insights about the overall weather picture\n"
            "- Keep it informative but engaging\n"
            "- Limit to 150 words",
            SUMMARY_MAX_TOKENS,
            fallback,
        )

    async def suggestions(self, interests: str, current_locations: list[str] | None = None) -> str:
        current_locations = current_locations or []
        key = cache_key("suggestions", {"currentLocations": current_locations, "interests": interests})
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        tracked = ", ".join(current_locations) or "no locations yet"
        return await self._cached_or_generate(
            key,
            "You are a travel and weather advisor.",
            f"The user currently tracks weather for: {tracked}.\n\n"
            f"Their interests are: {interests}\n\n"
            "Suggest exactly 5 interesting locations around the world that would be "
            "perfect for someone with these interests. For each location, provide:\n"
            "1. The city/country name\n"
            "2. Why it matches their interests\n"
            "3. What makes the weather/climate special there\n\n"
            "Format as a numbered list. Be specific and helpful.",
            SUGGESTIONS_MAX_TOKENS,
            lambda: (
                f"Based on your interests in {interests}, here are 5 recommended locations:\n\n"
                + "\n".join(f"{i}. {s}" for i, s in enumerate(FALLBACK_SUGGESTIONS, start=1))
            ),
        )

    async def trivia(self, location: str) -> tuple[str, dict | None]:
        """Trivia text plus the weather snapshot it was based on."""
        key = cache_key("trivia", location.strip().lower())
        cached = self.cache.get(key)
        if cached is not None:
            return cached, self.weather.peek(location)

        [weather] = await self._gather_weather([location])
        if weather is None:
            raise ValidationError(
                f"Unable to fetch weather data for {location}",
                title="Weather data unavailable",
            )

        text = await self._cached_or_generate(
            key,
            "You are a meteorology enthusiast who shares surprising weather facts.",
            f"Generate an interesting weather fact or trivia about {location}. "
            f"Current weather: {weather['temperature']}°C, {weather['description'].lower()}.\n\n"
            "It could be about historical weather events, unique climate features, "
            "interesting meteorological phenomena, record temperatures, or how "
            "geography affects weather there. Keep it to 2-3 sentences.",
            TRIVIA_MAX_TOKENS,
            lambda: (
                f"{location} is currently experiencing {weather['description'].lower()} at "
                f"{weather['temperature']}°C. Did you know that weather patterns can vary "
                "significantly even within the same city due to local geography and urban heat effects?"
            ),
        )
        return text, weather
