"""
Generative text client

Uses the OpenAI SDK against any OpenAI-compatible chat completions endpoint
(OpenAI itself by default, or e.g. Gemini's OpenAI-compatible endpoint via
AI_BASE_URL).

Config:
    OPENAI_API_KEY  required
    AI_BASE_URL     optional, defaults to the SDK's endpoint
    AI_MODEL        model or deployment name
"""

import logging

from openai import OpenAI, OpenAIError

from config import settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30.0

_client = None


class CompletionError(RuntimeError):
    """The provider could not produce a completion."""


def _get_client() -> OpenAI:
    """Return cached OpenAI client, creating on first call."""
    global _client
    if _client is None:
        if not settings.openai_api_key:
            raise CompletionError("OPENAI_API_KEY environment variable is required")
        _client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.ai_base_url or None,
            timeout=REQUEST_TIMEOUT_SECONDS,
            max_retries=1,
        )
    return _client


def complete(
    messages: list[dict],
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> str:
    """
    Call the model with chat messages, return assistant response text.

    Blocking; run it with asyncio.to_thread from async code.
    """
    client = _get_client()

    try:
        completion = client.chat.completions.create(
            model=settings.ai_model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except OpenAIError as e:
        raise CompletionError(f"AI service unavailable: {e}") from e

    if not completion.choices:
        raise CompletionError("Model returned no choices")
    content = completion.choices[0].message.content
    if not content or not content.strip():
        raise CompletionError("Model returned empty response (no content)")
    return content.strip()
