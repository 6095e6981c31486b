"""Request bodies. Fields are optional so missing values get our own 400 messages."""

from typing import Any

from pydantic import BaseModel


class CreateWidgetRequest(BaseModel):
    location: Any = None


class ChatRequest(BaseModel):
    question: str | None = None
    locations: list[str] | None = None


class SummaryRequest(BaseModel):
    locations: list[str] | None = None


class SuggestionsRequest(BaseModel):
    interests: str | None = None
    currentLocations: list[str] | None = None


class TriviaRequest(BaseModel):
    location: str | None = None
