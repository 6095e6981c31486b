"""AI assistant routes.

These always answer 200 once input is valid: provider outages degrade to
fallback text inside services/assistant.py.
"""

from fastapi import APIRouter, Depends

from dependencies import get_assistant
from errors import ValidationError
from schemas import ChatRequest, SuggestionsRequest, SummaryRequest, TriviaRequest
from services.assistant import AIAssistant

router = APIRouter(prefix="/api/weather/ai", tags=["ai"])


def _clean(locations: list[str] | None) -> list[str]:
    return [loc.strip() for loc in locations or [] if loc and loc.strip()]


@router.post("/chat")
async def chat(body: ChatRequest, assistant: AIAssistant = Depends(get_assistant)) -> dict:
    if not body.question or not body.question.strip():
        raise ValidationError("Question is required")
    response = await assistant.chat(body.question.strip(), _clean(body.locations))
    return {"response": response}


@router.post("/summary")
async def summary(body: SummaryRequest, assistant: AIAssistant = Depends(get_assistant)) -> dict:
    locations = _clean(body.locations)
    if not locations:
        raise ValidationError("Locations array is required")
    return {"summary": await assistant.summary(locations)}


@router.post("/suggestions")
async def suggestions(body: SuggestionsRequest, assistant: AIAssistant = Depends(get_assistant)) -> dict:
    if not body.interests or not body.interests.strip():
        raise ValidationError("Interests are required")
    text = await assistant.suggestions(body.interests.strip(), _clean(body.currentLocations))
    return {"suggestions": text}


@router.post("/trivia")
async def trivia(body: TriviaRequest, assistant: AIAssistant = Depends(get_assistant)) -> dict:
    if not body.location or not body.location.strip():
        raise ValidationError("Location is required")
    text, weather = await assistant.trivia(body.location.strip())
    return {"trivia": text, "weather": weather}
