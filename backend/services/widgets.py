"""Widget persistence: saved dashboard locations in a Mongo collection."""

import logging
import re
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

OBJECT_ID_PATTERN = re.compile(r"[0-9a-fA-F]{24}")
MIN_LOCATION_LENGTH = 2
MAX_LOCATION_LENGTH = 100


def validate_location(location: Any) -> str:
    """Trimmed location, or ValidationError for anything unusable."""
    if not isinstance(location, str) or not location.strip():
        raise ValidationError("Location is required and must be a non-empty string")
    location = location.strip()
    if len(location) < MIN_LOCATION_LENGTH:
        raise ValidationError(f"Location must be at least {MIN_LOCATION_LENGTH} characters long")
    if len(location) > MAX_LOCATION_LENGTH:
        raise ValidationError(f"Location must be less than {MAX_LOCATION_LENGTH} characters")
    return location


def validate_widget_id(widget_id: str) -> ObjectId:
    if not OBJECT_ID_PATTERN.fullmatch(widget_id):
        raise ValidationError("Widget ID must be a valid 24-character hex string", title="Invalid widget ID")
    return ObjectId(widget_id)


def _duplicate(location: str) -> ConflictError:
    return ConflictError(
        f"A widget for location '{location}' already exists",
        title="Widget already exists",
    )


def serialize(doc: dict) -> dict:
    widget_id = str(doc["_id"])
    return {
        "_id": widget_id,
        "id": widget_id,
        "location": doc["location"],
        "createdAt": doc["createdAt"].isoformat(),
        "updatedAt": doc["updatedAt"].isoformat(),
    }


class WidgetStore:
    """CRUD over the widgets collection. Returns serialized dicts."""

    def __init__(self, collection):
        self.collection = collection

    async def list_all(self) -> list[dict]:
        cursor = self.collection.find().sort("createdAt", -1)
        return [serialize(doc) async for doc in cursor]

    async def find_by_location(self, location: str) -> dict | None:
        doc = await self.collection.find_one(
            {"location": {"$regex": f"^{re.escape(location)}$", "$options": "i"}}
        )
        return serialize(doc) if doc else None

    async def create(self, location: Any) -> dict:
        location = validate_location(location)
        if await self.find_by_location(location):
            raise _duplicate(location)

        now = datetime.now(timezone.utc)
        doc = {"location": location, "createdAt": now, "updatedAt": now}
        # the case-insensitive unique index catches creates racing past the check above
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise _duplicate(location) from e
        doc["_id"] = result.inserted_id
        logger.info("Created widget %s for %s", result.inserted_id, location)
        return serialize(doc)

    async def get(self, widget_id: str) -> dict:
        oid = validate_widget_id(widget_id)
        doc = await self.collection.find_one({"_id": oid})
        if doc is None:
            raise NotFoundError(f"Widget with ID {widget_id} not found", title="Widget not found")
        return serialize(doc)

    async def delete(self, widget_id: str) -> dict:
        oid = validate_widget_id(widget_id)
        doc = await self.collection.find_one_and_delete({"_id": oid})
        if doc is None:
            raise NotFoundError(f"Widget with ID {widget_id} not found", title="Widget not found")
        logger.info("Deleted widget %s", widget_id)
        return serialize(doc)
