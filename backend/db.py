"""
MongoDB access using PyMongo's async client.

This module owns the client. FastAPI opens it on startup and closes it on
shutdown (see `app.py`).
"""

import logging

from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.collation import Collation

from config import settings

logger = logging.getLogger(__name__)

WIDGETS_COLLECTION = "widgets"

_client: AsyncMongoClient | None = None


async def init_client() -> None:
    global _client
    if _client is not None:
        return None
    _client = AsyncMongoClient(settings.mongodb_uri, tz_aware=True, serverSelectionTimeoutMS=5000)
    await _client.admin.command("ping")
    widgets = collection(WIDGETS_COLLECTION)
    # strength 2 compares case-insensitively, so "Paris" and "paris" collide
    await widgets.create_index(
        [("location", ASCENDING)],
        name="location_ci_unique",
        unique=True,
        collation=Collation(locale="en", strength=2),
    )
    await widgets.create_index([("createdAt", DESCENDING)])
    logger.info("Connected to MongoDB database %s", settings.mongodb_database)


async def close_client() -> None:
    global _client
    if _client is None:
        return None
    await _client.close()
    _client = None


def collection(name: str) -> AsyncCollection:
    if _client is None:
        raise RuntimeError("Mongo client is not initialized. Call init_client() on startup.")
    return _client[settings.mongodb_database][name]
