"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from artify.config import get_settings
from artify.db import DbClient, InMemoryDbClient, MongoDbClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so the MongoDB connection pool is shared
    across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.mongo_uri:
        logger.info("Using in-memory document store")
        _db_client = InMemoryDbClient()
    else:
        _db_client = MongoDbClient(settings.mongo_uri, settings.db_name)
    return _db_client


def reset_db_client() -> None:
    """Drop the cached client so the next call re-reads settings."""
    global _db_client
    _db_client = None
