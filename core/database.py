"""
Document store connection management with the async PyMongo client
"""

from typing import Optional

from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.server_api import ServerApi

from core.config import Settings, get_settings
import logging

logger = logging.getLogger(__name__)


def create_client(settings: Optional[Settings] = None) -> AsyncMongoClient:
    """Create the document store client (Stable API v1)"""
    settings = settings or get_settings()
    return AsyncMongoClient(settings.MONGO_URI, server_api=ServerApi("1"))


def get_database(client: AsyncMongoClient, settings: Optional[Settings] = None) -> AsyncDatabase:
    settings = settings or get_settings()
    return client[settings.MONGO_DATABASE]


def get_objects_collection(db: AsyncDatabase, settings: Optional[Settings] = None) -> AsyncCollection:
    """Collection holding one document per (object id, version)"""
    settings = settings or get_settings()
    return db[settings.MONGO_COLLECTION]


def get_checkpoint_collection(db: AsyncDatabase, settings: Optional[Settings] = None) -> AsyncCollection:
    settings = settings or get_settings()
    return db[settings.CHECKPOINT_COLLECTION]


async def ping(client: AsyncMongoClient):
    """Fail fast if the document store is unreachable"""
    await client.admin.command("ping")
    logger.info("Document store connection verified")
