"""
MongoDB connection lifecycle for Motor and Beanie.
"""

from typing import Optional

import structlog
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .config import Settings, get_settings

logger = structlog.get_logger(__name__)

DEFAULT_DATABASE_NAME = "mediachat"


def database_name(mongodb_url: str) -> str:
    """
    Database named in the connection URL path.

    >>> database_name("mongodb://user:pw@db:27017/chats?authSource=admin")
    'chats'
    >>> database_name("mongodb://localhost:27017")
    'mediachat'
    """
    path = mongodb_url.split("://", 1)[-1].partition("/")[2]
    return path.split("?", 1)[0] or DEFAULT_DATABASE_NAME


def redacted_host(mongodb_url: str) -> str:
    """Host part of the URL without credentials, for logs."""
    return mongodb_url.split("://", 1)[-1].rsplit("@", 1)[-1].split("/", 1)[0]


class Database:
    """Process-wide Motor client shared by the Beanie documents."""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect_to_mongo(cls, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        db_name = database_name(settings.mongodb_url)

        logger.info("Connecting to MongoDB", host=redacted_host(settings.mongodb_url), database=db_name)

        cls.client = AsyncIOMotorClient(
            settings.mongodb_url,
            minPoolSize=settings.db_min_pool_size,
            maxPoolSize=settings.db_max_pool_size,
            serverSelectionTimeoutMS=settings.db_server_selection_timeout_ms,
        )
        cls.database = cls.client[db_name]

        try:
            await cls.client.admin.command("ping")
        except Exception as e:
            logger.error("Failed to connect to MongoDB", database=db_name, error=str(e))
            raise

        from ..models import get_document_models
        await init_beanie(database=cls.database, document_models=get_document_models())
        logger.info("MongoDB ready", database=db_name)

    @classmethod
    async def close_mongo_connection(cls) -> None:
        if cls.client is None:
            return
        cls.client.close()
        cls.client = None
        cls.database = None
        logger.info("MongoDB connection closed")

    @classmethod
    async def ping(cls) -> bool:
        """True when the server answers a ping; False without a client."""
        if cls.client is None:
            return False
        try:
            await cls.client.admin.command("ping")
        except Exception as e:
            logger.warning("MongoDB ping failed", error=str(e))
            return False
        return True
