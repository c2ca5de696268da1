from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import logging

from practice_api.core.config import Settings

logger = logging.getLogger(__name__)


async def connect_to_mongo(settings: Settings) -> AsyncIOMotorClient:
    """Create a MongoDB client and test the connection"""
    try:
        client = AsyncIOMotorClient(settings.mongodb_url)
        # Test connection
        await client.admin.command('ping')
        logger.info(f"✓ Connected to MongoDB at {settings.mongodb_url}")
        return client
    except Exception as e:
        logger.error(f"✗ Failed to connect to MongoDB: {e}")
        raise


def close_mongo_connection(client: AsyncIOMotorClient) -> None:
    """Close MongoDB connection"""
    if client:
        client.close()
        logger.info("✓ Closed MongoDB connection")


def get_database(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    """Get the database instance"""
    return client[settings.database_name]


async def ping_mongo(client: AsyncIOMotorClient) -> bool:
    try:
        await client.admin.command('ping')
        return True
    except Exception as e:
        logger.error(f"❌ MongoDB ping failed: {e}")
        return False
