import logging
from typing import Optional

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from placeshare.config import settings

logger = logging.getLogger(__name__)

# Process-wide client and database handle
_client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None


def _client_options(uri: str) -> dict:
    # Atlas (SRV) connections need a CA bundle; a local mongod does not
    if uri.startswith("mongodb+srv://"):
        return {"tlsCAFile": certifi.where()}
    return {}


async def connect(uri: Optional[str] = None, db_name: Optional[str] = None):
    """
    Connect to MongoDB and store the client and database handle in module globals.
    """
    global _client, db
    uri = uri or settings.MONGO_URI
    db_name = db_name or settings.DB_NAME
    if not uri:
        raise ValueError("MONGO_URI is not set. Add it to the environment or the .env file.")

    try:
        _client = AsyncIOMotorClient(uri, **_client_options(uri))
        db = _client[db_name]
        await db.command("ping")
        logger.info(f"Connected to MongoDB database '{db_name}'")
    except PyMongoError as e:
        logger.error(f"MongoDB connection failed: {e}")
        _client = None
        db = None


async def close():
    """Close the MongoDB connection."""
    global _client, db
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    db = None
