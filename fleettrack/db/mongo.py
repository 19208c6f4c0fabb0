import logging

import certifi
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from fleettrack.core import config

logger = logging.getLogger(__name__)

_client = None


def client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        kwargs = {"tz_aware": True}
        if config.MONGO_TLS:
            kwargs["tlsCAFile"] = certifi.where()
        _client = AsyncIOMotorClient(config.MONGO_URL, **kwargs)
    return _client


def db() -> AsyncIOMotorDatabase:
    return client()[config.MONGO_DB]


async def ping() -> None:
    await client().admin.command("ping")
    logger.info("Connected to MongoDB database %r", config.MONGO_DB)


def close() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed")


async def ensure_indexes(database) -> None:
    # natural keys
    await database.shipments.create_index([("tracking_number", ASCENDING)], unique=True)
    await database.vehicles.create_index([("plate", ASCENDING)], unique=True)
    await database.drivers.create_index([("license", ASCENDING)], unique=True)
    await database.drivers.create_index([("email", ASCENDING)], unique=True)

    # filters / sorting
    await database.shipments.create_index([("status", ASCENDING), ("priority", ASCENDING)])
    await database.shipments.create_index([("created_at", DESCENDING)])
    await database.vehicles.create_index([("status", ASCENDING), ("type", ASCENDING)])
    await database.vehicles.create_index([("next_maintenance", ASCENDING)])
    await database.drivers.create_index([("status", ASCENDING)])
    await database.drivers.create_index([("rating", DESCENDING)])
