import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.MONGODB_DB)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # Users
    await db["users"].create_index("username", unique=True)

    # Students: stable code and email are unique
    await db["students"].create_index("code", unique=True)
    await db["students"].create_index("email", unique=True)
    await db["students"].create_index("course")

    # Transactions: by owner, date, status and receipt number
    await db["transactions"].create_index([("date", DESCENDING)])
    await db["transactions"].create_index([("student_id", ASCENDING), ("date", DESCENDING)])
    await db["transactions"].create_index("status")
    # Claiming a receipt number is the insert itself
    await db["transactions"].create_index("receipt_number", unique=True, sparse=True)

    # One plan per student
    await db["emi_plans"].create_index("student_id", unique=True)
    await db["emi_plans"].create_index("installments.due_date")

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db

async def ping(db: AsyncIOMotorDatabase) -> bool:
    """Round-trip to the server."""
    await db.command("ping")
    return True
