"""
MongoDB Connection Utility

MongoDB stores:
- Advisor chat messages (user questions and AI answers per session)
- Raw webhook events received from Stripe and Content Snare

Both are schema-flexible, append-only documents that are never joined
against the relational tables.
"""
import logging

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from frog_portal.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)
    return _client


def get_mongo_db() -> Database:
    """Get the portal document database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "advisor_messages": "advisor_messages",
    "webhook_events": "webhook_events",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["advisor_messages"]].create_index([
        ("session_id", 1),
        ("created_at", 1)
    ])
    db[COLLECTIONS["advisor_messages"]].create_index("user_id")

    db[COLLECTIONS["webhook_events"]].create_index([
        ("source", 1),
        ("event_type", 1)
    ])

    logger.info("MongoDB indexes created successfully")
