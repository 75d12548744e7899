"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. advisor_messages - questions and answers exchanged with the AI advisor
2. webhook_events   - raw payloads received from Stripe and Content Snare

WHY MongoDB for these?
- Payload shapes are owned by third parties and change without notice
- Chat history is append-only and read back per session
- No joins needed - documents are self-contained
"""

import logging
from datetime import datetime
from typing import Optional, List
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from frog_portal.db.mongodb import get_collection, COLLECTIONS

logger = logging.getLogger(__name__)


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# ADVISOR MESSAGES COLLECTION
# ============================================================

class AdvisorMessageService:
    """
    Stores the advisor conversation, one document per message.
    role is "user" or "assistant".
    """

    def __init__(self, collection: Optional[Collection] = None):
        self.collection: Collection = collection if collection is not None else get_collection(COLLECTIONS["advisor_messages"])

    def add(self, session_id: str, user_id: int, role: str, content: str, sources: Optional[List[str]] = None) -> str:
        doc = {
            "session_id": session_id,
            "user_id": user_id,
            "role": role,
            "content": content,
            "sources": sources or [],
            "created_at": datetime.utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def history(self, session_id: str, user_id: int, limit: int = 20) -> List[dict]:
        """Most recent messages of a session, oldest first."""
        cursor = (
            self.collection.find({"session_id": session_id, "user_id": user_id})
            .sort("created_at", -1)
            .limit(limit)
        )
        return serialize_docs(list(cursor))[::-1]


# ============================================================
# WEBHOOK EVENTS COLLECTION
# ============================================================

class WebhookEventService:
    """Audit log of inbound webhooks."""

    def __init__(self, collection: Optional[Collection] = None):
        self.collection: Collection = collection if collection is not None else get_collection(COLLECTIONS["webhook_events"])

    def record(self, source: str, event_type: str, payload: dict, handled: bool = True) -> str:
        doc = {
            "source": source,
            "event_type": event_type,
            "payload": payload,
            "handled": handled,
            "received_at": datetime.utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)


def record_webhook_event(source: str, event_type: str, payload: dict, handled: bool = True) -> Optional[str]:
    """Best-effort audit write; a MongoDB outage must not fail the webhook."""
    try:
        return WebhookEventService().record(source, event_type, payload, handled)
    except PyMongoError as e:
        logger.warning("Could not record %s webhook %s: %s", source, event_type, e)
        return None
