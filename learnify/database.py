import logging
import uuid

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from learnify.config import MONGO_URL, MONGO_DB_NAME

logger = logging.getLogger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


def get_db_instance() -> AsyncIOMotorDatabase:
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()

# ==================== HELPERS ====================

def serialize_mongo(doc: dict) -> dict:
    if doc and "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_many(docs: list[dict]) -> list[dict]:
    return [serialize_mongo(doc) for doc in docs]


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12].upper()}"

# ==================== INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """
    Create all Learnify indexes.
    Called once on startup; create_index is idempotent.
    """
    await database.courses.create_index("course_id", unique=True)
    await database.courses.create_index([("is_popular", ASCENDING), ("enrolled_count", DESCENDING)])

    # (course_id, order) is a lookup index only. Order shifts run as one
    # update_many, a unique index would reject the intermediate state.
    await database.modules.create_index("module_id", unique=True)
    await database.modules.create_index([("course_id", ASCENDING), ("order", ASCENDING)])

    await database.materials.create_index("material_id", unique=True)
    await database.materials.create_index("module_id")
    await database.materials.create_index("course_id")

    await database.enrollments.create_index("enrollment_id", unique=True)
    await database.enrollments.create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING)],
        unique=True
    )

    await database.discussions.create_index("discussion_id", unique=True)
    await database.discussions.create_index([("category", ASCENDING), ("created_at", DESCENDING)])

    await database.discussion_replies.create_index("reply_id", unique=True)
    await database.discussion_replies.create_index([("discussion_id", ASCENDING), ("created_at", ASCENDING)])

    await database.discussion_votes.create_index(
        [("user_id", ASCENDING), ("discussion_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"discussion_id": {"$exists": True}},
        name="user_discussion_vote"
    )
    await database.discussion_votes.create_index(
        [("user_id", ASCENDING), ("reply_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"reply_id": {"$exists": True}},
        name="user_reply_vote"
    )

    logger.info("Learnify indexes ensured")
