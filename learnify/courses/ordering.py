"""
Module Ordering Engine
Keeps module `order` within a course dense and unique (1..N).

Every mutation runs inside a course-scoped lease: one atomic conditional
update on the course document claims `ordering_lock` until it is released
or `ordering_lock_expires` passes. Sibling shifts are single update_many
calls, so there is no unique index on (course_id, order).
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from learnify.config import (
    ORDERING_LOCK_TTL_SECONDS,
    ORDERING_LOCK_RETRIES,
    ORDERING_LOCK_RETRY_DELAY,
)
from learnify.courses.database import build_module_doc, refresh_total_modules
from learnify.database import serialize_mongo, serialize_many
from learnify.errors import NotFoundError, BusyError, InvalidInputError

logger = logging.getLogger(__name__)

# ==================== ORDERING LEASE ====================

@asynccontextmanager
async def ordering_lease(db: AsyncIOMotorDatabase, course_id: str):
    """Hold the ordering lease of a course for the duration of the block"""
    token = uuid.uuid4().hex

    for _ in range(ORDERING_LOCK_RETRIES):
        now = datetime.utcnow()
        course = await db.courses.find_one_and_update(
            {
                "course_id": course_id,
                "$or": [
                    {"ordering_lock": None},
                    {"ordering_lock_expires": {"$lt": now}}
                ]
            },
            {"$set": {
                "ordering_lock": token,
                "ordering_lock_expires": now + timedelta(seconds=ORDERING_LOCK_TTL_SECONDS)
            }},
            return_document=ReturnDocument.AFTER
        )
        if course:
            break

        exists = await db.courses.find_one({"course_id": course_id}, {"_id": 1})
        if not exists:
            raise NotFoundError("Course not found")

        await asyncio.sleep(ORDERING_LOCK_RETRY_DELAY)
    else:
        logger.warning("Ordering lease on %s still held after %d attempts", course_id, ORDERING_LOCK_RETRIES)
        raise BusyError("Course modules are being reordered, please retry")

    try:
        yield course
    finally:
        await db.courses.update_one(
            {"course_id": course_id, "ordering_lock": token},
            {"$set": {"ordering_lock": None, "ordering_lock_expires": None}}
        )

# ==================== INSERT / MOVE / DELETE ====================

async def insert_module(
    db: AsyncIOMotorDatabase,
    course_id: str,
    data: dict,
    requested_order: Optional[int] = None
) -> dict:
    """
    Insert a module at `requested_order`, shifting siblings at or after it up by one.
    No order means append; an order past the end is clamped to count + 1.
    """
    async with ordering_lease(db, course_id):
        count = await db.modules.count_documents({"course_id": course_id})

        if requested_order is None or requested_order > count + 1:
            order = count + 1
        else:
            order = max(1, requested_order)

        occupied = await db.modules.find_one({"course_id": course_id, "order": order}, {"_id": 1})
        if occupied:
            await db.modules.update_many(
                {"course_id": course_id, "order": {"$gte": order}},
                {"$inc": {"order": 1}}
            )

        module = build_module_doc(course_id, data, order)
        await db.modules.insert_one(module)
        await refresh_total_modules(db, course_id)

    logger.info("Module %s inserted at %d in %s", module["module_id"], order, course_id)
    return serialize_mongo(module)


async def move_module(db: AsyncIOMotorDatabase, module_id: str, new_order: int) -> dict:
    module = await db.modules.find_one({"module_id": module_id})
    if not module:
        raise NotFoundError("Module not found")
    course_id = module["course_id"]

    async with ordering_lease(db, course_id):
        # Re-read under the lease, the order may have shifted meanwhile
        module = await db.modules.find_one({"module_id": module_id})
        if not module:
            raise NotFoundError("Module not found")

        current = module["order"]
        count = await db.modules.count_documents({"course_id": course_id})
        new_order = max(1, min(new_order, count))

        if new_order == current:
            return serialize_mongo(module)

        siblings = {"course_id": course_id, "module_id": {"$ne": module_id}}
        if new_order > current:
            siblings["order"] = {"$gt": current, "$lte": new_order}
            shift = -1
        else:
            siblings["order"] = {"$gte": new_order, "$lt": current}
            shift = 1

        await db.modules.update_many(siblings, {"$inc": {"order": shift}})
        module = await db.modules.find_one_and_update(
            {"module_id": module_id},
            {"$set": {"order": new_order, "updated_at": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER
        )

    logger.info("Module %s moved %d -> %d", module_id, current, new_order)
    return serialize_mongo(module)


async def delete_module(db: AsyncIOMotorDatabase, module_id: str) -> dict:
    """Delete a module and its materials, then close the gap it leaves"""
    module = await db.modules.find_one({"module_id": module_id})
    if not module:
        raise NotFoundError("Module not found")
    course_id = module["course_id"]

    async with ordering_lease(db, course_id):
        module = await db.modules.find_one({"module_id": module_id})
        if not module:
            raise NotFoundError("Module not found")

        materials = await db.materials.delete_many({"module_id": module_id})
        await db.modules.delete_one({"module_id": module_id})
        await db.modules.update_many(
            {"course_id": course_id, "order": {"$gt": module["order"]}},
            {"$inc": {"order": -1}}
        )
        total = await refresh_total_modules(db, course_id)

    logger.info("Module %s deleted (%d materials), %s now has %d modules",
                module_id, materials.deleted_count, course_id, total)
    return {"module_id": module_id, "course_id": course_id, "total_modules": total}


async def reorder_modules(db: AsyncIOMotorDatabase, course_id: str, module_ids: List[str]) -> List[dict]:
    """Assign orders 1..N following `module_ids`, which must list every module of the course once"""
    async with ordering_lease(db, course_id):
        existing = await db.modules.distinct("module_id", {"course_id": course_id})

        if len(module_ids) != len(set(module_ids)) or set(module_ids) != set(existing):
            raise InvalidInputError("Order must list every module of the course exactly once")

        # Intermediate states are only visible to readers, writers wait on the lease
        now = datetime.utcnow()
        for index, mid in enumerate(module_ids, start=1):
            await db.modules.update_one(
                {"module_id": mid, "course_id": course_id},
                {"$set": {"order": index, "updated_at": now}}
            )

        modules = await db.modules.find({"course_id": course_id}).sort("order", 1).to_list(length=None)

    return serialize_many(modules)
