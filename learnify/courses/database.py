from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime
from typing import List, Optional
import logging

from learnify.database import generate_id, serialize_mongo, serialize_many
from learnify.courses.models import EnrollmentStatus
from learnify.errors import NotFoundError, ConflictError

logger = logging.getLogger(__name__)

# ==================== DOCUMENT BUILDERS ====================

def build_sub_modules(sub_modules: List[dict]) -> List[dict]:
    """Assign ids and a 1-based order to embedded sub-modules"""
    built = []
    for index, sub in enumerate(sub_modules, start=1):
        built.append({
            "sub_module_id": sub.get("sub_module_id") or generate_id("SUB"),
            "title": sub["title"],
            "type": sub.get("type", "article"),
            "content": sub.get("content", ""),
            "duration": sub.get("duration", ""),
            "video_url": sub.get("video_url"),
            "article_url": sub.get("article_url"),
            "support_links": sub.get("support_links", []),
            "order": sub.get("order") or index,
            "is_completed": False
        })
    return built


def build_quiz(quiz: Optional[dict]) -> Optional[dict]:
    if not quiz:
        return None
    questions = quiz.get("questions", [])
    return {
        "title": quiz["title"],
        "description": quiz.get("description", ""),
        "time_limit": quiz.get("time_limit"),
        "passing_score": quiz.get("passing_score", 70),
        "questions": questions,
        "total_points": sum(q.get("points", 10) for q in questions)
    }


def build_module_doc(course_id: str, data: dict, order: int) -> dict:
    now = datetime.utcnow()
    return {
        "module_id": generate_id("MOD"),
        "course_id": course_id,
        "title": data["title"],
        "description": data["description"],
        "content": data["content"],
        "duration": data.get("duration", ""),
        "order": order,
        "sub_modules": build_sub_modules(data.get("sub_modules", [])),
        "quiz": build_quiz(data.get("quiz")),
        "support_materials": data.get("support_materials", []),
        "learning_objectives": data.get("learning_objectives", []),
        "prerequisites": data.get("prerequisites", []),
        "materials": [],
        "created_at": now,
        "updated_at": now
    }

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, course_data: dict) -> dict:
    now = datetime.utcnow()
    course = {
        "course_id": generate_id("COURSE"),
        "title": course_data["title"],
        "description": course_data["description"],
        "subject": course_data["subject"],
        "grade": course_data.get("grade", "12"),
        "level": course_data.get("level", "Beginner"),
        "thumbnail": course_data.get("thumbnail", ""),
        "total_modules": 0,
        "total_duration": course_data.get("total_duration", ""),
        "enrolled_count": 0,
        "rating": course_data.get("rating", 0),
        "is_popular": course_data.get("is_popular", False),
        "ordering_lock": None,
        "ordering_lock_expires": None,
        "created_at": now,
        "updated_at": now
    }
    await db.courses.insert_one(course)
    logger.info("Course created: %s", course["course_id"])
    return serialize_mongo(course)


async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id})


async def require_course(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    course = await get_course(db, course_id)
    if not course:
        raise NotFoundError("Course not found")
    return course


async def list_courses(db: AsyncIOMotorDatabase, popular_only: bool = False) -> List[dict]:
    if popular_only:
        cursor = db.courses.find({"is_popular": True}).sort("enrolled_count", -1).limit(6)
    else:
        cursor = db.courses.find({}).sort("created_at", -1)
    return serialize_many(await cursor.to_list(length=None))


async def update_course(db: AsyncIOMotorDatabase, course_id: str, updates: dict) -> dict:
    updates["updated_at"] = datetime.utcnow()
    course = await db.courses.find_one_and_update(
        {"course_id": course_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not course:
        raise NotFoundError("Course not found")
    return serialize_mongo(course)


async def delete_course(db: AsyncIOMotorDatabase, course_id: str) -> dict:
    """
    Delete course with explicit cascade to its modules and materials.
    Not transactional: a crash mid-way can leave orphaned modules.
    """
    await require_course(db, course_id)

    module_ids = await db.modules.distinct("module_id", {"course_id": course_id})
    materials = await db.materials.delete_many({
        "$or": [{"course_id": course_id}, {"module_id": {"$in": module_ids}}]
    })
    modules = await db.modules.delete_many({"course_id": course_id})
    await db.courses.delete_one({"course_id": course_id})

    logger.info(
        "Course %s deleted with %d modules and %d materials",
        course_id, modules.deleted_count, materials.deleted_count
    )
    return {"modules_deleted": modules.deleted_count, "materials_deleted": materials.deleted_count}


async def get_course_modules(db: AsyncIOMotorDatabase, course_id: str) -> List[dict]:
    cursor = db.modules.find({"course_id": course_id}).sort("order", 1)
    return serialize_many(await cursor.to_list(length=None))


async def get_course_sub_module_ids(db: AsyncIOMotorDatabase, course_id: str) -> List[str]:
    """All sub-module ids of the course, the denominator for progress"""
    ids = []
    cursor = db.modules.find({"course_id": course_id}, {"sub_modules": 1})
    async for module in cursor:
        for sub in module.get("sub_modules", []):
            ids.append(sub["sub_module_id"])
    return ids


async def refresh_total_modules(db: AsyncIOMotorDatabase, course_id: str) -> int:
    total = await db.modules.count_documents({"course_id": course_id})
    await db.courses.update_one({"course_id": course_id}, {"$set": {"total_modules": total}})
    return total

# ==================== ENROLLMENT ====================

async def enroll_user(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> dict:
    await require_course(db, course_id)

    existing = await db.enrollments.find_one({"user_id": user_id, "course_id": course_id})
    if existing:
        raise ConflictError("Already enrolled in this course")

    now = datetime.utcnow()
    enrollment = {
        "enrollment_id": generate_id("ENR"),
        "user_id": user_id,
        "course_id": course_id,
        "progress": 0,
        "status": EnrollmentStatus.NOT_STARTED.value,
        "enrolled_at": now,
        "last_accessed": now,
        "completed_modules": [],
        "completed_sub_modules": [],
        "quiz_results": [],
        "version": 0
    }
    try:
        await db.enrollments.insert_one(enrollment)
    except DuplicateKeyError:
        # Lost the race against a concurrent enroll for the same pair
        raise ConflictError("Already enrolled in this course")

    enrolled = await db.enrollments.count_documents({"course_id": course_id})
    await db.courses.update_one({"course_id": course_id}, {"$set": {"enrolled_count": enrolled}})

    logger.info("User %s enrolled in %s", user_id, course_id)
    return serialize_mongo(enrollment)


async def get_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    return await db.enrollments.find_one({"user_id": user_id, "course_id": course_id})


async def get_user_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Enrollments of a user, each with its course document attached"""
    enrollments = await db.enrollments.find({"user_id": user_id}).sort("last_accessed", -1).to_list(length=None)
    course_ids = [e["course_id"] for e in enrollments]
    courses = await db.courses.find({"course_id": {"$in": course_ids}}).to_list(length=None)
    by_id = {c["course_id"]: serialize_mongo(c) for c in courses}

    result = []
    for enrollment in enrollments:
        enrollment = serialize_mongo(enrollment)
        enrollment["course"] = by_id.get(enrollment["course_id"])
        result.append(enrollment)
    return result

# ==================== MATERIALS ====================

async def create_material(db: AsyncIOMotorDatabase, data: dict) -> dict:
    if data.get("course_id"):
        await require_course(db, data["course_id"])
    if data.get("module_id"):
        module = await db.modules.find_one({"module_id": data["module_id"]})
        if not module:
            raise NotFoundError("Module not found")
        if not data.get("course_id"):
            data["course_id"] = module["course_id"]

    material = {
        "material_id": generate_id("MAT"),
        "title": data["title"],
        "description": data["description"],
        "content": data["content"],
        "subject": data["subject"],
        "grade": data.get("grade", "12"),
        "course_id": data.get("course_id"),
        "module_id": data.get("module_id"),
        "type": data.get("type", "article"),
        "duration": data.get("duration", ""),
        "created_at": datetime.utcnow()
    }
    await db.materials.insert_one(material)

    if material["module_id"]:
        await db.modules.update_one(
            {"module_id": material["module_id"]},
            {"$addToSet": {"materials": material["material_id"]}}
        )
    return serialize_mongo(material)


async def update_material(db: AsyncIOMotorDatabase, material_id: str, updates: dict) -> dict:
    material = await db.materials.find_one_and_update(
        {"material_id": material_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not material:
        raise NotFoundError("Material not found")
    return serialize_mongo(material)


async def delete_material(db: AsyncIOMotorDatabase, material_id: str):
    material = await db.materials.find_one_and_delete({"material_id": material_id})
    if not material:
        raise NotFoundError("Material not found")
    if material.get("module_id"):
        await db.modules.update_one(
            {"module_id": material["module_id"]},
            {"$pull": {"materials": material_id}}
        )
