from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.database import get_db, serialize_mongo
from learnify.courses.dependencies import UserContext, get_current_user, require_admin
from learnify.courses.models import CourseCreate, CourseUpdate
from learnify.courses import database as course_db
from learnify.courses.progress import compute_progress
from learnify.errors import InvalidInputError

router = APIRouter(prefix="/courses", tags=["Courses"])

# ==================== PUBLIC CATALOG ====================

@router.get("")
async def list_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """All courses, newest first"""
    return await course_db.list_courses(db)


@router.get("/popular")
async def popular_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await course_db.list_courses(db, popular_only=True)


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Course with its modules in order and the caller's enrollment (or null).
    Enrollment progress is recomputed against the current sub-modules.
    """
    course = await course_db.require_course(db, course_id)
    modules = await course_db.get_course_modules(db, course_id)

    enrollment = await course_db.get_enrollment(db, user.user_id, course_id)
    if enrollment:
        sub_ids = [s["sub_module_id"] for m in modules for s in m.get("sub_modules", [])]
        progress, status = compute_progress(enrollment.get("completed_sub_modules", []), sub_ids)
        enrollment["progress"] = progress
        enrollment["status"] = status.value
        enrollment = serialize_mongo(enrollment)

    return {
        "course": serialize_mongo(course),
        "modules": modules,
        "enrollment": enrollment
    }

# ==================== ADMIN ====================

@router.post("", status_code=201)
async def create_course(
    data: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    return await course_db.create_course(db, data.model_dump(mode="json"))


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    data: CourseUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    updates = data.model_dump(mode="json", exclude_unset=True)
    if not updates:
        raise InvalidInputError("No fields to update")
    return await course_db.update_course(db, course_id, updates)


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    """Delete a course together with its modules and materials"""
    stats = await course_db.delete_course(db, course_id)
    return {"success": True, "msg": "Course deleted", **stats}
