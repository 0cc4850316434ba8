from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.database import get_db
from learnify.courses.dependencies import UserContext, get_current_user
from learnify.courses.models import ProgressUpdate
from learnify.courses import database as course_db
from learnify.courses.progress import get_enrollment_with_progress, sync_progress

router = APIRouter(prefix="/courses", tags=["Enrollment"])


@router.get("/user/my-courses")
async def my_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """Courses the caller is enrolled in, most recently accessed first"""
    return await course_db.get_user_enrollments(db, user.user_id)


@router.post("/{course_id}/enroll")
async def enroll(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    enrollment = await course_db.enroll_user(db, user.user_id, course_id)
    return {"success": True, "msg": "Enrolled successfully", "enrollment": enrollment}


@router.get("/{course_id}/enrollment")
async def get_enrollment(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await get_enrollment_with_progress(db, user.user_id, course_id)


@router.put("/{course_id}/progress")
async def update_progress(
    course_id: str,
    data: ProgressUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    """
    Merge completed module / sub-module ids reported by the client.
    The percentage is never taken from the client.
    """
    return await sync_progress(
        db, user.user_id, course_id,
        completed_modules=data.completed_modules,
        completed_sub_modules=data.completed_sub_modules
    )
