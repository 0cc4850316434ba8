from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from datetime import datetime

from learnify.database import get_db, serialize_mongo
from learnify.courses.dependencies import UserContext, get_current_user, require_admin
from learnify.courses.models import ModuleCreate, ModuleUpdate, ReorderPayload, QuizSubmission
from learnify.courses import database as course_db
from learnify.courses import ordering, progress
from learnify.errors import NotFoundError

router = APIRouter(prefix="/modules", tags=["Modules"])

# ==================== READ ====================

@router.get("/course/{course_id}")
async def list_course_modules(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await course_db.get_course_modules(db, course_id)


@router.get("/{module_id}")
async def get_module(
    module_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    module = await db.modules.find_one({"module_id": module_id})
    if not module:
        raise NotFoundError("Module not found")
    return serialize_mongo(module)

# ==================== ORDERING ====================

@router.post("", status_code=201)
async def create_module(
    data: ModuleCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    """Insert a module; siblings at or after the requested order shift up"""
    payload = data.model_dump(mode="json", exclude={"course_id", "order"})
    return await ordering.insert_module(db, data.course_id, payload, data.order)


@router.put("/{module_id}")
async def update_module(
    module_id: str,
    data: ModuleUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    updates = data.model_dump(mode="json", exclude_unset=True, exclude={"order"})
    if "sub_modules" in updates:
        updates["sub_modules"] = course_db.build_sub_modules(updates["sub_modules"] or [])
    if "quiz" in updates:
        updates["quiz"] = course_db.build_quiz(updates["quiz"])

    updates["updated_at"] = datetime.utcnow()
    module = await db.modules.find_one_and_update(
        {"module_id": module_id},
        {"$set": updates},
        return_document=ReturnDocument.AFTER
    )
    if not module:
        raise NotFoundError("Module not found")

    if data.order is not None:
        return await ordering.move_module(db, module_id, data.order)
    return serialize_mongo(module)


@router.put("/course/{course_id}/reorder")
async def reorder_modules(
    course_id: str,
    payload: ReorderPayload,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    modules = await ordering.reorder_modules(db, course_id, payload.order)
    return {"success": True, "modules": modules}


@router.delete("/{module_id}")
async def delete_module(
    module_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    result = await ordering.delete_module(db, module_id)
    return {"success": True, "msg": "Module deleted", **result}

# ==================== PROGRESS ====================

@router.post("/{module_id}/submodules/{sub_module_id}/complete")
async def complete_sub_module(
    module_id: str,
    sub_module_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await progress.complete_sub_module(db, user.user_id, module_id, sub_module_id)


@router.post("/{module_id}/quiz/submit")
async def submit_quiz(
    module_id: str,
    submission: QuizSubmission,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    return await progress.submit_quiz(db, user.user_id, module_id, submission.answers)
