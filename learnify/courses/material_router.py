from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from learnify.database import get_db, serialize_mongo, serialize_many
from learnify.courses.dependencies import UserContext, get_current_user, require_admin
from learnify.courses.models import MaterialCreate, MaterialUpdate
from learnify.courses import database as course_db
from learnify.errors import NotFoundError, InvalidInputError

router = APIRouter(prefix="/materials", tags=["Materials"])


@router.get("")
async def list_materials(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    materials = await db.materials.find({}).sort("created_at", -1).to_list(length=None)
    return serialize_many(materials)


@router.get("/module/{module_id}")
async def module_materials(
    module_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    materials = await db.materials.find({"module_id": module_id}).sort("created_at", 1).to_list(length=None)
    return serialize_many(materials)


@router.get("/course/{course_id}")
async def course_materials(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    materials = await db.materials.find({"course_id": course_id}).sort("created_at", 1).to_list(length=None)
    return serialize_many(materials)


@router.get("/{material_id}")
async def get_material(
    material_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: UserContext = Depends(get_current_user)
):
    material = await db.materials.find_one({"material_id": material_id})
    if not material:
        raise NotFoundError("Material not found")
    return serialize_mongo(material)


@router.post("", status_code=201)
async def create_material(
    data: MaterialCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    """Create a material, optionally attached to a course and/or module"""
    return await course_db.create_material(db, data.model_dump(mode="json"))


@router.put("/{material_id}")
async def update_material(
    material_id: str,
    data: MaterialUpdate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    updates = data.model_dump(mode="json", exclude_unset=True)
    if not updates:
        raise InvalidInputError("No fields to update")
    return await course_db.update_material(db, material_id, updates)


@router.delete("/{material_id}")
async def delete_material(
    material_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    admin: UserContext = Depends(require_admin)
):
    await course_db.delete_material(db, material_id)
    return {"success": True, "msg": "Material deleted"}
