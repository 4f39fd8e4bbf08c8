"""Study materials: uploaded files or external links attached to a course."""
from __future__ import annotations

import logging
from typing import Optional, get_args

from fastapi import APIRouter, Depends, File, Form, UploadFile

import access
import database
import storage
from database import create_document, get_document, get_documents, serialize, utcnow
from errors import ValidationFailed
from routers.deps import link_child, load_course, owning_course, unlink_child, update_fields, users_brief
from schemas import Material, MaterialType, MaterialUpdate
from security import get_current_user, require_role

router = APIRouter(prefix="/api/materials", tags=["materials"])
logger = logging.getLogger("lms.web.materials")

MATERIAL_TYPES = set(get_args(MaterialType))


def _load(material_id: str) -> dict:
    return get_document("material", material_id, "Material")


@router.post("", status_code=201, dependencies=[Depends(require_role(["teacher", "admin"]))])
async def create_material(
    title: str = Form(...),
    course: str = Form(...),
    type: str = Form(...),
    description: str = Form(""),
    link: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user=Depends(get_current_user),
):
    if not title.strip():
        raise ValidationFailed("Please provide title and course ID")
    if type not in MATERIAL_TYPES:
        raise ValidationFailed(f"Material type must be one of: {', '.join(sorted(MATERIAL_TYPES))}")
    course_doc = load_course(course)
    access.require_teacher(user, course_doc, "Not authorized to add materials to this course")

    has_file = file is not None and bool(file.filename)
    if type == "link":
        if not (link and link.strip()):
            raise ValidationFailed("Link materials need a URL")
    elif not has_file:
        raise ValidationFailed("Please attach a file for this material")

    file_ref = storage.save_upload("materials", file) if has_file and type != "link" else None
    doc = Material(
        title=title.strip(),
        description=description,
        course=str(course_doc["_id"]),
        teacher=user["_id"],
        type=type,
        file=file_ref,
        link=link.strip() if type == "link" and link else None,
    )
    mid = create_document("material", doc)
    link_child(str(course_doc["_id"]), "materials", mid)
    logger.info("material created id=%s course=%s type=%s", mid, course_doc["_id"], type)
    return {"success": True, "material": serialize(_load(mid))}


@router.get("/course/{course_id}")
async def course_materials(course_id: str, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.require_read(user, course)
    query = {"course": str(course["_id"])}
    if not access.has_teacher_access(user, course):
        query["is_published"] = True
    materials = get_documents("material", query, sort=[("order", 1), ("created_at", -1)])
    return {"success": True, "count": len(materials), "materials": serialize(materials)}


@router.get("/{material_id}")
async def get_material(material_id: str, user=Depends(get_current_user)):
    material = _load(material_id)
    course = owning_course(material)
    access.require_read(user, course, "Not authorized to access this material")
    out = serialize(material)
    author = users_brief([material.get("teacher")], fields=("name", "avatar"))
    out["teacher"] = author[0] if author else material.get("teacher")
    return {"success": True, "material": out}


@router.put("/{material_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def update_material(material_id: str, payload: MaterialUpdate, user=Depends(get_current_user)):
    material = _load(material_id)
    access.require_teacher(user, owning_course(material), "Not authorized to update this material")
    changes = update_fields(payload, "Material")
    if "link" in changes and material.get("type") != "link":
        raise ValidationFailed("Only link materials have a URL")
    changes["updated_at"] = utcnow()
    database.db.material.update_one({"_id": material["_id"]}, {"$set": changes})
    return {"success": True, "material": serialize(_load(material_id))}


@router.delete("/{material_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def delete_material(material_id: str, user=Depends(get_current_user)):
    material = _load(material_id)
    access.require_teacher(user, owning_course(material), "Not authorized to delete this material")
    unlink_child(material.get("course"), "materials", str(material["_id"]))
    if material.get("file"):
        storage.delete_file(material["file"].get("file_url"))
    database.db.material.delete_one({"_id": material["_id"]})
    return {"success": True, "message": "Material deleted successfully"}
