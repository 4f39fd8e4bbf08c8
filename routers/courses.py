"""Course CRUD and student self-enrollment."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

import access
import database
import storage
from database import create_document, get_documents, serialize, to_object_id, utcnow
from errors import Conflict, ValidationFailed
from routers.deps import load_course, users_brief
from schemas import Course, CourseCreate, CourseUpdate
from security import get_current_user, require_role

router = APIRouter(prefix="/api/courses", tags=["courses"])
logger = logging.getLogger("lms.web.courses")

CHILD_COLLECTIONS = {"material": "materials", "assignment": "assignments", "quiz": "quizzes", "notice": "notices"}
HIDDEN_FROM_STUDENTS = {"results", "questions", "submissions"}


def _with_people(course: dict, include_students: bool = True) -> dict:
    out = serialize(course)
    teacher = users_brief([course.get("teacher")], fields=("name", "email", "avatar"))
    out["teacher"] = teacher[0] if teacher else course.get("teacher")
    if include_students:
        out["students"] = users_brief(course.get("students") or [])
    return out


def _check_code_free(code: str, exclude=None) -> None:
    # The sparse unique index stays authoritative under races.
    query = {"code": code}
    if exclude is not None:
        query["_id"] = {"$ne": exclude}
    if database.db.course.find_one(query):
        raise Conflict("Course with that code already exists")


@router.get("")
async def list_courses(user=Depends(get_current_user)):
    role = user.get("role")
    if role == "admin":
        query = {}
    elif role == "teacher":
        query = {"teacher": user["_id"]}
    else:
        query = {"students": user["_id"]}
    courses = get_documents("course", query, sort=[("created_at", -1)])
    items = [_with_people(c, include_students=role != "student") for c in courses]
    return {"success": True, "count": len(items), "courses": items}


@router.get("/teacher", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def teacher_courses(user=Depends(get_current_user)):
    courses = get_documents("course", {"teacher": user["_id"]}, sort=[("created_at", -1)])
    return {"success": True, "count": len(courses), "courses": [_with_people(c, False) for c in courses]}


@router.get("/{course_id}")
async def get_course(course_id: str, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.require_read(user, course)
    out = _with_people(course)
    cid = str(course["_id"])
    teacher_view = access.has_teacher_access(user, course)
    for name, key in CHILD_COLLECTIONS.items():
        query = {"course": cid}
        if name in ("quiz", "material") and not teacher_view:
            query["is_published"] = True
        items = serialize(get_documents(name, query, sort=[("created_at", -1)]))
        if not teacher_view:
            items = [{k: v for k, v in d.items() if k not in HIDDEN_FROM_STUDENTS} for d in items]
        out[key] = items
    return {"success": True, "course": out}


@router.post("", status_code=201, dependencies=[Depends(require_role(["teacher", "admin"]))])
async def create_course(payload: CourseCreate, user=Depends(get_current_user)):
    code = (payload.code or "").strip() or None
    if code:
        _check_code_free(code)
    course = Course(title=payload.title, code=code, description=payload.description, teacher=user["_id"])
    doc = course.model_dump(exclude_none=True)
    try:
        cid = create_document("course", doc)
    except DuplicateKeyError:
        raise Conflict("Course with that code already exists")
    database.db.user.update_one({"_id": to_object_id(user["_id"])}, {"$addToSet": {"courses": cid}})
    logger.info("course created id=%s teacher=%s", cid, user["_id"])
    return {"success": True, "course": serialize(load_course(cid))}


@router.put("/{course_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def update_course(course_id: str, payload: CourseUpdate, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.require_teacher(user, course, "Not authorized to update this course")
    update = {"$set": {"updated_at": utcnow()}}
    if payload.title is not None:
        if not payload.title.strip():
            raise ValidationFailed("Course title is required")
        update["$set"]["title"] = payload.title.strip()
    if payload.description is not None:
        update["$set"]["description"] = payload.description
    if payload.code is not None:
        if payload.code.strip():
            _check_code_free(payload.code.strip(), exclude=course["_id"])
            update["$set"]["code"] = payload.code.strip()
        else:
            update["$unset"] = {"code": ""}
    try:
        database.db.course.update_one({"_id": course["_id"]}, update)
    except DuplicateKeyError:
        raise Conflict("Course with that code already exists")
    return {"success": True, "course": serialize(load_course(course_id))}


@router.delete("/{course_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def delete_course(course_id: str, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.require_teacher(user, course, "Not authorized to delete this course")
    cid = str(course["_id"])
    database.db.user.update_many({"courses": cid}, {"$pull": {"courses": cid}})
    removed = 0
    for name in CHILD_COLLECTIONS:
        for child in database.db[name].find({"course": cid}):
            for ref in storage.file_refs(child):
                removed += storage.delete_file(ref.get("file_url"))
        database.db[name].delete_many({"course": cid})
    database.db.course.delete_one({"_id": course["_id"]})
    logger.info("course deleted id=%s by=%s files=%d", cid, user["_id"], removed)
    return {"success": True, "message": "Course deleted successfully"}


@router.post("/{course_id}/enroll")
async def enroll(course_id: str, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.check_enrollment(user, course)
    uid = user["_id"]
    # Conditional push: a concurrent duplicate matches nothing and is reported as a conflict.
    result = database.db.course.update_one(
        {"_id": course["_id"], "students": {"$ne": uid}},
        {"$push": {"students": uid}},
    )
    if result.modified_count == 0:
        raise Conflict("Already enrolled in this course")
    database.db.user.update_one({"_id": to_object_id(uid)}, {"$addToSet": {"courses": str(course["_id"])}})
    logger.info("student %s enrolled in course %s", uid, course["_id"])
    return {"success": True, "message": "Successfully enrolled in course", "course": serialize(load_course(course_id))}
