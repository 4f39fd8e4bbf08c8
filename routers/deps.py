"""Lookups shared by the route modules."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel

import database
from database import get_document, serialize, to_object_id
from errors import ValidationFailed

Doc = Dict[str, Any]


def load_course(course_id: str) -> Doc:
    return get_document("course", course_id, "Course")


def owning_course(doc: Doc) -> Doc:
    """Course of a child entity, or a stand-in built from its denormalized teacher."""
    course_id = doc.get("course")
    if course_id:
        course = database.db.course.find_one({"_id": to_object_id(course_id, "Course")})
        if course:
            return course
    return {"_id": course_id, "teacher": doc.get("teacher"), "students": []}


def course_ids_for(user: Doc) -> Optional[List[str]]:
    """Ids of the courses `user` teaches or attends; None for admins (all courses)."""
    role = user.get("role")
    if role == "admin":
        return None
    field = "teacher" if role == "teacher" else "students"
    return [str(c["_id"]) for c in database.db.course.find({field: user["_id"]}, {"_id": 1})]


def users_brief(ids: Iterable[str], fields=("name", "email", "avatar")) -> List[Doc]:
    oids = [to_object_id(i, "User") for i in ids if i]
    if not oids:
        return []
    projection = {f: 1 for f in fields}
    return [serialize(u) for u in database.db.user.find({"_id": {"$in": oids}}, projection)]


def courses_brief(ids: Iterable[str]) -> Dict[str, Doc]:
    oids = [to_object_id(i, "Course") for i in set(ids) if i]
    if not oids:
        return {}
    return {
        str(c["_id"]): serialize(c)
        for c in database.db.course.find({"_id": {"$in": oids}}, {"title": 1, "code": 1})
    }


def with_course_brief(docs: List[Doc]) -> List[Doc]:
    briefs = courses_brief(d.get("course") for d in docs)
    out = []
    for d in docs:
        item = serialize(d)
        item["course"] = briefs.get(str(d.get("course")), d.get("course"))
        out.append(item)
    return out


def link_child(course_id: str, key: str, child_id: str) -> None:
    database.db.course.update_one({"_id": to_object_id(course_id, "Course")}, {"$addToSet": {key: child_id}})


def unlink_child(course_id: Optional[str], key: str, child_id: str) -> None:
    if course_id:
        database.db.course.update_one({"_id": to_object_id(course_id, "Course")}, {"$pull": {key: child_id}})


def update_fields(payload: BaseModel, label: str, clearable: Iterable[str] = (),
                  required_text: Iterable[str] = ("title",)) -> Doc:
    """Fields a PUT body actually set; explicit nulls only for fields listed in `clearable`."""
    clearable = set(clearable)
    required_text = set(required_text)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field not in clearable:
            raise ValidationFailed(f"{label} {field} cannot be null")
        if field in required_text and isinstance(value, str) and not value.strip():
            raise ValidationFailed(f"{label} {field} is required")
    return changes
