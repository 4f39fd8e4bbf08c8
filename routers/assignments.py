"""Assignment CRUD and student file submission."""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

import access
import database
import storage
from database import as_utc, create_document, get_document, get_documents, serialize, utcnow
from errors import Conflict, Forbidden, ValidationFailed
from routers.deps import (
    course_ids_for,
    link_child,
    load_course,
    owning_course,
    unlink_child,
    update_fields,
    with_course_brief,
)
from routers.submissions import grade_submission
from schemas import Assignment, AssignmentCreate, AssignmentUpdate, GradeRequest, Submission
from security import get_current_user, require_role

router = APIRouter(prefix="/api/assignments", tags=["assignments"])
logger = logging.getLogger("lms.web.assignments")


def _load(assignment_id: str) -> dict:
    return get_document("assignment", assignment_id, "Assignment")


def _for_viewer(assignment: dict, user: dict, course: dict) -> dict:
    if access.has_teacher_access(user, course):
        return assignment
    out = dict(assignment)
    out["submissions"] = [s for s in assignment.get("submissions") or [] if s.get("student") == user["_id"]]
    return out


def _list_for(user: dict, course_ids: Optional[List[str]], limit: Optional[int] = None) -> List[dict]:
    query = {} if course_ids is None else {"course": {"$in": course_ids}}
    docs = get_documents("assignment", query, limit=limit, sort=[("created_at", -1)])
    if user.get("role") == "student":
        docs = [dict(d, submissions=[s for s in d.get("submissions") or [] if s.get("student") == user["_id"]])
                for d in docs]
    return with_course_brief(docs)


@router.get("")
async def list_assignments(user=Depends(get_current_user)):
    items = _list_for(user, course_ids_for(user))
    return {"success": True, "count": len(items), "assignments": items}


@router.get("/teacher", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def teacher_assignments(user=Depends(get_current_user)):
    items = _list_for(user, course_ids_for(user))
    return {"success": True, "count": len(items), "assignments": items}


@router.get("/teacher/recent", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def teacher_recent_assignments(user=Depends(get_current_user)):
    items = _list_for(user, course_ids_for(user), limit=5)
    return {"success": True, "count": len(items), "assignments": items}


@router.get("/student", dependencies=[Depends(require_role(["student"]))])
async def student_assignments(user=Depends(get_current_user)):
    items = _list_for(user, course_ids_for(user))
    return {"success": True, "count": len(items), "assignments": items}


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: str, user=Depends(get_current_user)):
    assignment = _load(assignment_id)
    course = owning_course(assignment)
    access.require_read(user, course, "Not authorized to access this assignment")
    return {"success": True, "assignment": serialize(_for_viewer(assignment, user, course))}


@router.post("", status_code=201, dependencies=[Depends(require_role(["teacher", "admin"]))])
async def create_assignment(payload: AssignmentCreate, user=Depends(get_current_user)):
    course = load_course(payload.course)
    access.require_teacher(user, course, "Not authorized to create assignments for this course")
    doc = Assignment(
        title=payload.title.strip(),
        description=payload.description,
        course=str(course["_id"]),
        teacher=str(course["teacher"]),
        deadline=payload.deadline,
        total_points=payload.total_points,
    )
    aid = create_document("assignment", doc)
    link_child(str(course["_id"]), "assignments", aid)
    logger.info("assignment created id=%s course=%s", aid, course["_id"])
    return {"success": True, "assignment": serialize(_load(aid))}


@router.post("/{assignment_id}/attachments", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def add_attachments(assignment_id: str, files: List[UploadFile] = File(...), user=Depends(get_current_user)):
    assignment = _load(assignment_id)
    access.require_teacher(user, owning_course(assignment), "Not authorized to update this assignment")
    refs = storage.save_uploads("assignments", files)
    database.db.assignment.update_one(
        {"_id": assignment["_id"]},
        {"$push": {"attachments": {"$each": refs}}, "$set": {"updated_at": utcnow()}},
    )
    return {"success": True, "assignment": serialize(_load(assignment_id))}


@router.put("/{assignment_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def update_assignment(assignment_id: str, payload: AssignmentUpdate, user=Depends(get_current_user)):
    assignment = _load(assignment_id)
    access.require_teacher(user, owning_course(assignment), "Not authorized to update this assignment")
    changes = update_fields(payload, "Assignment", clearable=("deadline",))
    graded = [s.get("grade") for s in assignment.get("submissions") or [] if s.get("grade") is not None]
    if changes.get("total_points") is not None and graded and max(graded) > changes["total_points"]:
        raise ValidationFailed("Total points cannot be lower than an existing grade")
    changes["updated_at"] = utcnow()
    database.db.assignment.update_one({"_id": assignment["_id"]}, {"$set": changes})
    return {"success": True, "assignment": serialize(_load(assignment_id))}


@router.delete("/{assignment_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def delete_assignment(assignment_id: str, user=Depends(get_current_user)):
    assignment = _load(assignment_id)
    access.require_teacher(user, owning_course(assignment), "Not authorized to delete this assignment")
    for ref in storage.file_refs(assignment):
        storage.delete_file(ref.get("file_url"))
    unlink_child(assignment.get("course"), "assignments", str(assignment["_id"]))
    database.db.assignment.delete_one({"_id": assignment["_id"]})
    return {"success": True, "message": "Assignment deleted successfully"}


@router.post("/{assignment_id}/submit", dependencies=[Depends(require_role(["student"]))])
async def submit_assignment(
    assignment_id: str,
    content: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    user=Depends(get_current_user),
):
    assignment = _load(assignment_id)
    now = utcnow()
    deadline = as_utc(assignment.get("deadline"))
    if deadline and deadline < now:
        raise ValidationFailed("Assignment due date has passed")

    course = owning_course(assignment)
    if not access.is_enrolled(user, course):
        raise Forbidden("You are not enrolled in this course")

    uid = user["_id"]
    if any(s.get("student") == uid for s in assignment.get("submissions") or []):
        raise Conflict("You have already submitted this assignment")

    uploads = [f for f in files or [] if f is not None and f.filename]
    if not (content and content.strip()) and not uploads:
        raise ValidationFailed("Please provide text content or at least one file")

    refs = storage.save_uploads("submissions", uploads)
    submission = Submission(student=uid, content=content, attachments=refs, submitted_at=now).model_dump()
    # Conditional push keeps one submission per student even when requests race.
    result = database.db.assignment.update_one(
        {"_id": assignment["_id"], "submissions.student": {"$ne": uid}},
        {"$push": {"submissions": submission}},
    )
    if result.modified_count == 0:
        for ref in refs:
            storage.delete_file(ref["file_url"])
        raise Conflict("You have already submitted this assignment")
    logger.info("submission stored assignment=%s student=%s files=%d", assignment["_id"], uid, len(refs))
    return {"success": True, "message": "Assignment submitted successfully", "submission": serialize(submission)}


@router.put("/{assignment_id}/grade/{submission_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def grade_assignment_submission(
    assignment_id: str, submission_id: str, payload: GradeRequest, user=Depends(get_current_user)
):
    assignment = _load(assignment_id)
    submission = grade_submission(assignment, submission_id, payload, user)
    return {"success": True, "message": "Submission graded successfully", "submission": submission}
