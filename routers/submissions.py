"""Submission lookup, grading and removal."""
from __future__ import annotations

import logging
from typing import Tuple

from fastapi import APIRouter, Depends

import access
import database
import grading
import storage
from database import create_document, serialize, utcnow
from errors import Forbidden, NotFound
from routers.deps import owning_course
from schemas import GradeRequest, Notification
from security import get_current_user, require_role

router = APIRouter(prefix="/api/submissions", tags=["submissions"])
logger = logging.getLogger("lms.web.submissions")


def find_submission(submission_id: str) -> Tuple[dict, dict]:
    assignment = database.db.assignment.find_one({"submissions.id": submission_id})
    if not assignment:
        raise NotFound("Submission not found")
    for sub in assignment.get("submissions") or []:
        if sub.get("id") == submission_id:
            return assignment, sub
    raise NotFound("Submission not found")


def grade_submission(assignment: dict, submission_id: str, payload: GradeRequest, user: dict) -> dict:
    course = owning_course(assignment)
    if not access.has_teacher_access(user, course):
        raise Forbidden("Not authorized to grade this submission")
    grade = grading.validate_grade(payload.grade, assignment.get("total_points", 100))
    fields = grading.grade_fields(grade, payload.feedback, user["_id"], utcnow())
    result = database.db.assignment.update_one(
        {"_id": assignment["_id"], "submissions.id": submission_id},
        {"$set": {f"submissions.$.{k}": v for k, v in fields.items()}},
    )
    if result.matched_count == 0:
        raise NotFound("Submission not found")
    _, submission = find_submission(submission_id)
    create_document("notification", Notification(
        user=submission["student"],
        text=f"Your submission for \"{assignment.get('title')}\" was graded: "
             f"{grading.format_points(grade)}/{grading.format_points(assignment.get('total_points', 100))}",
        link=f"/assignments/{assignment['_id']}",
    ))
    logger.info("graded submission id=%s assignment=%s by=%s", submission_id, assignment["_id"], user["_id"])
    return serialize(submission)


@router.get("/{submission_id}")
async def get_submission(submission_id: str, user=Depends(get_current_user)):
    assignment, submission = find_submission(submission_id)
    course = owning_course(assignment)
    if not access.has_teacher_access(user, course) and submission.get("student") != user["_id"]:
        raise Forbidden("Not authorized to access this submission")
    return {
        "success": True,
        "submission": serialize(submission),
        "assignment": serialize({
            "_id": assignment["_id"],
            "title": assignment.get("title"),
            "course": assignment.get("course"),
            "deadline": assignment.get("deadline"),
            "total_points": assignment.get("total_points"),
        }),
    }


@router.put("/{submission_id}/grade", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def grade(submission_id: str, payload: GradeRequest, user=Depends(get_current_user)):
    assignment, _ = find_submission(submission_id)
    submission = grade_submission(assignment, submission_id, payload, user)
    return {"success": True, "message": "Submission graded successfully", "submission": submission}


@router.delete("/{submission_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def delete_submission(submission_id: str, user=Depends(get_current_user)):
    assignment, submission = find_submission(submission_id)
    if not access.has_teacher_access(user, owning_course(assignment)):
        raise Forbidden("Not authorized to delete this submission")
    for ref in submission.get("attachments") or []:
        storage.delete_file(ref.get("file_url"))
    database.db.assignment.update_one({"_id": assignment["_id"]}, {"$pull": {"submissions": {"id": submission_id}}})
    return {"success": True, "message": "Submission deleted successfully"}
