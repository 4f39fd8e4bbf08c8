"""Quiz authoring, delivery and auto-scored submission."""
from __future__ import annotations

import logging
from datetime import timezone

from fastapi import APIRouter, Depends

import access
import database
import grading
from database import create_document, get_document, get_documents, serialize, utcnow
from errors import Conflict, LMSError, NotFound, ValidationFailed
from routers.deps import (
    course_ids_for,
    link_child,
    load_course,
    owning_course,
    unlink_child,
    update_fields,
    with_course_brief,
)
from schemas import Quiz, QuizCreate, QuizSubmission, QuizUpdate
from security import get_current_user, require_role

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])
logger = logging.getLogger("lms.web.quizzes")


def _load(quiz_id: str) -> dict:
    return get_document("quiz", quiz_id, "Quiz")


def _check_window(available_from, available_to) -> None:
    if available_from and available_to and database.as_utc(available_to) < database.as_utc(available_from):
        raise ValidationFailed("available_to must not be before available_from")


def _open_now_query(now) -> dict:
    # Stored datetimes come back naive UTC; query with the same shape.
    now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return {
        "is_published": True,
        "available_from": {"$lte": now},
        "$or": [{"available_to": None}, {"available_to": {"$gte": now}}],
    }


@router.post("", status_code=201, dependencies=[Depends(require_role(["teacher", "admin"]))])
async def create_quiz(payload: QuizCreate, user=Depends(get_current_user)):
    course = load_course(payload.course)
    access.require_teacher(user, course, "Not authorized to create quizzes for this course")
    _check_window(payload.available_from, payload.available_to)
    quiz = Quiz(
        title=payload.title.strip(),
        description=payload.description,
        course=str(course["_id"]),
        teacher=str(course["teacher"]),
        time_limit=payload.time_limit,
        available_from=payload.available_from or utcnow(),
        available_to=payload.available_to,
        is_published=payload.is_published,
        questions=[q.to_question() for q in payload.questions],
    )
    qid = create_document("quiz", quiz)
    link_child(str(course["_id"]), "quizzes", qid)
    logger.info("quiz created id=%s course=%s questions=%d", qid, course["_id"], len(quiz.questions))
    return {"success": True, "quiz": serialize(_load(qid))}


@router.get("/teacher", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def teacher_quizzes(user=Depends(get_current_user)):
    quizzes = get_documents("quiz", {"teacher": user["_id"]}, sort=[("created_at", -1)])
    items = with_course_brief(quizzes)
    return {"success": True, "count": len(items), "quizzes": items}


@router.get("/student", dependencies=[Depends(require_role(["student"]))])
async def student_quizzes(user=Depends(get_current_user)):
    query = {"course": {"$in": course_ids_for(user)}, **_open_now_query(utcnow())}
    quizzes = get_documents("quiz", query, sort=[("created_at", -1)])
    items = with_course_brief([grading.student_view(q, user["_id"]) for q in quizzes])
    return {"success": True, "count": len(items), "quizzes": items}


@router.get("/course/{course_id}")
async def course_quizzes(course_id: str, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.require_read(user, course)
    query = {"course": str(course["_id"])}
    teacher_view = access.has_teacher_access(user, course)
    if not teacher_view:
        query["is_published"] = True
    quizzes = get_documents("quiz", query, sort=[("created_at", -1)])
    if not teacher_view:
        quizzes = [grading.student_view(q, user["_id"]) for q in quizzes]
    items = with_course_brief(quizzes)
    return {"success": True, "count": len(items), "quizzes": items}


@router.get("/{quiz_id}")
async def get_quiz(quiz_id: str, user=Depends(get_current_user)):
    quiz = _load(quiz_id)
    course = owning_course(quiz)
    access.require_read(user, course, "Not authorized to access this quiz")
    if access.has_teacher_access(user, course):
        return {"success": True, "quiz": serialize(quiz)}
    if not quiz.get("is_published"):
        raise NotFound("Quiz not found")
    return {"success": True, "quiz": serialize(grading.student_view(quiz, user["_id"]))}


@router.put("/{quiz_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def update_quiz(quiz_id: str, payload: QuizUpdate, user=Depends(get_current_user)):
    quiz = _load(quiz_id)
    access.require_teacher(user, owning_course(quiz), "Not authorized to update this quiz")
    if quiz.get("results"):
        raise ValidationFailed("Cannot update quiz: students have already submitted answers")
    changes = update_fields(payload, "Quiz", clearable=("available_from", "available_to", "time_limit"),
                            required_text=("title", "description"))
    if "questions" in changes:
        changes["questions"] = [q.to_question().model_dump() for q in payload.questions]
    if "available_from" in changes and changes["available_from"] is None:
        changes["available_from"] = utcnow()
    _check_window(changes.get("available_from", quiz.get("available_from")),
                  changes.get("available_to", quiz.get("available_to")))
    changes["updated_at"] = utcnow()
    # Guard on empty results so an update cannot land after the first submission.
    result = database.db.quiz.update_one({"_id": quiz["_id"], "results": {"$size": 0}}, {"$set": changes})
    if result.matched_count == 0:
        raise ValidationFailed("Cannot update quiz: students have already submitted answers")
    return {"success": True, "quiz": serialize(_load(quiz_id))}


@router.delete("/{quiz_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def delete_quiz(quiz_id: str, user=Depends(get_current_user)):
    quiz = _load(quiz_id)
    access.require_teacher(user, owning_course(quiz), "Not authorized to delete this quiz")
    unlink_child(quiz.get("course"), "quizzes", str(quiz["_id"]))
    database.db.quiz.delete_one({"_id": quiz["_id"]})
    return {"success": True, "message": "Quiz deleted successfully"}


@router.post("/{quiz_id}/submit", dependencies=[Depends(require_role(["student"]))])
async def submit_quiz(quiz_id: str, payload: QuizSubmission, user=Depends(get_current_user)):
    quiz = _load(quiz_id)
    course = owning_course(quiz)
    uid = user["_id"]
    now = utcnow()
    try:
        grading.check_quiz_open(quiz, course, uid, now)
    except LMSError as exc:
        logger.info("quiz submission rejected quiz=%s student=%s reason=%s", quiz_id, uid, exc.message)
        raise

    result = grading.score_quiz(
        quiz,
        [a.model_dump() for a in payload.answers],
        uid,
        now,
        started_at=payload.started_at,
    )
    # The filter is the uniqueness constraint: a second result for the same student matches nothing.
    write = database.db.quiz.update_one(
        {"_id": quiz["_id"], "results.student": {"$ne": uid}},
        {"$push": {"results": result}},
    )
    if write.modified_count == 0:
        logger.info("duplicate quiz submission quiz=%s student=%s", quiz_id, uid)
        raise Conflict("You have already submitted this quiz")
    logger.info(
        "quiz scored quiz=%s student=%s score=%s/%s",
        quiz_id, uid, result["score"], result["total_possible_score"],
    )
    return {"success": True, "message": "Quiz submitted successfully", "result": serialize(result)}


@router.get("/{quiz_id}/result")
async def get_quiz_result(quiz_id: str, user=Depends(get_current_user)):
    quiz = _load(quiz_id)
    result = grading.find_result(quiz, user["_id"])
    if result is None:
        raise NotFound("Result not found, you have not taken this quiz yet")
    return {"success": True, "result": serialize(grading.explain_result(quiz, result))}


@router.get("/{quiz_id}/results", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def get_quiz_results(quiz_id: str, user=Depends(get_current_user)):
    quiz = _load(quiz_id)
    access.require_teacher(user, owning_course(quiz), "Not authorized to view results for this quiz")
    results = quiz.get("results") or []
    return {"success": True, "count": len(results), "results": serialize(results)}
