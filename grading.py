"""
Quiz auto-scoring and assignment grade validation.

Framework-free: every function takes plain documents (dicts as stored in
Mongo) and returns plain values, so the HTTP layer only loads, calls and
persists.

Scoring rules:
    - single:   correct iff the selected option is flagged correct.
    - multiple: correct iff the selected set equals the correct set exactly.
    - text:     correct iff the trimmed, lower-cased answer matches any
                accepted answer under the same normalization.
An answer naming a question the quiz does not have is skipped entirely; it
adds nothing to the score or to the total possible score.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from database import as_utc
from errors import Conflict, Forbidden, Unavailable, ValidationFailed
from schemas import EvaluatedAnswer, StudentResult


Doc = Dict[str, Any]


def _normalize_text(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _selected_set(answer: Doc) -> set:
    selected = {str(s) for s in answer.get("selected_options") or [] if s}
    if answer.get("selected_option"):
        selected.add(str(answer["selected_option"]))
    return selected


def is_answer_correct(question: Doc, answer: Doc) -> bool:
    qtype = question.get("type", "single")
    options = question.get("options") or []

    if qtype == "single":
        selected = answer.get("selected_option")
        if not selected:
            return False
        for option in options:
            if str(option.get("id")) == str(selected):
                return bool(option.get("is_correct"))
        return False

    if qtype == "multiple":
        correct = {str(o.get("id")) for o in options if o.get("is_correct")}
        # No correct options configured means nothing can match.
        return bool(correct) and _selected_set(answer) == correct

    if qtype == "text":
        submitted = _normalize_text(answer.get("text_answer"))
        if not submitted:
            return False
        return any(submitted == _normalize_text(a) for a in question.get("correct_answers") or [])

    return False


def evaluate_answer(question: Doc, answer: Doc) -> Doc:
    """Return the submitted answer echoed back with its `is_correct` flag."""
    return EvaluatedAnswer(
        question=str(question.get("id")),
        selected_option=answer.get("selected_option"),
        selected_options=list(answer.get("selected_options") or []),
        text_answer=answer.get("text_answer"),
        is_correct=is_answer_correct(question, answer),
    ).model_dump()


def find_result(quiz: Doc, student_id: str) -> Optional[Doc]:
    for result in quiz.get("results") or []:
        if str(result.get("student")) == student_id:
            return result
    return None


def check_quiz_open(quiz: Doc, course: Doc, student_id: str, now: datetime) -> None:
    """Apply the submission preconditions in order; the first failure raises."""
    if student_id not in {str(s) for s in course.get("students") or []}:
        raise Forbidden("Not enrolled in this course")

    if not quiz.get("is_published"):
        raise Unavailable("This quiz is not available yet")

    available_from = as_utc(quiz.get("available_from"))
    available_to = as_utc(quiz.get("available_to"))
    if available_from and now < available_from:
        raise Unavailable("This quiz is not available yet")
    if available_to and now > available_to:
        raise Unavailable("This quiz is no longer available")

    if find_result(quiz, student_id) is not None:
        raise Conflict("You have already submitted this quiz")


def score_quiz(
    quiz: Doc,
    answers: Iterable[Doc],
    student_id: str,
    now: datetime,
    started_at: Optional[datetime] = None,
) -> Doc:
    """Build the StudentResult document for one student's answer set."""
    questions = {str(q.get("id")): q for q in quiz.get("questions") or []}
    seen: set = set()
    evaluated: List[Doc] = []
    score = 0.0
    total = 0.0

    for answer in answers:
        qid = str(answer.get("question"))
        question = questions.get(qid)
        if question is None or qid in seen:
            continue
        seen.add(qid)
        item = evaluate_answer(question, answer)
        points = float(question.get("points") or 0)
        total += points
        if item["is_correct"]:
            score += points
        evaluated.append(item)

    elapsed = None
    if started_at is not None:
        elapsed = max(0, int((now - as_utc(started_at)).total_seconds()))

    return StudentResult(
        student=student_id,
        answers=evaluated,
        score=score,
        total_possible_score=total,
        submitted_at=now,
        elapsed_seconds=elapsed,
    ).model_dump()


def format_points(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def validate_grade(raw: Any, total_points: float) -> float:
    message = f"Grade must be a number between 0 and {format_points(total_points)}"
    if raw is None or isinstance(raw, bool):
        raise ValidationFailed(message)
    try:
        grade = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        raise ValidationFailed(message)
    if math.isnan(grade) or grade < 0 or grade > float(total_points):
        raise ValidationFailed(message)
    return grade


def grade_fields(grade: float, feedback: Optional[str], grader_id: str, now: datetime) -> Doc:
    return {
        "grade": grade,
        "feedback": feedback or "",
        "graded": True,
        "graded_at": now,
        "graded_by": grader_id,
    }


def strip_answer_key(quiz: Doc) -> Doc:
    """Copy of `quiz` without correctness flags, accepted answers or explanations."""
    out = dict(quiz)
    out["questions"] = [
        {
            "id": q.get("id"),
            "question_text": q.get("question_text"),
            "type": q.get("type"),
            "points": q.get("points"),
            "options": [{"id": o.get("id"), "text": o.get("text")} for o in q.get("options") or []],
        }
        for q in quiz.get("questions") or []
    ]
    return out


def student_view(quiz: Doc, student_id: str) -> Doc:
    submitted = find_result(quiz, student_id) is not None
    out = dict(quiz) if submitted else strip_answer_key(quiz)
    # Students never see other students' results.
    out["results"] = [r for r in quiz.get("results") or [] if str(r.get("student")) == student_id]
    out["submitted"] = submitted
    return out


def explain_result(quiz: Doc, result: Doc) -> Doc:
    """Attach question text, chosen option text, explanation and the answer key to each answer."""
    questions = {str(q.get("id")): q for q in quiz.get("questions") or []}
    enriched = []
    for answer in result.get("answers") or []:
        question = questions.get(str(answer.get("question"))) or {}
        options = {str(o.get("id")): o for o in question.get("options") or []}
        chosen = _selected_set(answer)
        enriched.append({
            **answer,
            "question_text": question.get("question_text"),
            "selected_option_text": [options[c]["text"] for c in sorted(chosen) if c in options],
            "explanation": question.get("explanation", ""),
            "correct_options": [o for o in question.get("options") or [] if o.get("is_correct")],
            "correct_answers": question.get("correct_answers") or [],
        })
    return {**result, "answers": enriched}
