"""
Course-scoped authorization predicates.

Pure functions over a user document (with `_id` already a string) and a course
document. Route handlers call these with the authenticated user they receive as
a dependency; nothing here touches the database.
"""
from __future__ import annotations

from typing import Any, Dict

from errors import Conflict, Forbidden

Doc = Dict[str, Any]


def user_id(user: Doc) -> str:
    return str(user.get("_id"))


def is_admin(user: Doc) -> bool:
    return user.get("role") == "admin"


def is_course_teacher(user: Doc, course: Doc) -> bool:
    return str(course.get("teacher")) == user_id(user)


def is_enrolled(user: Doc, course: Doc) -> bool:
    return user_id(user) in {str(s) for s in course.get("students") or []}


def has_teacher_access(user: Doc, course: Doc) -> bool:
    return is_course_teacher(user, course) or is_admin(user)


def can_read_course(user: Doc, course: Doc) -> bool:
    return has_teacher_access(user, course) or is_enrolled(user, course)


def can_mutate_course_content(user: Doc, course: Doc) -> bool:
    """Materials, assignments, quizzes and notices are teacher-or-admin only."""
    if user.get("role") == "student":
        return False
    return has_teacher_access(user, course)


def require_read(user: Doc, course: Doc, message: str = "Not authorized to access this course") -> None:
    if not can_read_course(user, course):
        raise Forbidden(message)


def require_teacher(user: Doc, course: Doc, message: str = "Not authorized to modify this course") -> None:
    if not can_mutate_course_content(user, course):
        raise Forbidden(message)


def check_enrollment(user: Doc, course: Doc) -> None:
    """Raise when `user` may not enroll in `course`; the write itself stays atomic in the caller."""
    if user.get("role") != "student":
        raise Forbidden(f"User role {user.get('role') or 'unknown'} is unauthorized")
    if is_enrolled(user, course):
        raise Conflict("Already enrolled in this course")
