"""Recent-activity feed for the dashboard."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from database import get_documents, serialize
from routers.deps import course_ids_for
from security import get_current_user

router = APIRouter(prefix="/api/activities", tags=["activity"])

FEED_SIZE = 10


def _entry(kind: str, doc: dict) -> dict:
    return {
        "type": kind,
        "id": str(doc["_id"]),
        "title": doc.get("title"),
        "course": doc.get("course"),
        "created_at": doc.get("created_at"),
    }


@router.get("/recent")
async def recent_activity(user=Depends(get_current_user)):
    course_ids = course_ids_for(user)
    scoped = {} if course_ids is None else {"course": {"$in": course_ids}}
    newest = [("created_at", -1)]

    entries = []
    entries += [_entry("assignment", d) for d in get_documents("assignment", scoped, FEED_SIZE, newest)]
    quiz_filter = dict(scoped)
    if user.get("role") == "student":
        quiz_filter["is_published"] = True
    entries += [_entry("quiz", d) for d in get_documents("quiz", quiz_filter, FEED_SIZE, newest)]
    notice_filter = {} if course_ids is None else {"$or": [scoped, {"course": None}]}
    entries += [_entry("notice", d) for d in get_documents("notice", notice_filter, FEED_SIZE, newest)]
    if user.get("role") == "teacher":
        taught = get_documents("course", {"teacher": user["_id"]}, FEED_SIZE, newest)
        entries += [dict(_entry("course", d), course=str(d["_id"])) for d in taught]

    # created_at is always stamped by create_document
    entries.sort(key=lambda e: e["created_at"], reverse=True)
    items = serialize(entries[:FEED_SIZE])
    return {"success": True, "count": len(items), "activities": items}
