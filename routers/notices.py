"""Course and global announcements."""
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

import access
import database
import storage
from database import create_document, get_document, get_documents, serialize, utcnow
from errors import Forbidden, ValidationFailed
from routers.deps import link_child, load_course, unlink_child, update_fields, users_brief
from schemas import Notice, NoticeUpdate
from security import get_current_user, require_role

router = APIRouter(prefix="/api/notices", tags=["notices"])
logger = logging.getLogger("lms.web.notices")

PRIORITIES = ("low", "medium", "high")


def _load(notice_id: str) -> dict:
    return get_document("notice", notice_id, "Notice")


def _can_edit(user: dict, notice: dict) -> bool:
    return access.is_admin(user) or notice.get("author") == user["_id"]


def _read_and_mark(query: dict, user: dict) -> List[dict]:
    notices = get_documents("notice", query, sort=[("pinned", -1), ("created_at", -1)])
    unread = [n["_id"] for n in notices if user["_id"] not in (n.get("read_by") or [])]
    if unread:
        database.db.notice.update_many({"_id": {"$in": unread}}, {"$addToSet": {"read_by": user["_id"]}})
    authors = {a["_id"]: a for a in users_brief({n.get("author") for n in notices}, fields=("name", "email"))}
    out = []
    for n in notices:
        item = serialize(n)
        item["author"] = authors.get(str(n.get("author")), n.get("author"))
        out.append(item)
    return out


@router.post("", status_code=201, dependencies=[Depends(require_role(["teacher", "admin"]))])
async def create_notice(
    title: str = Form(...),
    content: str = Form(...),
    course: Optional[str] = Form(None),
    priority: str = Form("medium"),
    pinned: bool = Form(False),
    attachments: Optional[List[UploadFile]] = File(None),
    user=Depends(get_current_user),
):
    if not title.strip() or not content.strip():
        raise ValidationFailed("Please provide title and content")
    if priority not in PRIORITIES:
        raise ValidationFailed("Priority must be one of: low, medium, high")
    course_id = None
    if course:
        course_doc = load_course(course)
        access.require_teacher(user, course_doc, "Not authorized to create notices for this course")
        course_id = str(course_doc["_id"])
    elif not access.is_admin(user):
        raise Forbidden("Only admins can post global notices")

    refs = storage.save_uploads("notices", attachments)
    doc = Notice(
        title=title.strip(),
        content=content,
        course=course_id,
        author=user["_id"],
        priority=priority,
        pinned=pinned,
        attachments=refs,
    )
    nid = create_document("notice", doc)
    if course_id:
        link_child(course_id, "notices", nid)
    logger.info("notice created id=%s course=%s", nid, course_id or "global")
    return {"success": True, "notice": serialize(_load(nid))}


@router.get("")
async def global_notices(user=Depends(get_current_user)):
    notices = _read_and_mark({"course": None}, user)
    return {"success": True, "count": len(notices), "notices": notices}


@router.get("/course/{course_id}")
async def course_notices(course_id: str, user=Depends(get_current_user)):
    course = load_course(course_id)
    access.require_read(user, course)
    notices = _read_and_mark({"course": str(course["_id"])}, user)
    return {"success": True, "count": len(notices), "notices": notices}


@router.get("/{notice_id}")
async def get_notice(notice_id: str, user=Depends(get_current_user)):
    notice = _load(notice_id)
    if notice.get("course"):
        access.require_read(user, load_course(notice["course"]), "Not authorized to access this notice")
    return {"success": True, "notice": serialize(notice)}


@router.put("/{notice_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def update_notice(notice_id: str, payload: NoticeUpdate, user=Depends(get_current_user)):
    notice = _load(notice_id)
    if not _can_edit(user, notice):
        raise Forbidden("Not authorized to update this notice")
    changes = update_fields(payload, "Notice", required_text=("title", "content"))
    changes["updated_at"] = utcnow()
    database.db.notice.update_one({"_id": notice["_id"]}, {"$set": changes})
    return {"success": True, "notice": serialize(_load(notice_id))}


@router.delete("/{notice_id}", dependencies=[Depends(require_role(["teacher", "admin"]))])
async def delete_notice(notice_id: str, user=Depends(get_current_user)):
    notice = _load(notice_id)
    if not _can_edit(user, notice):
        raise Forbidden("Not authorized to delete this notice")
    for ref in notice.get("attachments") or []:
        storage.delete_file(ref.get("file_url"))
    unlink_child(notice.get("course"), "notices", str(notice["_id"]))
    database.db.notice.delete_one({"_id": notice["_id"]})
    return {"success": True, "message": "Notice deleted successfully"}
