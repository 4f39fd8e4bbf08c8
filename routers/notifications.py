"""Per-user notification inbox."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

import database
from database import create_document, get_document, get_documents, serialize, utcnow
from errors import Forbidden
from schemas import Notification, NotificationCreate
from security import get_current_user, require_role

router = APIRouter(prefix="/api/notifications", tags=["notifications"])
logger = logging.getLogger("lms.web.notifications")


@router.get("")
async def my_notifications(user=Depends(get_current_user)):
    items = get_documents("notification", {"user": user["_id"]}, limit=50, sort=[("created_at", -1)])
    unread = sum(1 for n in items if not n.get("read"))
    return {"success": True, "count": len(items), "unread": unread, "notifications": serialize(items)}


@router.put("/{notification_id}/read")
async def mark_read(notification_id: str, user=Depends(get_current_user)):
    note = get_document("notification", notification_id, "Notification")
    if note.get("user") != user["_id"]:
        raise Forbidden("Not authorized to update this notification")
    database.db.notification.update_one({"_id": note["_id"]}, {"$set": {"read": True, "updated_at": utcnow()}})
    return {"success": True, "notification": serialize(get_document("notification", notification_id))}


@router.post("", status_code=201, dependencies=[Depends(require_role(["teacher", "admin"]))])
async def create_notification(payload: NotificationCreate, user=Depends(get_current_user)):
    target = get_document("user", payload.user, "User")
    nid = create_document("notification", Notification(user=str(target["_id"]), text=payload.text, link=payload.link))
    logger.info("notification id=%s for user=%s from=%s", nid, target["_id"], user["_id"])
    return {"success": True, "notification": serialize(get_document("notification", nid))}
