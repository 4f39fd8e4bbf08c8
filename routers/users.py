"""User profile and admin user management."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

import database
from database import get_document, serialize, to_object_id, utcnow
from errors import Conflict, NotAuthenticated, ValidationFailed
from routers.deps import courses_brief
from schemas import PasswordChange, ProfileUpdate
from security import get_current_user, get_password_hash, public_user, require_role, verify_password

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger("lms.web.users")


@router.get("", dependencies=[Depends(require_role(["admin"]))])
async def list_users():
    users = [public_user(u) for u in database.db.user.find().sort("created_at", -1)]
    return {"success": True, "count": len(users), "users": users}


@router.get("/me")
async def get_me(user=Depends(get_current_user)):
    out = public_user(user)
    briefs = courses_brief(user.get("courses") or [])
    out["courses"] = [briefs[c] for c in user.get("courses") or [] if c in briefs]
    return {"success": True, "user": out}


@router.put("/me")
async def update_me(payload: ProfileUpdate, user=Depends(get_current_user)):
    changes = {}
    if payload.name is not None:
        if not payload.name.strip():
            raise ValidationFailed("Name cannot be empty")
        changes["name"] = payload.name.strip()
    if payload.email is not None:
        email = payload.email.strip().lower()
        if "@" not in email:
            raise ValidationFailed("Invalid email address")
        if database.db.user.find_one({"email": email, "_id": {"$ne": to_object_id(user["_id"])}}):
            raise Conflict("Email already in use")
        changes["email"] = email
    if changes:
        changes["updated_at"] = utcnow()
        try:
            database.db.user.update_one({"_id": to_object_id(user["_id"])}, {"$set": changes})
        except DuplicateKeyError:
            raise Conflict("Email already in use")
    return {"success": True, "user": public_user(get_document("user", user["_id"], "User"))}


@router.put("/me/password")
async def change_password(payload: PasswordChange, user=Depends(get_current_user)):
    if not verify_password(payload.current_password, user.get("password_hash", "")):
        raise NotAuthenticated("Current password is incorrect")
    database.db.user.update_one(
        {"_id": to_object_id(user["_id"])},
        {"$set": {"password_hash": get_password_hash(payload.new_password), "updated_at": utcnow()}},
    )
    return {"success": True, "message": "Password updated successfully"}


@router.delete("/{user_id}", dependencies=[Depends(require_role(["admin"]))])
async def delete_user(user_id: str):
    doc = get_document("user", user_id, "User")
    uid = str(doc["_id"])
    owned = database.db.course.count_documents({"teacher": uid})
    if owned:
        raise Conflict(f"User still teaches {owned} course(s); delete or reassign them first")
    database.db.course.update_many({"students": uid}, {"$pull": {"students": uid}})
    database.db.user.delete_one({"_id": doc["_id"]})
    logger.info("deleted user id=%s", uid)
    return {"success": True, "message": "User deleted successfully", "user": serialize({"_id": doc["_id"]})}
