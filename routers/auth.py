"""Registration, login and password reset."""
from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.errors import DuplicateKeyError

import config
import database
from database import as_utc, create_document, utcnow
from errors import Conflict, NotAuthenticated, NotFound, ValidationFailed
from schemas import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, User
from security import (
    Token,
    get_current_user,
    get_password_hash,
    public_user,
    token_for,
    verify_password,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("lms.web.auth")


def _hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _authenticate(email: str, password: str) -> dict:
    user = database.db.user.find_one({"email": (email or "").strip().lower()})
    if not user or not verify_password(password, user.get("password_hash", "")):
        logger.info("failed login attempt")
        raise NotAuthenticated("Invalid credentials")
    return user


@router.post("/register", status_code=201)
async def register(payload: RegisterRequest):
    # Friendly message for the common case; the unique index decides under races.
    if database.db.user.find_one({"email": payload.email}):
        raise Conflict("User with this email already exists")
    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
    )
    try:
        uid = create_document("user", user)
    except DuplicateKeyError:
        raise Conflict("User with this email already exists")
    doc = database.db.user.find_one({"_id": database.to_object_id(uid)})
    logger.info("registered user id=%s role=%s", uid, payload.role)
    return {"success": True, "token": token_for(doc), "user": public_user(doc)}


@router.post("/login")
async def login(payload: LoginRequest):
    if not payload.email or not payload.password:
        raise ValidationFailed("Please provide email and password")
    user = _authenticate(payload.email, payload.password)
    return {"success": True, "token": token_for(user), "user": public_user(user)}


@router.post("/token", response_model=Token)
async def login_form(form_data: OAuth2PasswordRequestForm = Depends()):
    user = _authenticate(form_data.username, form_data.password)
    return Token(access_token=token_for(user))


@router.get("/me")
async def me(user=Depends(get_current_user)):
    return {"success": True, "user": public_user(user)}


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest, request: Request):
    email = payload.email.strip().lower()
    if not email:
        raise ValidationFailed("Please provide your email address.")
    user = database.db.user.find_one({"email": email})
    if not user:
        raise NotFound("No user found with that email.")
    token = secrets.token_hex(32)
    database.db.user.update_one(
        {"_id": user["_id"]},
        {"$set": {
            "reset_password_token": _hash_reset_token(token),
            "reset_password_expire": utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRE_MINUTES),
        }},
    )
    # No mail delivery; the link goes to the server log.
    logger.info("password reset link for user id=%s: %sreset-password/%s", user["_id"], request.base_url, token)
    return {"success": True, "message": "Password reset link sent (check server log)."}


@router.post("/reset-password")
async def reset_password(payload: ResetPasswordRequest):
    user = database.db.user.find_one({"reset_password_token": _hash_reset_token(payload.token)})
    expire = as_utc(user.get("reset_password_expire")) if user else None
    if not user or not expire or expire <= utcnow():
        raise HTTPException(400, detail="Token is invalid or has expired.")
    database.db.user.update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password_hash": get_password_hash(payload.password), "updated_at": utcnow()},
            "$unset": {"reset_password_token": "", "reset_password_expire": ""},
        },
    )
    return {"success": True, "message": "Password has been reset successfully."}
