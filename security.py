"""
Authentication helpers: password hashing, JWT issuance and the request
dependencies that resolve the caller.

The token only carries the user id and role; the user document is re-read on
every request and handed to route handlers explicitly via `Depends`.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

import config
import database
from database import to_object_id, utcnow
from errors import NotFound

logger = logging.getLogger("lms.web.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


def verify_password(plain_password, password_hash):
    if not password_hash:
        return False
    return pwd_context.verify(plain_password, password_hash)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def token_for(user: dict) -> str:
    return create_access_token({"sub": str(user["_id"]), "role": user.get("role", "student")})


def public_user(user: dict) -> dict:
    hidden = {"password_hash", "reset_password_token", "reset_password_expire"}
    return database.serialize({k: v for k, v in user.items() if k not in hidden})


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)):
    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    credentials_exception = HTTPException(status_code=401, detail="Not authorized, token failed")
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        logger.info("rejected bearer token")
        raise credentials_exception
    try:
        oid = to_object_id(user_id)
    except NotFound:
        raise credentials_exception
    doc = database.db.user.find_one({"_id": oid})
    if not doc:
        raise HTTPException(status_code=401, detail="User not found")
    doc["_id"] = str(doc["_id"])  # normalize
    return doc


def require_role(required: List[str]):
    async def role_dep(user=Depends(get_current_user)):
        if user.get("role") not in required:
            raise HTTPException(403, detail=f"User role {user.get('role') or 'unknown'} is unauthorized")
        return user
    return role_dep
