"""
MongoDB access helpers.

Each collection holds one entity type; the collection name is the lowercase
entity name (Course -> "course"). Documents written through
`create_document` get UTC `created_at` / `updated_at` stamps.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config
from errors import NotFound

logger = logging.getLogger("lms.database")

_client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
db = _client[config.DATABASE_NAME]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes that are implicitly UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_object_id(value: Union[str, ObjectId, None], what: str = "Resource") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFound(f"{what} not found")


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document(collection_name: str, doc_id: Union[str, ObjectId], what: Optional[str] = None) -> Dict[str, Any]:
    label = what or collection_name.capitalize()
    doc = db[collection_name].find_one({"_id": to_object_id(doc_id, label)})
    if not doc:
        raise NotFound(f"{label} not found")
    return doc


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON-safe (ObjectId -> str, datetime -> ISO 8601)."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def ensure_indexes() -> None:
    # Email uniqueness is enforced here, not by a read-then-insert check.
    db.user.create_index([("email", ASCENDING)], unique=True)
    # Courses without a code omit the field, so the sparse index skips them.
    db.course.create_index([("code", ASCENDING)], unique=True, sparse=True)
    db.course.create_index([("teacher", ASCENDING)])
    db.course.create_index([("students", ASCENDING)])
    for name in ("assignment", "quiz", "material", "notice"):
        db[name].create_index([("course", ASCENDING)])
    db.notification.create_index([("user", ASCENDING)])
    logger.info("indexes ensured on database %s", db.name)
