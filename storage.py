"""
Local file storage for uploads.

Files land under ``UPLOAD_DIR/<kind>/`` with a random hex prefix, so two
uploads with the same original name never collide. The returned `file_url`
is relative to UPLOAD_DIR and is what gets stored on the owning document.
"""
from __future__ import annotations

import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile

import config
from schemas import FileRef

logger = logging.getLogger("lms.storage")

KINDS = {"submissions", "materials", "notices", "assignments"}


def _root() -> Path:
    return Path(config.UPLOAD_DIR).resolve()


def safe_filename(name: Optional[str]) -> str:
    base = os.path.basename((name or "").replace("\\", "/")) or "file"
    return re.sub(r"\s+", "_", base)


def save_upload(kind: str, upload: UploadFile) -> dict:
    if kind not in KINDS:
        raise ValueError(f"unknown upload kind: {kind}")
    target_dir = _root() / kind
    target_dir.mkdir(parents=True, exist_ok=True)

    original = safe_filename(upload.filename)
    stored = f"{uuid.uuid4().hex}_{original}"
    path = target_dir / stored
    upload.file.seek(0)
    with open(path, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    size = path.stat().st_size
    logger.info("stored upload kind=%s name=%s bytes=%d", kind, stored, size)
    return FileRef(
        file_name=upload.filename or original,
        file_url=f"{kind}/{stored}",
        file_type=upload.content_type,
        file_size=size,
    ).model_dump()


def save_uploads(kind: str, uploads: Optional[List[UploadFile]]) -> List[dict]:
    return [save_upload(kind, u) for u in uploads or [] if u is not None and u.filename]


def delete_file(file_url: Optional[str]) -> bool:
    if not file_url:
        return False
    root = _root()
    path = (root / file_url).resolve()
    if root not in path.parents:
        logger.warning("refusing to delete outside upload dir: %s", file_url)
        return False
    if path.is_file():
        path.unlink()
        return True
    return False


def file_refs(doc: dict) -> List[dict]:
    """Every stored file a document points at, including its submissions' attachments."""
    refs = [doc["file"]] if doc.get("file") else []
    refs += doc.get("attachments") or []
    for sub in doc.get("submissions") or []:
        refs += sub.get("attachments") or []
    return refs
