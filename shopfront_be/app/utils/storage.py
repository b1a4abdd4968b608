from pathlib import Path
import os
import uuid
import shutil
import logging
from typing import Optional
from fastapi import UploadFile

from app.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()
UPLOAD_ROOT = Path(settings.UPLOAD_DIR).resolve()

PRODUCT_IMAGES = "product-images"
COLLECTION_IMAGES = "collection-images"


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def ensure_upload_dirs() -> None:
    for subdir in (PRODUCT_IMAGES, COLLECTION_IMAGES):
        _ensure_dir(UPLOAD_ROOT / subdir)


def upload_size(upload_file: UploadFile) -> int:
    f = upload_file.file
    f.seek(0, os.SEEK_END)
    size = f.tell()
    f.seek(0)
    return size


def save_upload_file(upload_file: UploadFile, subdir: str = PRODUCT_IMAGES) -> str:
    """Save an UploadFile to UPLOAD_ROOT/subdir and return its public path (/subdir/filename)."""
    if not upload_file or not upload_file.filename:
        raise ValueError("No file provided")
    ext = os.path.splitext(upload_file.filename)[1].lower()
    filename = f"{uuid.uuid4().hex}{ext}"
    dst_dir = UPLOAD_ROOT / subdir
    _ensure_dir(dst_dir)
    file_path = dst_dir / filename
    with file_path.open("wb") as buffer:
        shutil.copyfileobj(upload_file.file, buffer)
    return f"/{subdir}/{filename}"


def delete_upload_file(rel_url: Optional[str]) -> bool:
    """Delete a stored file by its public path (e.g. /product-images/<file>). Returns True if removed.

    Only paths inside UPLOAD_ROOT are touched. A missing file is not an error.
    """
    if not rel_url or not isinstance(rel_url, str):
        return False
    parts = [p for p in rel_url.split("/") if p]
    if parts and parts[0] == "uploads":
        parts = parts[1:]
    if len(parts) != 2 or parts[0] not in (PRODUCT_IMAGES, COLLECTION_IMAGES):
        return False
    target_path = UPLOAD_ROOT / parts[0] / parts[1]
    try:
        if target_path.is_file():
            target_path.unlink()
            return True
    except OSError as e:
        logger.warning("Could not delete %s: %s", target_path, e)
    return False
