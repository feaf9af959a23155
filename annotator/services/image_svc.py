from __future__ import annotations

import logging
import os
import uuid
from typing import List, Optional

from ..db import Database
from ..domain.models import Image, ImageDetail, ImageWithLabels
from ..domain.rules import (
    IMAGE_EDITABLE_FIELDS,
    check_mime_type,
    pick_fields,
    validate_new_image,
)
from ..errors import ConflictError, PayloadTooLargeError, ValidationError
from ..logs import LogContext
from ..repository import annotation_repo, image_repo

logger = logging.getLogger(__name__)

_EXT_BY_MIME = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def _check_id(image_id) -> int:
    if isinstance(image_id, bool) or not isinstance(image_id, int) or image_id <= 0:
        raise ValidationError("valid image_id is required")
    return image_id


def _with_labels(db: Database, images: List[Image]) -> List[ImageWithLabels]:
    pairs = image_repo.labels_for(db, [im.image_id for im in images])
    out = []
    for im in images:
        lp = pairs.get(im.image_id, [])
        out.append(ImageWithLabels(
            **im.model_dump(),
            labels=[n for n, _ in lp],
            confidences=[c for _, c in lp],
            label_count=len(lp),
        ))
    return out


def get_all_images(db: Database) -> List[ImageWithLabels]:
    """Every image, newest first, with its labels and confidences in annotation order."""
    return _with_labels(db, image_repo.list_images(db))


def list_images(db: Database, page: int = 1, size: int = 50) -> tuple[int, List[ImageWithLabels]]:
    page = max(1, int(page))
    size = max(1, int(size))
    total = image_repo.count_all(db)
    items = image_repo.list_images(db, limit=size, offset=(page - 1) * size)
    return total, _with_labels(db, items)


def get_image(db: Database, image_id: int) -> Optional[ImageDetail]:
    image = image_repo.get_image(db, _check_id(image_id))
    if image is None:
        return None
    return ImageDetail(**image.model_dump(), annotations=annotation_repo.list_for_image(db, image_id))


def create_image(db: Database, data: dict, log: LogContext | None = None) -> Image:
    clean = validate_new_image(data or {})
    with db.transaction():
        if image_repo.get_by_filename(db, clean["filename"]) is not None:
            raise ConflictError(f"image with filename {clean['filename']!r} already exists")
        new_id = image_repo.insert_image(db, **clean)
        image = image_repo.get_image(db, new_id)
    if log is not None:
        log.set_entity("IMAGE", new_id)
        log.set_after(image)
    return image


def update_image(db: Database, image_id: int, data: dict, log: LogContext | None = None) -> Optional[Image]:
    """Only original_name, file_path and last_edited_by can change; None if the image is missing."""
    _check_id(image_id)
    fields = pick_fields(data or {}, IMAGE_EDITABLE_FIELDS)
    if not fields:
        raise ValidationError("no valid fields to update")
    for k, v in fields.items():
        if not isinstance(v, str) or not v.strip():
            raise ValidationError(f"field '{k}' must be a non-empty string")
        fields[k] = v.strip()

    with db.transaction():
        before = image_repo.get_image(db, image_id)
        if before is None:
            return None
        image_repo.update_image(db, image_id, fields)
        after = image_repo.get_image(db, image_id)

    if log is not None:
        log.set_entity("IMAGE", image_id)
        log.set_before(before)
        log.set_after(after)
    return after


def delete_image(db: Database, image_id: int, log: LogContext | None = None) -> bool:
    """Delete the image row; its annotations cascade. The stored file is left alone."""
    _check_id(image_id)
    with db.transaction():
        before = image_repo.get_image(db, image_id)
        if before is None:
            return False
        deleted = image_repo.delete_image(db, image_id) > 0
    if log is not None:
        log.set_entity("IMAGE", image_id)
        log.set_before(before)
    return deleted


def search_images_by_label(db: Database, label_name: str) -> List[ImageWithLabels]:
    if not isinstance(label_name, str) or not label_name.strip():
        raise ValidationError("valid label_name is required")
    return _with_labels(db, image_repo.list_by_label(db, label_name.strip()))


def get_image_stats(db: Database) -> dict:
    return image_repo.image_stats(db)


def store_upload(
    db: Database,
    content: bytes,
    original_name: str,
    mime_type: str,
    upload_dir: str,
    max_bytes: int,
    user: str | None = None,
    log: LogContext | None = None,
) -> Image:
    """
    Save uploaded bytes under upload_dir with a generated unique filename and
    create the matching image row. The file is removed if the insert fails.
    """
    mime = check_mime_type(mime_type)
    if not content:
        raise ValidationError("uploaded file is empty")
    if len(content) > max_bytes:
        raise PayloadTooLargeError(f"file exceeds the {max_bytes} byte upload limit")
    original = os.path.basename(original_name or "").strip() or "upload"

    # extension follows the checked MIME type, never the client's file name
    filename = f"{uuid.uuid4().hex}{_EXT_BY_MIME[mime]}"
    os.makedirs(upload_dir, exist_ok=True)
    dest = os.path.join(upload_dir, filename)
    with open(dest, "wb") as f:
        f.write(content)

    data = {
        "filename": filename,
        "original_name": original,
        "file_path": f"uploads/{filename}",
        "file_size": len(content),
        "mime_type": mime,
        "created_by": user,
    }
    try:
        image = create_image(db, data, log)
    except Exception:
        logger.warning("image insert failed, removing stored file %s", dest)
        os.remove(dest)
        raise
    logger.info("stored upload %s (%d bytes) as image %s", original, len(content), image.image_id)
    return image
