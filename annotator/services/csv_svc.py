from __future__ import annotations

import io
import logging

import pandas as pd

from ..db import Database
from ..domain.rules import validate_new_image
from ..errors import AnnotatorError, ValidationError
from ..logs import LogContext
from ..repository import annotation_repo, image_repo
from .label_svc import get_or_create_label

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "image_id",
    "filename",
    "original_name",
    "file_path",
    "file_size",
    "mime_type",
    "uploaded_at",
    "image_created_by",
    "image_last_edited_by",
    "labels",
    "confidences",
    "annotation_creators",
    "annotation_editors",
]
REQUIRED_COLUMNS = ("image_id", "filename", "labels")
MAX_ERROR_DETAILS = 10


def export_csv(db: Database) -> str:
    """All images with their labels, one row per image; list columns are comma-joined."""
    rows = image_repo.export_rows(db)
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    df = df.fillna("")
    return df.to_csv(index=False)


def _split(cell: str) -> list[str]:
    return [p.strip() for p in cell.split(",")] if cell.strip() else []


def _import_row(db: Database, r: dict, user: str) -> bool:
    """Import one CSV row inside the caller's transaction. False when the image already exists."""
    image_id = int(r["image_id"])
    if image_repo.get_image(db, image_id) is not None:
        return False

    clean = validate_new_image({
        "filename": r["filename"],
        "original_name": r.get("original_name") or r["filename"],
        "file_path": r.get("file_path"),
        "file_size": int(r["file_size"]) if r.get("file_size") else None,
        "mime_type": r.get("mime_type") or "image/jpeg",
        "created_by": r.get("image_created_by") or user,
    })
    row = {"image_id": image_id, **clean, "last_edited_by": r.get("image_last_edited_by") or None}
    if r.get("uploaded_at"):
        row["uploaded_at"] = r["uploaded_at"]
    image_repo.insert_with_id(db, row)

    labels = _split(r.get("labels", ""))
    confidences = _split(r.get("confidences", ""))
    creators = _split(r.get("annotation_creators", ""))
    editors = _split(r.get("annotation_editors", ""))
    for i, name in enumerate(labels):
        if not name:
            continue
        label, _ = get_or_create_label(db, name)
        conf = float(confidences[i]) if i < len(confidences) and confidences[i] else 1.0
        created_by = creators[i] if i < len(creators) and creators[i] else user
        edited_by = editors[i] if i < len(editors) and editors[i] else None
        annotation_repo.insert_annotation(db, image_id, label.label_id, conf, created_by, edited_by)
    return True


def import_csv(db: Database, content: bytes | str, user: str = "csv-import", log: LogContext | None = None) -> dict:
    """
    Import images and annotations from CSV produced by export_csv.

    Each row is imported in its own transaction; a row whose image_id already
    exists is skipped, a row that fails is counted and reported without
    stopping the import.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")
    if not content.strip():
        raise ValidationError("CSV file is empty")
    try:
        df = pd.read_csv(io.StringIO(content), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationError(f"cannot parse CSV: {e}") from e
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError(f"Missing required headers: {', '.join(missing)}")
    if df.empty:
        raise ValidationError("CSV file must contain headers and at least one data row")

    imported = skipped = errors = 0
    details: list[str] = []
    for idx, rec in enumerate(df.to_dict(orient="records")):
        line = idx + 2  # header is line 1
        r = {k: str(v).strip() for k, v in rec.items()}
        if not r.get("image_id") or not r.get("filename"):
            errors += 1
            details.append(f"Row {line}: Missing required fields (image_id, filename)")
            continue
        try:
            with db.transaction():
                ok = _import_row(db, r, user)
        except (ValueError, AnnotatorError) as e:
            logger.warning("csv import row %d failed: %s", line, e)
            errors += 1
            details.append(f"Row {line}: {e}")
            continue
        if ok:
            imported += 1
        else:
            skipped += 1

    out = {
        "imported": imported,
        "skipped": skipped,
        "errors": errors,
        "error_details": details[:MAX_ERROR_DETAILS],
        "message": f"Import completed: {imported} imported, {skipped} skipped, {errors} errors",
    }
    if log is not None:
        log.set_after({k: out[k] for k in ("imported", "skipped", "errors")})
    logger.info(out["message"])
    return out
