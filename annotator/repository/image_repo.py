from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from ..db import Database
from ..domain.models import Image, to_record, to_records

_COLUMNS = (
    "image_id, filename, original_name, file_path, file_size, mime_type, "
    "uploaded_at, updated_at, created_by, last_edited_by"
)


def insert_image(
    db: Database,
    filename: str,
    original_name: str,
    file_path: str,
    file_size: int,
    mime_type: str,
    created_by: str | None = None,
) -> int:
    res = db.run(
        "INSERT INTO images(filename, original_name, file_path, file_size, mime_type, created_by) "
        "VALUES(?,?,?,?,?,?)",
        (filename, original_name, file_path, file_size, mime_type, created_by),
    )
    return int(res.inserted_id)


def insert_with_id(db: Database, row: dict) -> int:
    """Insert an image keeping its id (CSV import). Columns absent from row take their defaults."""
    cols = list(row)
    db.run(
        f"INSERT INTO images({', '.join(cols)}) VALUES({', '.join(':' + c for c in cols)})",
        row,
    )
    return int(row["image_id"])


def export_rows(db: Database) -> List[dict]:
    """One row per image with comma-joined label columns, in image_id order."""
    rows = db.query(
        "SELECT image_id, filename, original_name, file_path, file_size, mime_type, uploaded_at, "
        "created_by AS image_created_by, last_edited_by AS image_last_edited_by "
        "FROM images ORDER BY image_id"
    )
    anns: Dict[int, List[dict]] = {}
    for a in db.query(
        "SELECT a.image_id, l.label_name, a.confidence, a.created_by, a.last_edited_by "
        "FROM annotations a JOIN labels l ON l.label_id = a.label_id "
        "ORDER BY a.image_id, a.annotation_id"
    ):
        anns.setdefault(a["image_id"], []).append(a)

    for r in rows:
        lst = anns.get(r["image_id"], [])
        r["labels"] = ",".join(a["label_name"] for a in lst)
        r["confidences"] = ",".join(str(float(a["confidence"])) for a in lst)
        r["annotation_creators"] = ",".join(a["created_by"] or "" for a in lst)
        r["annotation_editors"] = ",".join(a["last_edited_by"] or "" for a in lst)
    return rows


def get_image(db: Database, image_id: int) -> Optional[Image]:
    row = db.query_one(f"SELECT {_COLUMNS} FROM images WHERE image_id=?", (image_id,))
    return to_record(Image, row) if row else None


def get_by_filename(db: Database, filename: str) -> Optional[Image]:
    row = db.query_one(f"SELECT {_COLUMNS} FROM images WHERE filename=?", (filename,))
    return to_record(Image, row) if row else None


def count_all(db: Database) -> int:
    return int(db.query_one("SELECT COUNT(1) AS c FROM images")["c"])


def list_images(db: Database, limit: int | None = None, offset: int = 0) -> List[Image]:
    sql = f"SELECT {_COLUMNS} FROM images ORDER BY uploaded_at DESC, image_id DESC"
    params: list[object] = []
    if limit is not None:
        sql += " LIMIT ? OFFSET ?"
        params.extend([limit, offset])
    return to_records(Image, db.query(sql, params))


def list_by_label(db: Database, label_name: str) -> List[Image]:
    sql = (
        f"SELECT {', '.join('i.' + c.strip() for c in _COLUMNS.split(','))} "
        "FROM images i "
        "WHERE EXISTS (SELECT 1 FROM annotations a JOIN labels l ON l.label_id = a.label_id "
        "              WHERE a.image_id = i.image_id AND l.label_name = ?) "
        "ORDER BY i.uploaded_at DESC, i.image_id DESC"
    )
    return to_records(Image, db.query(sql, (label_name,)))


def labels_for(db: Database, image_ids: Iterable[int]) -> Dict[int, List[Tuple[str, float]]]:
    """(label_name, confidence) pairs per image, in annotation order."""
    ids = list(image_ids)
    out: Dict[int, List[Tuple[str, float]]] = {i: [] for i in ids}
    if not ids:
        return out
    q = (
        "SELECT a.image_id, l.label_name, a.confidence "
        "FROM annotations a JOIN labels l ON l.label_id = a.label_id "
        "WHERE a.image_id IN ({}) "
        "ORDER BY a.image_id, a.annotation_id"
    ).format(",".join(["?"] * len(ids)))
    for r in db.query(q, ids):
        out[r["image_id"]].append((r["label_name"], float(r["confidence"])))
    return out


def update_image(db: Database, image_id: int, fields: dict) -> int:
    sets = [f"{k}=?" for k in fields]
    sets.append("updated_at=CURRENT_TIMESTAMP")
    params: list[object] = list(fields.values())
    params.append(image_id)
    return db.run(f"UPDATE images SET {', '.join(sets)} WHERE image_id=?", params).rows_affected


def touch(db: Database, image_id: int, user: str | None = None) -> None:
    if user:
        db.run(
            "UPDATE images SET updated_at=CURRENT_TIMESTAMP, last_edited_by=? WHERE image_id=?",
            (user, image_id),
        )
    else:
        db.run("UPDATE images SET updated_at=CURRENT_TIMESTAMP WHERE image_id=?", (image_id,))


def delete_image(db: Database, image_id: int) -> int:
    return db.run("DELETE FROM images WHERE image_id=?", (image_id,)).rows_affected


def image_stats(db: Database) -> dict:
    stats = db.query_one(
        """
        SELECT COUNT(*) AS total_images,
               AVG(file_size) AS avg_file_size,
               MIN(file_size) AS min_file_size,
               MAX(file_size) AS max_file_size,
               COUNT(DISTINCT mime_type) AS mime_types_count,
               MIN(uploaded_at) AS oldest_upload,
               MAX(uploaded_at) AS newest_upload
        FROM images
        """
    )
    ann = db.query_one(
        """
        SELECT COUNT(*) AS total_annotations,
               AVG(confidence) AS avg_confidence,
               COUNT(DISTINCT image_id) AS annotated_images
        FROM annotations
        """
    )
    out = {**stats, **ann}
    out["unannotated_images"] = int(stats["total_images"]) - int(ann["annotated_images"])
    return out
