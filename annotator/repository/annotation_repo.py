from __future__ import annotations

from typing import List, Optional

from ..db import Database
from ..domain.models import Annotation, AnnotationDetail, to_record, to_records

_COLUMNS = "annotation_id, image_id, label_id, confidence, created_at, created_by, last_edited_by"


def insert_annotation(
    db: Database,
    image_id: int,
    label_id: int,
    confidence: float,
    created_by: str | None = None,
    last_edited_by: str | None = None,
) -> int:
    res = db.run(
        "INSERT INTO annotations(image_id, label_id, confidence, created_by, last_edited_by) "
        "VALUES(?,?,?,?,?)",
        (image_id, label_id, confidence, created_by, last_edited_by),
    )
    return int(res.inserted_id)


def get_annotation(db: Database, annotation_id: int) -> Optional[Annotation]:
    row = db.query_one(f"SELECT {_COLUMNS} FROM annotations WHERE annotation_id=?", (annotation_id,))
    return to_record(Annotation, row) if row else None


def get_pair(db: Database, image_id: int, label_id: int) -> Optional[Annotation]:
    row = db.query_one(
        f"SELECT {_COLUMNS} FROM annotations WHERE image_id=? AND label_id=?",
        (image_id, label_id),
    )
    return to_record(Annotation, row) if row else None


def update_confidence(db: Database, image_id: int, label_id: int, confidence: float, user: str | None) -> int:
    return db.run(
        "UPDATE annotations SET confidence=?, last_edited_by=? WHERE image_id=? AND label_id=?",
        (confidence, user, image_id, label_id),
    ).rows_affected


def delete_pair(db: Database, image_id: int, label_id: int) -> int:
    return db.run(
        "DELETE FROM annotations WHERE image_id=? AND label_id=?", (image_id, label_id)
    ).rows_affected


def list_for_image(db: Database, image_id: int) -> List[AnnotationDetail]:
    sql = (
        "SELECT a.annotation_id, a.image_id, a.label_id, a.confidence, a.created_at, "
        "a.created_by, a.last_edited_by, l.label_name, l.label_description "
        "FROM annotations a JOIN labels l ON l.label_id = a.label_id "
        "WHERE a.image_id=? ORDER BY a.confidence DESC, a.annotation_id"
    )
    return to_records(AnnotationDetail, db.query(sql, (image_id,)))


def count_for_image(db: Database, image_id: int) -> int:
    return int(db.query_one("SELECT COUNT(1) AS c FROM annotations WHERE image_id=?", (image_id,))["c"])


def count_for_label(db: Database, label_id: int) -> int:
    return int(db.query_one("SELECT COUNT(1) AS c FROM annotations WHERE label_id=?", (label_id,))["c"])
