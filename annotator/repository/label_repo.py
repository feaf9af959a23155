from __future__ import annotations

from typing import List, Optional

from ..db import Database
from ..domain.models import Label, LabelUsage, to_record, to_records

_USAGE_SELECT = """
SELECT l.label_id, l.label_name, l.label_description, l.created_at,
       COUNT(a.annotation_id) AS usage_count,
       AVG(a.confidence) AS avg_confidence
FROM labels l
LEFT JOIN annotations a ON a.label_id = l.label_id
"""


def insert_label(db: Database, label_name: str, label_description: str | None = None) -> int:
    res = db.run(
        "INSERT INTO labels(label_name, label_description) VALUES(?, ?)",
        (label_name, label_description),
    )
    return int(res.inserted_id)


def get_label(db: Database, label_id: int) -> Optional[Label]:
    row = db.query_one(
        "SELECT label_id, label_name, label_description, created_at FROM labels WHERE label_id=?",
        (label_id,),
    )
    return to_record(Label, row) if row else None


def get_by_name(db: Database, label_name: str) -> Optional[Label]:
    row = db.query_one(
        "SELECT label_id, label_name, label_description, created_at FROM labels WHERE label_name=?",
        (label_name,),
    )
    return to_record(Label, row) if row else None


def find_by_name_ci(db: Database, label_name: str) -> Optional[LabelUsage]:
    sql = _USAGE_SELECT + " WHERE LOWER(l.label_name) = LOWER(?) GROUP BY l.label_id"
    row = db.query_one(sql, (label_name,))
    return to_record(LabelUsage, row) if row else None


def list_with_usage(db: Database) -> List[LabelUsage]:
    sql = _USAGE_SELECT + " GROUP BY l.label_id ORDER BY usage_count DESC, l.label_name"
    return to_records(LabelUsage, db.query(sql))


def search(db: Database, term: str) -> List[LabelUsage]:
    sql = (
        _USAGE_SELECT
        + " WHERE l.label_name LIKE :q OR l.label_description LIKE :q"
        + " GROUP BY l.label_id ORDER BY usage_count DESC, l.label_name"
    )
    return to_records(LabelUsage, db.query(sql, {"q": f"%{term}%"}))


def list_names(db: Database) -> List[str]:
    return [r["label_name"] for r in db.query("SELECT label_name FROM labels ORDER BY label_name")]


def update_label(db: Database, label_id: int, fields: dict) -> int:
    sets = ", ".join(f"{k}=?" for k in fields)
    params: list[object] = list(fields.values())
    params.append(label_id)
    return db.run(f"UPDATE labels SET {sets} WHERE label_id=?", params).rows_affected


def delete_label(db: Database, label_id: int) -> int:
    return db.run("DELETE FROM labels WHERE label_id=?", (label_id,)).rows_affected


def label_stats(db: Database) -> dict:
    return db.query_one(
        """
        SELECT COUNT(*) AS total_labels,
               COUNT(CASE WHEN usage_count > 0 THEN 1 END) AS used_labels,
               COUNT(CASE WHEN usage_count = 0 THEN 1 END) AS unused_labels,
               AVG(usage_count) AS avg_usage_per_label,
               MAX(usage_count) AS max_usage
        FROM (
            SELECT l.label_id, COUNT(a.annotation_id) AS usage_count
            FROM labels l
            LEFT JOIN annotations a ON l.label_id = a.label_id
            GROUP BY l.label_id
        ) label_usage
        """
    )
