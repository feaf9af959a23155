from __future__ import annotations

import logging
import os

from ..db import Database
from ..logs import LogContext
from ..migrations import MigrationRunner

logger = logging.getLogger(__name__)

DATA_TABLES = ("annotations", "images", "labels")
SEED_FILE = "001_sample_data.sql"


def seed(db: Database, seeds_dir: str) -> bool:
    """Run the sample-data seed script if it exists; returns whether it ran."""
    path = os.path.join(seeds_dir, SEED_FILE)
    if not os.path.exists(path):
        logger.warning("seed file not found: %s", path)
        return False
    with open(path, "r", encoding="utf-8") as f:
        sql = f.read()
    with db.transaction():
        db.exec(sql)
    logger.info("seeded sample data from %s", path)
    return True


def reset_database(db: Database, seeds_dir: str | None = None, with_seed: bool = True,
                   log: LogContext | None = None) -> dict:
    """
    Delete every image, label and annotation, reset their autoincrement
    counters, then re-seed. The migrations table and audit log are kept.
    """
    MigrationRunner(db).run()
    with db.transaction():
        for t in DATA_TABLES:
            db.run(f"DELETE FROM {t}")
        if db.table_exists("sqlite_sequence"):
            db.run(
                "DELETE FROM sqlite_sequence WHERE name IN (?, ?, ?)",
                DATA_TABLES,
            )
    logger.info("database data cleared")

    seeded = False
    if with_seed and seeds_dir:
        seeded = seed(db, seeds_dir)
    out = {
        "seeded": seeded,
        "images": int(db.query_one("SELECT COUNT(1) AS c FROM images")["c"]),
        "labels": int(db.query_one("SELECT COUNT(1) AS c FROM labels")["c"]),
        "annotations": int(db.query_one("SELECT COUNT(1) AS c FROM annotations")["c"]),
    }
    if log is not None:
        log.set_after(out)
    return out
