"""
Reset annotation data and re-seed sample rows.

WARNING: This DELETES every row in `annotations`, `images` and `labels` and
resets their autoincrement counters. Migrations and the operation log are kept.

Usage:
  python -m annotator.scripts.reset_database [--no-seed]
"""
from __future__ import annotations

import argparse
import logging

from annotator.db import Database
from annotator.logs import LogContext
from annotator.services.config_svc import get_config
from annotator.services.maintenance_svc import reset_database


def main(argv: list[str] | None = None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--db", help="database path (defaults to config / ANNOTATOR_DB_PATH)")
    ap.add_argument("--no-seed", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    db = Database(args.db)
    try:
        log = LogContext(db, "RESET_DATABASE", "cli")
        res = reset_database(db, get_config()["seeds_dir"], with_seed=not args.no_seed, log=log)
        log.write("OK")
        print({"message": "ok", **res})
    finally:
        db.close()


if __name__ == "__main__":
    main()
