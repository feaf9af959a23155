"""
Apply pending schema migrations to the configured database.

Usage:
  python -m annotator.scripts.run_migrations            # apply pending
  python -m annotator.scripts.run_migrations --status   # show applied / pending only
  python -m annotator.scripts.run_migrations --verify   # re-check checksums of applied files
"""
from __future__ import annotations

import argparse
import logging
import sys

from annotator.db import Database
from annotator.errors import MigrationError
from annotator.migrations import MigrationRunner


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--db", help="database path (defaults to config / ANNOTATOR_DB_PATH)")
    ap.add_argument("--dir", help="migrations directory")
    ap.add_argument("--status", action="store_true")
    ap.add_argument("--verify", action="store_true")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    db = Database(args.db)
    runner = MigrationRunner(db, args.dir)
    try:
        if args.status:
            st = runner.status()
            print({"total": st.total, "applied": st.applied, "pending": st.pending})
        elif args.verify:
            print({"verified": runner.verify()})
        else:
            res = runner.run()
            print({"message": "ok", "applied": res.applied, "skipped": res.skipped})
    except MigrationError as e:
        print(f"migration error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
