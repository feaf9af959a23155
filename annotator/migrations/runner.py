"""
Migration runner for versioned SQL files.

Provides:
- Migration tracking via the `migrations` table (version + MD5 checksum)
- Strict file naming: NNN_name.sql, three-digit zero-padded version
- All pending files applied in ONE transaction; any failure rolls back the batch
- Checksum re-validation to catch files edited after they were applied
"""
from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, Field

from ..db import Database
from ..domain.models import MigrationRecord, to_record, to_records
from ..errors import MigrationError

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"
FILE_PATTERN = re.compile(r"^(\d{3})_([A-Za-z0-9_]+)\.sql$")

MIGRATIONS_DDL = """
CREATE TABLE IF NOT EXISTS migrations (
    migration_id INTEGER PRIMARY KEY AUTOINCREMENT,
    version TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    applied_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    checksum TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_migrations_version ON migrations(version);
"""


class MigrationFile(NamedTuple):
    version: str
    name: str
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    def checksum(self) -> str:
        return file_checksum(self.path)

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


class MigrationResult(BaseModel):
    applied: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    errors: List[dict] = Field(default_factory=list)


class MigrationStatus(BaseModel):
    total: int
    applied: List[str]
    pending: List[str]
    last_applied: Optional[MigrationRecord] = None


def file_checksum(path: Path) -> str:
    """MD5 of the exact file bytes; tamper detection, not security."""
    return hashlib.md5(Path(path).read_bytes()).hexdigest()


def parse_file_name(file_name: str) -> tuple[str, str]:
    m = FILE_PATTERN.match(file_name)
    if not m:
        raise MigrationError(f"Invalid migration file name: {file_name}", file=file_name)
    return m.group(1), m.group(2)


class MigrationRunner:
    def __init__(self, db: Database, migrations_dir: str | Path | None = None):
        self.db = db
        self.migrations_dir = Path(migrations_dir) if migrations_dir else MIGRATIONS_DIR

    # ---- bookkeeping ----
    def ensure_migrations_table(self) -> None:
        self.db.exec(MIGRATIONS_DDL)

    def record(self, version: str, name: str, checksum: str) -> None:
        self.db.run(
            "INSERT INTO migrations (version, name, checksum) VALUES (?, ?, ?)",
            (version, name, checksum),
        )

    def applied_records(self) -> list[MigrationRecord]:
        if not self.db.table_exists("migrations"):
            return []
        rows = self.db.query("SELECT * FROM migrations ORDER BY CAST(version AS INTEGER)")
        return to_records(MigrationRecord, rows)

    def applied_versions(self) -> list[str]:
        return [r.version for r in self.applied_records()]

    # ---- discovery ----
    def discover(self) -> list[MigrationFile]:
        """List, validate and numerically sort migration files.

        Raises MigrationError on a badly named .sql file or a duplicated version
        before anything is applied.
        """
        if not self.migrations_dir.is_dir():
            raise MigrationError(f"Migrations directory not found: {self.migrations_dir}")

        files: list[MigrationFile] = []
        for path in self.migrations_dir.iterdir():
            if not path.is_file() or path.suffix.lower() != ".sql":
                continue
            version, name = parse_file_name(path.name)
            files.append(MigrationFile(version, name, path))

        seen: dict[str, str] = {}
        for f in sorted(files, key=lambda f: f.filename):
            if f.version in seen:
                raise MigrationError(
                    f"Duplicate migration version: {f.version} ({seen[f.version]}, {f.filename})",
                    file=f.filename,
                )
            seen[f.version] = f.filename

        return sorted(files, key=lambda f: int(f.version))

    def pending(self) -> list[MigrationFile]:
        applied = set(self.applied_versions())
        return [f for f in self.discover() if f.version not in applied]

    # ---- validation ----
    def validate_checksum(self, version: str, checksum: str) -> None:
        if not self.db.table_exists("migrations"):
            return
        row = self.db.query_one("SELECT checksum FROM migrations WHERE version = ?", (version,))
        if row is not None and row["checksum"] != checksum:
            raise MigrationError(f"Migration file has been modified after application: {version}")

    def verify(self) -> list[str]:
        """Re-check every applied migration still on disk against its recorded checksum."""
        on_disk = {f.version: f for f in self.discover()}
        verified = []
        for rec in self.applied_records():
            f = on_disk.get(rec.version)
            if f is None:
                logger.warning("applied migration %s_%s has no file on disk", rec.version, rec.name)
                continue
            try:
                self.validate_checksum(rec.version, f.checksum())
            except MigrationError as e:
                e.file = f.filename
                raise
            verified.append(rec.version)
        return verified

    # ---- apply ----
    def run(self) -> MigrationResult:
        """Apply every pending migration in one transaction, in version order."""
        self.ensure_migrations_table()
        files = self.discover()
        applied = set(self.applied_versions())

        result = MigrationResult()
        pending: list[MigrationFile] = []
        for f in files:
            if f.version in applied:
                logger.debug("Skipping migration %s (already applied)", f.filename)
                result.skipped.append(f.filename)
            else:
                pending.append(f)

        if not pending:
            logger.info("Schema up to date (%d migration(s) applied)", len(result.skipped))
            return result

        with self.db.transaction():
            for f in pending:
                try:
                    checksum = f.checksum()
                    self.validate_checksum(f.version, checksum)
                    self.db.exec(f.read_sql())
                    self.record(f.version, f.name, checksum)
                except Exception as e:
                    logger.error("Migration failed: %s - %s", f.filename, e)
                    raise MigrationError(f"Migration failed: {f.filename} - {e}", file=f.filename) from e
                logger.info("Applied migration: %s", f.filename)
                result.applied.append(f.filename)

        return result

    def status(self) -> MigrationStatus:
        files = self.discover()
        records = self.applied_records()
        applied = {r.version for r in records}
        last = None
        if records:
            row = self.db.query_one(
                "SELECT * FROM migrations ORDER BY applied_at DESC, migration_id DESC LIMIT 1"
            )
            last = to_record(MigrationRecord, row) if row else None
        return MigrationStatus(
            total=len(files),
            applied=[r.version for r in records],
            pending=[f.version for f in files if f.version not in applied],
            last_applied=last,
        )


def run_migrations(db: Database, migrations_dir: str | Path | None = None) -> MigrationResult:
    return MigrationRunner(db, migrations_dir).run()
