"""
Schema migrations for the annotation store.

Usage:
    from annotator.migrations import MigrationRunner

    runner = MigrationRunner(db)
    runner.run()       # apply pending NNN_name.sql files
    runner.status()    # applied / pending versions
"""

from .runner import (
    MIGRATIONS_DIR,
    MigrationFile,
    MigrationResult,
    MigrationRunner,
    MigrationStatus,
    file_checksum,
    run_migrations,
)

__all__ = [
    "MIGRATIONS_DIR",
    "MigrationFile",
    "MigrationResult",
    "MigrationRunner",
    "MigrationStatus",
    "file_checksum",
    "run_migrations",
]
