from __future__ import annotations

# annotator/db.py
import logging
import os
import re
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Iterator, NamedTuple, Optional, Sequence

import yaml

from .errors import QueryError, constraint_error_for

logger = logging.getLogger(__name__)

# DB path resolution order:
# 1) env ANNOTATOR_DB_PATH (highest priority)
# 2) config.yaml test_db_path (when running under tests)
# 3) config.yaml db_path
# 4) fallback: <project root>/annotations.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "annotations.db")

Params = Optional[Sequence[Any] | dict]


def read_config_yaml() -> dict:
    cfg_path = os.environ.get("ANNOTATOR_CONFIG") or os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    with open(cfg_path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"config file must contain a mapping: {cfg_path}")
    return cfg


def get_db_path() -> str:
    env_path = os.environ.get("ANNOTATOR_DB_PATH")
    cfg = read_config_yaml()
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and isinstance(cfg_test, str) and cfg_test.strip():
        path = cfg_test.strip()
    elif isinstance(cfg_db, str) and cfg_db.strip():
        path = cfg_db.strip()
    else:
        path = _ROOT_DB

    if path != ":memory:":
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return path


class RunResult(NamedTuple):
    inserted_id: Optional[int]
    rows_affected: int


_COMMENT_RE = re.compile(r"--[^\n]*|/\*.*?\*/", re.S)


def _has_sql(stmt: str) -> bool:
    return bool(_COMMENT_RE.sub("", stmt).replace(";", "").strip())


def split_statements(script: str) -> list[str]:
    """Split a SQL script into complete single statements.

    Semicolons inside literals, comments and trigger bodies are kept together
    by sqlite3.complete_statement.
    """
    out: list[str] = []
    buf = ""
    for part in script.split(";"):
        buf += part + ";"
        if sqlite3.complete_statement(buf):
            if _has_sql(buf):
                out.append(buf.strip())
            buf = ""
    if _has_sql(buf):
        # unterminated statement; let sqlite report it
        out.append(buf.strip().rstrip(";"))
    return out


class Database:
    """Synchronous, parametrized access to one SQLite connection.

    The connection opens lazily on first use and is reused until close();
    the next call after close() reopens it. All driver errors are re-raised
    as errors from annotator.errors with the SQL and params attached.
    """

    def __init__(self, path: str | None = None):
        self.path = path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"Database({self.path!r})"

    @property
    def connection(self) -> sqlite3.Connection:
        with self._lock:
            if self._conn is None:
                conn = sqlite3.connect(
                    self.path,
                    check_same_thread=False,
                    isolation_level=None,
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON;")
                self._conn = conn
                logger.debug("opened sqlite database %s", self.path)
            return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    def _execute(self, sql: str, params: Params) -> sqlite3.Cursor:
        try:
            return self.connection.execute(sql, params if params is not None else ())
        except sqlite3.IntegrityError as e:
            raise constraint_error_for(str(e), sql, params) from e
        except sqlite3.Error as e:
            raise QueryError(str(e), sql, params) from e

    def query(self, sql: str, params: Params = None) -> list[dict]:
        with self._lock:
            cur = self._execute(sql, params)
            try:
                return [dict(r) for r in cur.fetchall()]
            except sqlite3.Error as e:
                raise QueryError(str(e), sql, params) from e

    def query_one(self, sql: str, params: Params = None) -> Optional[dict]:
        with self._lock:
            cur = self._execute(sql, params)
            try:
                row = cur.fetchone()
            except sqlite3.Error as e:
                raise QueryError(str(e), sql, params) from e
            return dict(row) if row is not None else None

    def run(self, sql: str, params: Params = None) -> RunResult:
        with self._lock:
            cur = self._execute(sql, params)
            return RunResult(cur.lastrowid, cur.rowcount)

    def exec(self, script: str) -> None:
        with self._lock:
            conn = self.connection
            if conn.in_transaction:
                # executescript() would COMMIT the open transaction first
                for stmt in split_statements(script):
                    self._execute(stmt, None)
                return
            try:
                conn.executescript(script)
            except sqlite3.IntegrityError as e:
                raise constraint_error_for(str(e), script, None) from e
            except sqlite3.Error as e:
                raise QueryError(str(e), script, None) from e

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """All statements in the block commit together or not at all."""
        with self._lock:
            conn = self.connection
            if conn.in_transaction:
                raise QueryError("transaction already in progress; nested transactions are not supported")
            self._execute("BEGIN IMMEDIATE", None)
            try:
                yield self
            except BaseException:
                conn.rollback()
                raise
            try:
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise QueryError(str(e), "COMMIT", None) from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                finally:
                    self._conn = None
                logger.debug("closed sqlite database %s", self.path)

    # ---- schema helpers ----
    def table_exists(self, table: str) -> bool:
        row = self.query_one("SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (table,))
        return row is not None

    def column_names(self, table: str) -> list[str]:
        return [r["name"] for r in self.query(f"PRAGMA table_info({table})")]
