"""Error taxonomy shared by the query layer, migrations and services.

Routes translate these into HTTP statuses; nothing below the route layer
should need to parse driver messages.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence


class AnnotatorError(Exception):
    """Base class for all application errors."""


class ValidationError(AnnotatorError, ValueError):
    """Malformed or missing input, caught before touching the store."""


class PayloadTooLargeError(ValidationError):
    """Upload exceeds the configured size limit."""


class QueryError(AnnotatorError):
    """Anything the store reports that has no more specific class."""

    def __init__(self, message: str, sql: Optional[str] = None, params: Any = None):
        super().__init__(message)
        self.sql = sql
        self.params = params

    def __str__(self) -> str:
        base = super().__str__()
        if self.sql is None:
            return base
        return f"{base} [sql={_squash(self.sql)!r} params={self.params!r}]"


class ConstraintError(QueryError):
    kind = "constraint"


class ConflictError(ConstraintError):
    """Uniqueness violation: duplicate filename, label name or image-label pair."""
    kind = "unique"


class InvalidReferenceError(ConstraintError):
    """Foreign-key violation, or a referenced image/label that does not exist."""
    kind = "foreign_key"


class RangeError(ConstraintError):
    """Check-constraint violation such as confidence outside [0, 1]."""
    kind = "check"


class MigrationError(AnnotatorError):
    def __init__(self, message: str, file: Optional[str] = None):
        super().__init__(message)
        self.file = file


def _squash(sql: str, limit: int = 200) -> str:
    s = " ".join(sql.split())
    return s if len(s) <= limit else s[: limit - 3] + "..."


def constraint_error_for(message: str, sql: str, params: Sequence[Any] | dict | None) -> QueryError:
    """Map a sqlite IntegrityError message to the matching taxonomy class."""
    text = message.upper()
    if "UNIQUE CONSTRAINT FAILED" in text:
        return ConflictError(message, sql, params)
    if "FOREIGN KEY CONSTRAINT FAILED" in text:
        return InvalidReferenceError(message, sql, params)
    if "CHECK CONSTRAINT FAILED" in text:
        return RangeError(message, sql, params)
    if "NOT NULL CONSTRAINT FAILED" in text:
        err = ConstraintError(message, sql, params)
        err.kind = "not_null"
        return err
    return QueryError(message, sql, params)
