from __future__ import annotations

import logging
from typing import Optional

from ..db import Database
from ..domain.models import Label, LabelUsage
from ..domain.rules import LABEL_EDITABLE_FIELDS, normalize_label_name, pick_fields
from ..errors import ConflictError, ValidationError
from ..logs import LogContext
from ..repository import label_repo

logger = logging.getLogger(__name__)


def _check_id(label_id) -> int:
    if isinstance(label_id, bool) or not isinstance(label_id, int) or label_id <= 0:
        raise ValidationError("valid label_id is required")
    return label_id


def _clean_description(desc) -> Optional[str]:
    if desc is None:
        return None
    if not isinstance(desc, str):
        raise ValidationError("label_description must be a string")
    return desc.strip() or None


def get_all_labels(db: Database) -> list[LabelUsage]:
    return label_repo.list_with_usage(db)


def list_label_names(db: Database) -> list[str]:
    return label_repo.list_names(db)


def get_label(db: Database, label_id: int) -> Optional[Label]:
    return label_repo.get_label(db, _check_id(label_id))


def get_label_by_name(db: Database, label_name: str) -> Optional[LabelUsage]:
    """Case-insensitive lookup, with usage statistics."""
    return label_repo.find_by_name_ci(db, normalize_label_name(label_name))


def search_labels(db: Database, term: str) -> list[LabelUsage]:
    if not isinstance(term, str) or not term.strip():
        raise ValidationError("valid search term is required")
    return label_repo.search(db, term.strip())


def get_label_stats(db: Database) -> dict:
    return label_repo.label_stats(db)


def get_or_create_label(db: Database, label_name: str, label_description: str | None = None) -> tuple[Label, bool]:
    """Return the label with this exact name, creating it if absent.

    Must run inside a transaction opened by the caller.
    """
    name = normalize_label_name(label_name)
    existing = label_repo.get_by_name(db, name)
    if existing is not None:
        return existing, False
    new_id = label_repo.insert_label(db, name, _clean_description(label_description))
    return label_repo.get_label(db, new_id), True


def create_label(db: Database, data: dict, log: LogContext | None = None) -> tuple[Label, bool]:
    """
    Create a label, or return the existing one with the same (trimmed) name.
    The second element tells whether a new row was inserted.
    """
    name = normalize_label_name(data.get("label_name"))
    desc = _clean_description(data.get("label_description"))
    with db.transaction():
        label, created = get_or_create_label(db, name, desc)
    if log is not None:
        log.set_entity("LABEL", label.label_id)
        log.set_after(label)
    if not created:
        logger.debug("label %r already exists (id=%s)", name, label.label_id)
    return label, created


def update_label(db: Database, label_id: int, data: dict, log: LogContext | None = None) -> Optional[Label]:
    """
    Update editable fields of a label: label_name, label_description.
    Renaming onto a name another label holds raises ConflictError.
    Returns None when the label does not exist.
    """
    _check_id(label_id)
    fields = pick_fields(data or {}, LABEL_EDITABLE_FIELDS)
    if not fields:
        raise ValidationError("at least one of label_name/label_description must be provided")
    if "label_name" in fields:
        fields["label_name"] = normalize_label_name(fields["label_name"])
    if "label_description" in fields:
        fields["label_description"] = _clean_description(fields["label_description"])

    with db.transaction():
        before = label_repo.get_label(db, label_id)
        if before is None:
            return None
        if "label_name" in fields:
            other = label_repo.get_by_name(db, fields["label_name"])
            if other is not None and other.label_id != label_id:
                raise ConflictError(f"label with name {fields['label_name']!r} already exists")
        label_repo.update_label(db, label_id, fields)
        after = label_repo.get_label(db, label_id)

    if log is not None:
        log.set_entity("LABEL", label_id)
        log.set_before(before)
        log.set_after(after)
    return after


def delete_label(db: Database, label_id: int, log: LogContext | None = None) -> bool:
    """Delete a label; its annotations go with it (ON DELETE CASCADE)."""
    _check_id(label_id)
    with db.transaction():
        before = label_repo.get_label(db, label_id)
        if before is None:
            return False
        deleted = label_repo.delete_label(db, label_id) > 0
    if log is not None:
        log.set_entity("LABEL", label_id)
        log.set_before(before)
    return deleted
