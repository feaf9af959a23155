from __future__ import annotations

from typing import Any

from ..errors import RangeError, ValidationError

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_LABEL_NAME_LENGTH = 100
DEFAULT_CONFIDENCE = 1.0

IMAGE_REQUIRED_FIELDS = ("filename", "original_name", "file_path", "file_size", "mime_type")
IMAGE_EDITABLE_FIELDS = ("original_name", "file_path", "last_edited_by")
LABEL_EDITABLE_FIELDS = ("label_name", "label_description")


def normalize_label_name(name: Any) -> str:
    """Trim and check a label name; raises ValidationError when unusable."""
    if not isinstance(name, str):
        raise ValidationError("label_name is required and must be a string")
    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("label_name cannot be empty or whitespace only")
    if len(trimmed) > MAX_LABEL_NAME_LENGTH:
        raise ValidationError(f"label_name cannot exceed {MAX_LABEL_NAME_LENGTH} characters")
    return trimmed


def check_confidence(value: Any) -> float:
    """Confidence must be a number in the closed interval [0.0, 1.0]."""
    if value is None:
        return DEFAULT_CONFIDENCE
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("confidence must be a number")
    c = float(value)
    if c != c or c < 0.0 or c > 1.0:
        raise RangeError(f"confidence must be between 0.0 and 1.0, got {value!r}")
    return c


def check_file_size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("file_size must be an integer")
    if value <= 0:
        raise RangeError(f"file_size must be positive, got {value}")
    return value


def check_mime_type(value: Any) -> str:
    if not isinstance(value, str) or value.lower() not in ALLOWED_MIME_TYPES:
        raise ValidationError(f"mime_type must be one of {', '.join(ALLOWED_MIME_TYPES)}")
    return value.lower()


def validate_new_image(data: dict) -> dict:
    """Return a cleaned copy of image fields ready for insertion."""
    for field in IMAGE_REQUIRED_FIELDS:
        v = data.get(field)
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValidationError(f"field '{field}' is required")
    return {
        "filename": data["filename"].strip(),
        "original_name": data["original_name"].strip(),
        "file_path": data["file_path"].strip(),
        "file_size": check_file_size(data["file_size"]),
        "mime_type": check_mime_type(data["mime_type"]),
        "created_by": data.get("created_by"),
    }


def pick_fields(data: dict, allowed: tuple[str, ...]) -> dict:
    """Keep only editable fields that were actually supplied."""
    return {k: data[k] for k in allowed if k in data and data[k] is not None}
