from __future__ import annotations

from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as _PydanticValidationError

from ..errors import QueryError


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Image(Record):
    image_id: int
    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    uploaded_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None


class ImageWithLabels(Image):
    labels: list[str] = Field(default_factory=list)
    confidences: list[float] = Field(default_factory=list)
    label_count: int = 0


class Label(Record):
    label_id: int
    label_name: str
    label_description: Optional[str] = None
    created_at: Optional[str] = None


class LabelUsage(Label):
    usage_count: int = 0
    avg_confidence: Optional[float] = None


class Annotation(Record):
    annotation_id: int
    image_id: int
    label_id: int
    confidence: float
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    last_edited_by: Optional[str] = None


class AnnotationDetail(Annotation):
    label_name: str
    label_description: Optional[str] = None


class ImageDetail(Image):
    annotations: list[AnnotationDetail] = Field(default_factory=list)


class MigrationRecord(Record):
    migration_id: int
    version: str
    name: str
    applied_at: Optional[str] = None
    checksum: str


R = TypeVar("R", bound=Record)


def to_record(model: Type[R], row: dict[str, Any]) -> R:
    """Map a store row onto its record type, failing on missing or mistyped columns."""
    try:
        return model.model_validate(row)
    except _PydanticValidationError as e:
        raise QueryError(f"row does not match {model.__name__}: {e.errors(include_url=False)}") from e


def to_records(model: Type[R], rows: list[dict[str, Any]]) -> list[R]:
    return [to_record(model, r) for r in rows]
