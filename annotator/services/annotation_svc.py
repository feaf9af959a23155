from __future__ import annotations

import logging
from typing import List, Optional

from ..db import Database
from ..domain.models import Annotation, AnnotationDetail
from ..domain.rules import check_confidence, normalize_label_name
from ..errors import ConflictError, InvalidReferenceError, ValidationError
from ..logs import LogContext
from ..repository import annotation_repo, image_repo, label_repo
from .label_svc import get_or_create_label

logger = logging.getLogger(__name__)


def _check_ids(image_id, label_id=None) -> None:
    pairs = [("image_id", image_id)]
    if label_id is not None:
        pairs.append(("label_id", label_id))
    for name, v in pairs:
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ValidationError(f"valid {name} is required")


def _insert(db: Database, image_id: int, label_id: int, confidence: float, user: str | None) -> Annotation:
    # caller holds the transaction
    if image_repo.get_image(db, image_id) is None:
        raise InvalidReferenceError(f"image {image_id} does not exist")
    if label_repo.get_label(db, label_id) is None:
        raise InvalidReferenceError(f"label {label_id} does not exist")
    if annotation_repo.get_pair(db, image_id, label_id) is not None:
        raise ConflictError(f"image {image_id} is already annotated with label {label_id}")
    new_id = annotation_repo.insert_annotation(db, image_id, label_id, confidence, user, user)
    image_repo.touch(db, image_id, user)
    return annotation_repo.get_annotation(db, new_id)


def create_annotation(
    db: Database,
    image_id: int,
    label_id: int,
    confidence: float | None = None,
    user: str | None = None,
    log: LogContext | None = None,
) -> Annotation:
    """Attach an existing label to an existing image. Confidence defaults to 1.0."""
    _check_ids(image_id, label_id)
    conf = check_confidence(confidence)
    with db.transaction():
        ann = _insert(db, image_id, label_id, conf, user)
    if log is not None:
        log.set_entity("ANNOTATION", ann.annotation_id)
        log.set_after(ann)
    return ann


def annotate_by_name(
    db: Database,
    image_id: int,
    label_name: str,
    confidence: float | None = None,
    user: str | None = None,
    log: LogContext | None = None,
) -> tuple[Annotation, bool]:
    """
    Annotate an image with a label given by name, creating the label when
    it does not exist yet. Returns (annotation, label_created).
    """
    _check_ids(image_id)
    name = normalize_label_name(label_name)
    conf = check_confidence(confidence)
    with db.transaction():
        if image_repo.get_image(db, image_id) is None:
            raise InvalidReferenceError(f"image {image_id} does not exist")
        label, created = get_or_create_label(db, name)
        ann = _insert(db, image_id, label.label_id, conf, user)
    if created:
        logger.info("created label %r while annotating image %s", name, image_id)
    if log is not None:
        log.set_entity("ANNOTATION", ann.annotation_id)
        log.set_after(ann)
    return ann, created


def update_annotation_confidence(
    db: Database,
    image_id: int,
    label_id: int,
    confidence: float,
    user: str | None = None,
    log: LogContext | None = None,
) -> Optional[Annotation]:
    """Returns None when the image has no annotation with that label."""
    _check_ids(image_id, label_id)
    if confidence is None:
        raise ValidationError("confidence is required")
    conf = check_confidence(confidence)
    with db.transaction():
        before = annotation_repo.get_pair(db, image_id, label_id)
        if before is None:
            return None
        annotation_repo.update_confidence(db, image_id, label_id, conf, user)
        image_repo.touch(db, image_id, user)
        after = annotation_repo.get_pair(db, image_id, label_id)
    if log is not None:
        log.set_entity("ANNOTATION", after.annotation_id)
        log.set_before(before)
        log.set_after(after)
    return after


def delete_annotation(
    db: Database,
    image_id: int,
    label_id: int,
    user: str | None = None,
    log: LogContext | None = None,
) -> bool:
    _check_ids(image_id, label_id)
    with db.transaction():
        before = annotation_repo.get_pair(db, image_id, label_id)
        if before is None:
            return False
        annotation_repo.delete_pair(db, image_id, label_id)
        image_repo.touch(db, image_id, user)
    if log is not None:
        log.set_entity("ANNOTATION", before.annotation_id)
        log.set_before(before)
    return True


def get_annotations_by_image(db: Database, image_id: int) -> List[AnnotationDetail]:
    _check_ids(image_id)
    return annotation_repo.list_for_image(db, image_id)


def get_label_id_by_name(db: Database, label_name: str) -> Optional[int]:
    label = label_repo.get_by_name(db, normalize_label_name(label_name))
    return label.label_id if label else None
