from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ..logs import LogContext
from ..services.annotation_svc import (
    annotate_by_name,
    delete_annotation,
    get_annotations_by_image,
    get_label_id_by_name,
    update_annotation_confidence,
)
from .base import current_user, get_db, http_error

router = APIRouter()


# The UI sends confidence as a percentage; the store keeps [0, 1].
class AnnotationCreateBody(BaseModel):
    image_id: int
    label_name: str
    confidence: float = Field(default=100, ge=0, le=100)


class AnnotationUpdateBody(BaseModel):
    image_id: int
    label_name: str
    confidence: float = Field(ge=0, le=100)


class AnnotationDeleteBody(BaseModel):
    image_id: int
    label_name: str


def _label_id_or_404(db, label_name: str) -> int:
    label_id = get_label_id_by_name(db, label_name)
    if label_id is None:
        raise HTTPException(status_code=404, detail="label not found")
    return label_id


@router.get("/api/annotations")
def api_annotations_for_image(request: Request, image_id: int):
    try:
        items = get_annotations_by_image(get_db(request), image_id)
        return {"total": len(items), "items": items}
    except Exception as e:
        raise http_error(e)


@router.post("/api/annotations", status_code=201)
def api_annotation_create(request: Request, body: AnnotationCreateBody):
    db = get_db(request)
    user = current_user(request)
    log = LogContext(db, "CREATE_ANNOTATION", user)
    log.set_payload(body.model_dump())
    try:
        ann, label_created = annotate_by_name(
            db, body.image_id, body.label_name, body.confidence / 100, user=user, log=log
        )
        log.write("OK")
        return {"message": "ok", "annotation": ann, "label_created": label_created}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


@router.patch("/api/annotations")
def api_annotation_update(request: Request, body: AnnotationUpdateBody):
    db = get_db(request)
    user = current_user(request)
    log = LogContext(db, "UPDATE_ANNOTATION", user)
    log.set_payload(body.model_dump())
    try:
        label_id = _label_id_or_404(db, body.label_name)
        ann = update_annotation_confidence(
            db, body.image_id, label_id, body.confidence / 100, user=user, log=log
        )
        if ann is None:
            raise HTTPException(status_code=404, detail="annotation not found")
        log.write("OK")
        return {"message": "ok", "annotation": ann}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


@router.delete("/api/annotations")
def api_annotation_delete(request: Request, body: AnnotationDeleteBody):
    db = get_db(request)
    user = current_user(request)
    log = LogContext(db, "DELETE_ANNOTATION", user)
    log.set_payload(body.model_dump())
    try:
        label_id = _label_id_or_404(db, body.label_name)
        if not delete_annotation(db, body.image_id, label_id, user=user, log=log):
            raise HTTPException(status_code=404, detail="annotation not found")
        log.write("OK")
        return {"message": "ok"}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)
