from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from ..logs import LogContext
from ..services.label_svc import (
    create_label,
    delete_label,
    get_all_labels,
    get_label,
    get_label_stats,
    list_label_names,
    search_labels,
    update_label,
)
from .base import current_user, get_db, http_error

router = APIRouter()


class LabelCreateBody(BaseModel):
    label_name: str
    label_description: str | None = None


class LabelUpdateBody(BaseModel):
    label_name: str | None = None
    label_description: str | None = None


@router.get("/api/labels")
def api_labels_list(request: Request):
    items = get_all_labels(get_db(request))
    return {"total": len(items), "items": items}


@router.get("/api/labels/common")
def api_labels_common(request: Request):
    return {"labels": list_label_names(get_db(request))}


@router.get("/api/labels/stats")
def api_labels_stats(request: Request):
    return get_label_stats(get_db(request))


@router.get("/api/labels/search")
def api_labels_search(request: Request, q: str):
    try:
        items = search_labels(get_db(request), q)
        return {"total": len(items), "items": items}
    except Exception as e:
        raise http_error(e)


@router.get("/api/labels/{label_id}")
def api_label_get(request: Request, label_id: int):
    try:
        label = get_label(get_db(request), label_id)
    except Exception as e:
        raise http_error(e)
    if label is None:
        raise HTTPException(status_code=404, detail="label not found")
    return label


@router.post("/api/labels", status_code=201)
def api_label_create(request: Request, body: LabelCreateBody):
    db = get_db(request)
    log = LogContext(db, "CREATE_LABEL", current_user(request))
    log.set_payload(body.model_dump())
    try:
        label, created = create_label(db, body.model_dump(), log)
        log.write("OK")
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)
    content = jsonable_encoder({"message": "ok", "label": label, "created": created})
    return JSONResponse(content=content, status_code=201 if created else 200)


@router.put("/api/labels/{label_id}")
def api_label_update(request: Request, label_id: int, body: LabelUpdateBody):
    db = get_db(request)
    log = LogContext(db, "UPDATE_LABEL", current_user(request))
    # explicit null clears the description
    data = body.model_dump(exclude_unset=True)
    if data.get("label_description", "") is None:
        data["label_description"] = ""
    log.set_payload({"label_id": label_id, **data})
    try:
        label = update_label(db, label_id, data, log)
        if label is None:
            raise HTTPException(status_code=404, detail="label not found")
        log.write("OK")
        return {"message": "ok", "label": label}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


@router.delete("/api/labels/{label_id}")
def api_label_delete(request: Request, label_id: int):
    db = get_db(request)
    log = LogContext(db, "DELETE_LABEL", current_user(request))
    log.set_payload({"label_id": label_id})
    try:
        if not delete_label(db, label_id, log):
            raise HTTPException(status_code=404, detail="label not found")
        log.write("OK")
        return {"message": "ok"}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)
