from __future__ import annotations

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from ..errors import ValidationError
from ..logs import LogContext
from ..services.image_svc import (
    create_image,
    delete_image,
    get_all_images,
    get_image,
    get_image_stats,
    list_images,
    search_images_by_label,
    store_upload,
    update_image,
)
from .base import current_user, get_config, get_db, http_error

router = APIRouter()


class ImageCreateBody(BaseModel):
    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str


class ImageUpdateBody(BaseModel):
    original_name: str | None = None
    file_path: str | None = None


@router.get("/api/images")
def api_images_list(request: Request, page: int | None = None, size: int = 50):
    db = get_db(request)
    if page is None:
        items = get_all_images(db)
        return {"total": len(items), "items": items}
    total, items = list_images(db, page, size)
    return {"total": total, "items": items}


@router.get("/api/images/search")
def api_images_search(request: Request, label: str):
    try:
        items = search_images_by_label(get_db(request), label)
        return {"total": len(items), "items": items}
    except Exception as e:
        raise http_error(e)


@router.get("/api/images/stats")
def api_images_stats(request: Request):
    return get_image_stats(get_db(request))


@router.get("/api/images/{image_id}")
def api_image_get(request: Request, image_id: int):
    try:
        image = get_image(get_db(request), image_id)
    except Exception as e:
        raise http_error(e)
    if image is None:
        raise HTTPException(status_code=404, detail="image not found")
    return image


@router.post("/api/images", status_code=201)
def api_image_create(request: Request, body: ImageCreateBody):
    db = get_db(request)
    user = current_user(request)
    log = LogContext(db, "CREATE_IMAGE", user)
    log.set_payload(body.model_dump())
    try:
        image = create_image(db, {**body.model_dump(), "created_by": user}, log)
        log.write("OK")
        return {"message": "ok", "image": image}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


def _store_upload(db, cfg: dict, user: str, filename: str, content_type: str, content: bytes):
    log = LogContext(db, "UPLOAD_IMAGE", user)
    log.set_payload({"original_name": filename, "content_type": content_type})
    try:
        image = store_upload(
            db,
            content,
            filename,
            content_type,
            cfg["upload_dir"],
            cfg["max_upload_bytes"],
            user=user,
            log=log,
        )
        log.write("OK")
        return {"message": "ok", "image": image}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


@router.post("/api/images/upload", status_code=201)
async def api_image_upload(request: Request, file: UploadFile = File(...)):
    content = await file.read()
    # database work stays off the event loop
    return await run_in_threadpool(
        _store_upload,
        get_db(request),
        get_config(request),
        current_user(request),
        file.filename or "",
        file.content_type or "",
        content,
    )


@router.put("/api/images/{image_id}")
def api_image_update(request: Request, image_id: int, body: ImageUpdateBody):
    db = get_db(request)
    user = current_user(request)
    log = LogContext(db, "UPDATE_IMAGE", user)
    fields = body.model_dump(exclude_none=True)
    log.set_payload({"image_id": image_id, **fields})
    try:
        if not fields:
            raise ValidationError("no valid fields to update")
        image = update_image(db, image_id, {**fields, "last_edited_by": user}, log)
        if image is None:
            raise HTTPException(status_code=404, detail="image not found")
        log.write("OK")
        return {"message": "ok", "image": image}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


@router.delete("/api/images/{image_id}")
def api_image_delete(request: Request, image_id: int):
    db = get_db(request)
    log = LogContext(db, "DELETE_IMAGE", current_user(request))
    log.set_payload({"image_id": image_id})
    try:
        if not delete_image(db, image_id, log):
            raise HTTPException(status_code=404, detail="image not found")
        log.write("OK")
        return {"message": "ok"}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)
