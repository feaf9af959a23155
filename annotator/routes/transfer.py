from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from ..logs import LogContext
from ..services.csv_svc import export_csv, import_csv
from .base import get_db, http_error

router = APIRouter()


@router.get("/api/export/csv")
def api_export_csv(request: Request):
    try:
        content = export_csv(get_db(request))
    except Exception as e:
        raise http_error(e)
    filename = f"annotations_export_{datetime.now().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def _import(db, user: str, filename: str | None, content: bytes):
    log = LogContext(db, "IMPORT_CSV", user)
    log.set_payload({"filename": filename})
    try:
        if filename and not filename.lower().endswith(".csv"):
            raise HTTPException(status_code=400, detail="only .csv files are accepted")
        out = import_csv(db, content, user=user, log=log)
        log.write("OK")
        return out
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)


@router.post("/api/import/csv")
async def api_import_csv(request: Request, file: UploadFile = File(...)):
    user = (request.headers.get("x-user-email") or "").strip() or "csv-import"
    content = await file.read()
    # database work stays off the event loop
    return await run_in_threadpool(_import, get_db(request), user, file.filename, content)
