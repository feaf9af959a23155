from __future__ import annotations

from fastapi import APIRouter, Request

from ..logs import search_logs
from .base import get_db

router = APIRouter()


@router.get("/api/logs/search")
def api_logs_search(
    request: Request,
    page: int = 1,
    size: int = 20,
    action: str | None = None,
    query: str | None = None,
    ts_from: str | None = None,
    ts_to: str | None = None,
):
    total, items = search_logs(get_db(request), query, action, ts_from, ts_to, page, size)
    return {"total": total, "items": items}
