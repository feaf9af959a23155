from __future__ import annotations

from fastapi import APIRouter, Request

from ..logs import LogContext
from ..migrations import MigrationRunner
from ..services.maintenance_svc import reset_database
from .base import current_user, get_config, get_db, http_error

router = APIRouter()


@router.get("/api/migrations/status")
def api_migrations_status(request: Request):
    try:
        return MigrationRunner(get_db(request)).status()
    except Exception as e:
        raise http_error(e)


@router.post("/api/migrations/run")
def api_migrations_run(request: Request):
    try:
        result = MigrationRunner(get_db(request)).run()
    except Exception as e:
        raise http_error(e)
    return {"message": "ok", **result.model_dump()}


@router.post("/api/database/reset")
def api_database_reset(request: Request, seed: bool = True):
    db = get_db(request)
    log = LogContext(db, "RESET_DATABASE", current_user(request))
    log.set_payload({"seed": seed})
    try:
        out = reset_database(db, get_config(request)["seeds_dir"], with_seed=seed, log=log)
        log.write("OK")
        return {"message": "Database reset successfully", **out}
    except Exception as e:
        log.write("ERROR", str(e))
        raise http_error(e)
