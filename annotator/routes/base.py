from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from ..db import Database
from ..errors import (
    AnnotatorError,
    ConflictError,
    InvalidReferenceError,
    MigrationError,
    PayloadTooLargeError,
    RangeError,
    ValidationError,
)

logger = logging.getLogger(__name__)

APP_NAME = "image-annotator-api"
APP_VERSION = "0.1.0"

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/version")
def version():
    return {"app": APP_NAME, "version": APP_VERSION}


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_config(request: Request) -> dict:
    return request.app.state.config


def current_user(request: Request) -> str:
    return (request.headers.get("x-user-email") or "").strip() or "anonymous"


def http_error(e: Exception) -> HTTPException:
    """Translate an application error into the matching HTTP status."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, PayloadTooLargeError):
        return HTTPException(status_code=413, detail=str(e))
    if isinstance(e, (ValidationError, RangeError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, InvalidReferenceError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConflictError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, MigrationError):
        logger.error("migration error: %s", e)
        return HTTPException(status_code=500, detail=str(e))
    if isinstance(e, AnnotatorError):
        logger.error("store error: %s", e)
        return HTTPException(status_code=500, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.exception("unexpected error", exc_info=e)
    return HTTPException(status_code=500, detail=str(e))
