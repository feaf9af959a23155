"""
FastAPI app entry point aggregating per-domain routers under annotator/routes.
Keep as `uvicorn annotator.api:app`.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import Database
from .migrations import run_migrations
from .routes import annotations as annotations_routes
from .routes import base as base_routes
from .routes import images as images_routes
from .routes import labels as labels_routes
from .routes import logs as logs_routes
from .routes import maintenance as maintenance_routes
from .routes import transfer as transfer_routes
from .services.config_svc import get_config

logger = logging.getLogger(__name__)


def create_app(db: Database | None = None, config: dict | None = None) -> FastAPI:
    app = FastAPI(title=base_routes.APP_NAME, version=base_routes.APP_VERSION)
    app.state.db = db if db is not None else Database()
    app.state.config = {**get_config(), **(config or {})}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app.state.config["cors_origins"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup():
        result = run_migrations(app.state.db)
        if result.applied:
            logger.info("applied %d migration(s) at startup", len(result.applied))

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.db.close()

    # Include routers (split by resource)
    app.include_router(base_routes.router)
    app.include_router(images_routes.router)
    app.include_router(labels_routes.router)
    app.include_router(annotations_routes.router)
    app.include_router(transfer_routes.router)
    app.include_router(maintenance_routes.router)
    app.include_router(logs_routes.router)
    return app


app = create_app()
