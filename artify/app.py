"""
FastAPI application entry point for the Artify backend.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from artify.config import get_settings
from artify.db import DbClient
from artify.dependencies import get_db_client
from artify.error_handlers import register_error_handlers
from artify.routes import router

CORS_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization"]


def create_app(db: Optional[DbClient] = None) -> FastAPI:
    """
    Build the application. Passing ``db`` binds that client for every request
    instead of the settings-selected singleton.
    """
    settings = get_settings()
    app = FastAPI(title="Artify Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
        allow_credentials=False,
    )
    register_error_handlers(app)
    app.include_router(router)
    if db is not None:
        app.dependency_overrides[get_db_client] = lambda: db
    return app


app = create_app()
