"""
FastAPI application entry point for the conference service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from confdesk.config import get_settings
from confdesk.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=f"{settings.conference_name} Conference Desk", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
