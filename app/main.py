"""
FastAPI application entrypoint for the trial conversion dashboard.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_warehouse_client

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared warehouse session on shutdown."""
    yield
    if get_warehouse_client.cache_info().currsize:
        logger.info("Closing Snowflake connection.")
        await get_warehouse_client().close()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Trial Conversion Insights",
        version="0.1.0",
        description=(
            "Browse trial-to-paid conversion analyses, drill into organization "
            "usage and stream LLM meta-summaries."
        ),
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")

    # Mounted last so API routes take precedence.
    if STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="ui")
    return app


app = create_app()

__all__ = ["app", "create_app"]
