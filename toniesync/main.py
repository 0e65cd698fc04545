"""
ASGI entrypoint: ``uvicorn toniesync.main:app``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from toniesync import __version__
from toniesync.api.routes import router as api_router
from toniesync.core.config import get_settings
from toniesync.core.logging import configure_logging
from toniesync.dependencies import close_clients

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_clients()
    logger.info("Closed Tonie Cloud and adapter HTTP clients")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        "Starting Tonie Sync",
        extra={"environment": settings.environment, "sync_backend": settings.sync.backend},
    )

    app = FastAPI(
        title="Tonie Sync",
        version=__version__,
        description="Link Tonie Cloud accounts and sync household audio to Creative Tonies.",
        lifespan=_lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
