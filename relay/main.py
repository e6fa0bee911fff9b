from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from logging_config import configure_logging
from relay.api import router
from relay.web import router as web_router
from services.camera import build_default_camera
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    camera = build_default_camera()
    settings = get_settings()
    logger.info(
        "Relay started",
        extra={
            "url": settings.camera_capture_url,
            "captures_root": settings.captures_root_path,
        },
    )
    try:
        yield
    finally:
        await camera.aclose()
        build_default_camera.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Plant Relay",
        description="Relays ESP32 moisture readings and camera captures to the dashboard.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(web_router)
    return app


def run() -> None:
    """Console entry point: serve the relay with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(), host=settings.host, port=settings.port, log_config=None)


app = create_app()
