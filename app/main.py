from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router
from app.realtime import router as realtime_router
from logging_config import configure_logging
from services.bridge import build_default_bridge
from settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    bridge = build_default_bridge()
    await bridge.start()
    try:
        yield
    finally:
        await bridge.stop()
        build_default_bridge.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(
        title="Plant Monitor Bridge",
        description="Relays plant sensor readings from MQTT to live dashboards and storage.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST"],
    )
    app.include_router(router)
    app.include_router(realtime_router)
    return app

app = create_app()
