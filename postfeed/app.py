"""
FastAPI application entry point for the feed backend.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from postfeed.config import get_settings
from postfeed.dependencies import build_broadcaster
from postfeed.errors import register_error_handlers
from postfeed.graphql_api import create_graphql_router
from postfeed.realtime import RedisBroadcaster, get_broadcaster, init_broadcaster
from postfeed.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    broadcaster = get_broadcaster()
    listener = None
    if isinstance(broadcaster, RedisBroadcaster):
        listener = asyncio.create_task(broadcaster.listen())
        logger.info("Relaying realtime events from Redis channel %s", broadcaster.channel)
    try:
        yield
    finally:
        if listener:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Realtime listener stopped with an error")
            finally:
                await broadcaster.close()


def create_app() -> FastAPI:
    settings = get_settings()
    init_broadcaster(build_broadcaster(settings))

    app = FastAPI(title="Postfeed Backend (FastAPI)", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(create_graphql_router(), prefix=f"{settings.api_prefix}/graphql")
    if not settings.s3_bucket and not settings.use_in_memory_backends:
        app.mount(
            "/images",
            StaticFiles(directory=settings.images_dir, check_dir=False),
            name="images",
        )
    return app


app = create_app()
