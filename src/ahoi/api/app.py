"""ASGI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from anyio import to_thread
from fastapi import FastAPI

from ahoi import __version__
from ahoi.api.cors import AllowListCORSMiddleware
from ahoi.api.errors import register_error_handlers
from ahoi.api.routes import auth, notifications, records, storage, users
from ahoi.core.engine import Ahoi

logger = logging.getLogger(__name__)

API_PREFIX = "/ahoi/v1"
APP_TITLE = "Ahoi API"
APP_DESCRIPTION = "Automatic REST CRUD over administrator-defined structures"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    ahoi: Ahoi = app.state.ahoi
    logger.info(f"Serving {API_PREFIX} for structures: {', '.join(ahoi.schema.list_slugs()) or '(none)'}")
    yield
    await to_thread.run_sync(ahoi.worker.drain)
    logger.info("Shutdown complete")


def create_app(ahoi: Ahoi) -> FastAPI:
    """Create and configure the FastAPI application around one service container."""
    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.ahoi = ahoi

    app.add_middleware(AllowListCORSMiddleware, allowed_origins=ahoi.settings.allowed_origin_list)

    # Static routes first; the catch-all structure routes must come last
    app.include_router(auth.router, prefix=API_PREFIX)
    app.include_router(users.router, prefix=API_PREFIX)
    app.include_router(storage.router, prefix=API_PREFIX)
    app.include_router(notifications.router, prefix=API_PREFIX)
    app.include_router(records.router, prefix=API_PREFIX)

    register_error_handlers(app)
    return app
