"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance with its own broadcast hub, query cache, and media host on
app.state. Lifespan handles startup/shutdown. Middleware, CORS, and
routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vitrine import __version__
from vitrine.api import api_router
from vitrine.config import Settings, settings as default_settings
from vitrine.db.engine import dispose_engine
from vitrine.realtime.hub import BroadcastHub
from vitrine.services.cache import QueryCache
from vitrine.services.media import CloudinaryMediaHost

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. Realtime clients are dropped first so no writer task outlives
    the app.
    """
    config: Settings = app.state.settings
    logger.info(
        "vitrine.starting",
        version=__version__,
        environment=config.environment,
        port=config.port,
        cache_enabled=app.state.cache is not None,
    )
    if not app.state.media.configured:
        logger.warning("vitrine.media_unconfigured")

    yield

    logger.info("vitrine.shutdown")

    await app.state.hub.close_all()
    await app.state.media.aclose()
    await dispose_engine()


def create_app(config: Settings = default_settings) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Vitrine",
        description="Product catalog API with realtime updates",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Shared state (one per app) ─────────────────────────
    app.state.settings = config
    app.state.hub = BroadcastHub()
    app.state.cache = (
        QueryCache(
            ttl_seconds=config.cache_ttl_seconds,
            max_entries=config.cache_max_entries,
        )
        if config.cache_enabled
        else None
    )
    app.state.media = CloudinaryMediaHost(
        cloud_name=config.cloudinary_cloud_name,
        api_key=config.cloudinary_api_key,
        api_secret=config.cloudinary_api_secret,
        folder=config.cloudinary_folder,
        timeout=config.media_timeout_seconds,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → Security → handler

    from vitrine.middleware.request_id import RequestIdMiddleware
    from vitrine.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from vitrine.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: vitrine.main:app)
app = create_app()
