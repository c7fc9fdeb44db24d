"""
CollabHub API Server

Entry point for the FastAPI application.
"""

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collabhub import __version__
from collabhub.api.v1 import router as api_v1_router
from collabhub.core.config import get_settings
from collabhub.core.database import create_engine, create_session_factory, init_db
from collabhub.core.logging import configure_logging
from collabhub.core.redis import close_redis
from collabhub.realtime import RealtimeHub
from collabhub.services.chat import SqlChatStore
from collabhub.services.notifications import SqlNotificationStore
from collabhub.services.projects import SqlProjectStore
from collabhub.services.users import SqlUserDirectory

log = structlog.get_logger()


def create_app(hub: Optional[RealtimeHub] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Without an explicit hub, one is wired to the SQL-backed stores on the
    configured database. Tests pass a hub built on in-memory fakes.
    """
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="CollabHub",
        description="Presence, project rooms and chat relay for student project teams.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["Content-Type", "Authorization"],
    )

    engine = None
    if hub is None:
        engine = create_engine(settings.database_url, echo=settings.debug)
        session_factory = create_session_factory(engine)
        projects = SqlProjectStore(session_factory)
        hub = RealtimeHub(
            authorization=projects,
            projects=projects,
            chats=SqlChatStore(session_factory),
            notifications=SqlNotificationStore(session_factory),
            users=SqlUserDirectory(session_factory),
            max_message_length=settings.max_message_length,
        )
    app.state.hub = hub

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("collabhub.starting", version=__version__, debug=settings.debug)
        if engine is not None and settings.debug:
            await init_db(engine)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("collabhub.shutting_down", online=len(hub.registry))
        await close_redis()
        if engine is not None:
            await engine.dispose()

    return app


app = create_app()
