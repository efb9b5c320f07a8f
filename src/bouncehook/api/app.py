"""FastAPI application instance."""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bouncehook.api.routes import bounces
from bouncehook.core.config import Settings, get_settings
from bouncehook.db import models
from bouncehook.db.session import make_engine, make_session_factory
from bouncehook.services.bounce_store import BounceStore
from bouncehook.services.webhooks import build_adapters
from bouncehook.utils.logger import configure_logging


def create_app(settings: Settings | None = None, store: BounceStore | None = None) -> FastAPI:
    """Build the application from one immutable settings object.

    Passing ``store`` skips creating a database engine, which tests use to
    plug in their own storage.
    """

    settings = settings or get_settings()
    engine = None
    if store is None:
        engine = make_engine(settings.database_url)
        store = BounceStore(make_session_factory(engine))

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover - startup hook
        configure_logging(settings)
        if engine is not None:
            # Ensure tables exist for local development.
            models.Base.metadata.create_all(bind=engine)
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.bounce_adapters = build_adapters(settings)
    app.state.bounce_store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(bounces.webhook_router)
    app.include_router(bounces.router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        """Simple uptime check."""

        return {"status": "ok"}

    return app


app = create_app()
