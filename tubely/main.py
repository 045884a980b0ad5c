from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from tubely.api.v1 import get_api_router
from tubely.core.config import get_settings
from tubely.core.db import create_engine, create_session_factory
from tubely.core.logging import configure_logging, get_logger, level_from_name
from tubely.core.storage import get_object_store
from tubely.ingest.pipeline import build_pipeline


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    store = get_object_store(settings)
    pipeline = build_pipeline(settings, store)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    logger = get_logger(component="app")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.store = store
        app.state.pipeline = pipeline
        app.state.engine = engine
        app.state.session_factory = session_factory
        logger.info(
            "app_started",
            environment=settings.environment,
            storage_backend=settings.storage_backend,
            scratch_dir=str(settings.scratch_dir),
        )
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    return app


__all__ = ["create_app"]
