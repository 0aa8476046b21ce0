"""
FastAPI application factory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..broker import InMemoryBroker, MessageBroker
from ..config import Settings, settings as default_settings, setup_logging
from ..database import DatabaseProvider, MigrationManager, create_database_provider
from ..services import GraphStore, PipelineOrchestrator, ServiceError
from ..worker import ProcessorConfig
from .routes import router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    db_provider: Optional[DatabaseProvider] = None,
    broker: Optional[MessageBroker] = None,
) -> FastAPI:
    """
    Build the application with its store, orchestrator and broker.

    Startup connects the database and applies migrations; shutdown stops
    every running pipeline before disconnecting.
    """
    settings = settings or default_settings
    setup_logging(settings)

    db = db_provider or create_database_provider(settings.DATABASE_URL)
    broker = broker or InMemoryBroker()
    store = GraphStore(db, settings)
    orchestrator = PipelineOrchestrator(store, broker, ProcessorConfig.from_settings(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.PROJECT_NAME} {settings.VERSION}")
        if not await db.connect():
            raise RuntimeError(f"Could not connect to database {settings.DATABASE_URL}")
        applied = await MigrationManager(db).apply_migrations()
        if applied:
            logger.info(f"Applied migrations: {', '.join(applied)}")

        yield

        logger.info(f"Shutting down {settings.PROJECT_NAME}")
        await orchestrator.shutdown()
        await broker.close()
        await db.disconnect()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.DESCRIPTION,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.broker = broker
    app.state.store = store
    app.state.orchestrator = orchestrator

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"message": "Request validation failed", "details": details},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed unexpectedly: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error", "details": {"error": type(exc).__name__}},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok" if await db.is_healthy() else "degraded"}

    app.include_router(router, prefix=settings.API_PREFIX)
    return app
