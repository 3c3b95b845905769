"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scandelta import __version__
from scandelta.api.routers import admin, analysis, hosts, reports
from scandelta.core.config import get_settings
from scandelta.core.database import close_engine, init_db
from scandelta.core.errors import (
    ImportCancelled,
    MalformedScanFile,
    NotFoundError,
    ScanIOError,
    StorageError,
)
from scandelta.core.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    configure_logging()
    settings = get_settings()
    logger.info("Starting ScanDelta", debug=settings.app_debug, database=settings.database_url)

    await init_db()

    yield

    await close_engine()
    logger.info("ScanDelta stopped")


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(_request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(MalformedScanFile)
    async def malformed(_request: Request, exc: MalformedScanFile) -> JSONResponse:
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)

    @app.exception_handler(ScanIOError)
    async def unreadable(_request: Request, exc: ScanIOError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(ImportCancelled)
    async def cancelled(_request: Request, exc: ImportCancelled) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(StorageError)
    async def storage(_request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage error while serving request", error=str(exc))
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


def create_app() -> FastAPI:
    app = FastAPI(
        title="ScanDelta",
        description="Nessus scan ingestion, comparison and trend API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS (permissive for a local dashboard)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    api_prefix = "/api/v1"
    app.include_router(reports.router, prefix=api_prefix)
    app.include_router(hosts.router, prefix=api_prefix)
    app.include_router(analysis.router, prefix=api_prefix)
    app.include_router(admin.router, prefix=api_prefix)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
