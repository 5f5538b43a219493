"""Main FastAPI application."""

import uuid
from contextlib import asynccontextmanager

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from devicelab import __version__
from devicelab.api.v1 import api_router
from devicelab.config import ConfigurationError, settings
from devicelab.core.logging_config import configure_logging
from devicelab.db.session import create_tables, engine
from devicelab.services.storage_service import storage_service

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the test run table and the storage bucket, dispose the engine on shutdown."""
    logger.info(
        "Starting devicelab API server",
        environment=settings.ENVIRONMENT,
        project_id=settings.GCP_PROJECT_ID,
    )

    try:
        await create_tables()
    except SQLAlchemyError as e:
        logger.error("Failed to prepare test run store", error=str(e))
        raise

    try:
        await storage_service.ensure_bucket_exists()
    except Exception as e:
        logger.error("Failed to prepare storage bucket", bucket=storage_service.bucket, error=str(e))
        raise
    logger.info("Ready", storage_root=storage_service.root.uri)

    yield

    logger.info("Shutting down devicelab API server")
    await engine.dispose()


app = FastAPI(
    title="devicelab API",
    version=__version__,
    description="Runs the instrumentation tests of CI artifacts on remote devices",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Bind the caller's X-Request-ID (or a fresh one) to the logs and echo it back."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Invalid request", errors=exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    logger.error("Invalid configuration", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(httpx.HTTPStatusError)
async def upstream_exception_handler(request: Request, exc: httpx.HTTPStatusError):
    """Errors returned by the test lab, tool results or GitHub APIs."""
    logger.error(
        "Upstream service error",
        upstream_url=str(exc.request.url),
        upstream_status=exc.response.status_code,
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": f"Upstream service returned {exc.response.status_code}"},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Test run store error", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Test run store unavailable"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception", error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


app.include_router(api_router, prefix="/api/v1")


@app.get("/", status_code=status.HTTP_200_OK)
async def root():
    """Root endpoint."""
    return {
        "name": "devicelab API",
        "version": __version__,
        "docs": "/docs",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "devicelab.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
