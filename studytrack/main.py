from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from studytrack.api.envelope import failure
from studytrack.api.health import router as health_router
from studytrack.api.metrics_endpoint import router as metrics_router
from studytrack.api.progress import router as progress_router
from studytrack.api.taxonomy import router as taxonomy_router
from studytrack.core.config import SETTINGS
from studytrack.core.errors import AuthError, ProgressError
from studytrack.core.logging import setup_logging
from studytrack.db.engine import lifespan_db
from studytrack.middleware.metrics import MetricsMiddleware
from studytrack.middleware.request_context import (
    RequestContextMiddleware,
    install_request_id_filter,
)

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_id_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        yield


app = FastAPI(
    title="studytrack",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# last added runs first: RequestContext → Metrics → route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(ProgressError)
async def progress_error_handler(request: Request, exc: ProgressError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s status=%d method=%s path=%s",
            type(exc).__name__,
            exc.status_code,
            request.method,
            request.url.path,
            exc_info=exc,
        )
    else:
        logger.warning(
            "%s status=%d method=%s path=%s message=%s",
            type(exc).__name__,
            exc.status_code,
            request.method,
            request.url.path,
            exc.message,
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=failure(exc.message), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(
        "Request validation failed method=%s path=%s errors=%s",
        request.method,
        request.url.path,
        exc.errors(),
    )
    return JSONResponse(status_code=400, content=failure("Invalid request", jsonable_encoder(exc.errors())))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=failure("Internal Server Error"))


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(progress_router)
app.include_router(taxonomy_router)

logger.info(
    "studytrack started  env=%s log_level=%s port=%d docs=%s db=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "postgres" if SETTINGS.database_url else "memory",
)
