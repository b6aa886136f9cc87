"""FastAPI entrypoint: middleware, error handlers, routers and the health probe."""

import time
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from fintrack import __version__
from fintrack.config import settings
from fintrack.database import init_db
from fintrack.deps import DbSession
from fintrack.logger import configure_logging, get_logger
from fintrack.routers import duplicates, reconciliation, sync
from fintrack.services.errors import LedgerWriteFailure

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await init_db()
    logger.info(
        "Fintrack backend started",
        version=__version__,
        environment=settings.environment,
        oracle_enabled=settings.oracle_enabled,
    )
    yield
    logger.info("Fintrack backend stopping")


app = FastAPI(
    title="Fintrack API",
    description="Duplicate detection and reconciliation of scraped personal finance records",
    version=__version__,
    lifespan=lifespan,
)


def _current_request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("request_id")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next: Any) -> Response:
    """Bind a request id (caller-supplied or fresh) to every log line of the request and echo it back."""
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)

    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception(
            "Request failed",
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            error=str(exc),
        )
        raise

    logger.info(
        "Request handled",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(LedgerWriteFailure)
async def ledger_write_failure_handler(request: Request, exc: LedgerWriteFailure) -> JSONResponse:
    # Only /sync/log surfaces this; reconcile batches log and carry on
    logger.error("Sync ledger write failed", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Sync ledger is temporarily unavailable", "request_id": _current_request_id()},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Always answer JSON; internals are only exposed with DEBUG on."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": str(exc) if settings.debug else "An internal server error occurred. Please try again later.",
            "trace": traceback.format_exc() if settings.debug else None,
            "request_id": _current_request_id(),
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
)

for module in (reconciliation, sync, duplicates):
    app.include_router(module.router)


@app.get("/health")
async def health_check(db: DbSession) -> Response:
    """Database connectivity plus whether semantic checks are configured; 503 without a database."""
    checks: dict[str, bool] = {"oracle_configured": settings.oracle_enabled}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as exc:
        logger.error("Health check could not reach the database", error=str(exc), error_type=type(exc).__name__)
        checks["database"] = False

    healthy = checks["database"]
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": checks,
        },
    )
