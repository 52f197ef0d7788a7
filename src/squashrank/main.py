# src/squashrank/main.py

"""Main FastAPI application for SquashRank."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from . import config
from .api import match, player
from .db.session import engine
from .exceptions import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    RatingEngineError,
    ResourceNotFoundError,
    SquashRankError,
    ValidationError,
)
from .middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    """Set the root log level; quiet the HTTP client's per-request logs."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown events."""
    configure_logging()
    if not config.BOT_TOKEN:
        logger.warning("BOT_TOKEN is not set; authenticated endpoints will fail")
    yield
    # Shutdown: Dispose of database connections gracefully
    await engine.dispose()


app = FastAPI(title="SquashRank API", lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Global Exception Handlers
# =============================================================================


# Client-facing errors: (HTTP status, log level). The first class found in
# an exception's MRO wins.
_CLIENT_ERRORS: dict[type[SquashRankError], tuple[int, int]] = {
    ResourceNotFoundError: (404, logging.WARNING),
    AuthenticationError: (401, logging.WARNING),
    PermissionDeniedError: (403, logging.WARNING),
    ConflictError: (409, logging.INFO),
    ValidationError: (422, logging.WARNING),
}


def _error_response(status_code: int, exc: SquashRankError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error_type": type(exc).__name__},
    )


@app.exception_handler(RatingEngineError)
async def rating_engine_error_handler(
    request: Request, exc: RatingEngineError
) -> JSONResponse:
    """Rating failures -> 500 without solver details."""
    logger.error(
        "Rating engine error: %s", exc.message, extra=exc.details, exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Rating calculation failed",
            "error_type": type(exc).__name__,
        },
    )


@app.exception_handler(SquashRankError)
async def squashrank_error_handler(
    request: Request, exc: SquashRankError
) -> JSONResponse:
    """Map domain errors to 404/401/403/409/422; anything unmapped is a 500."""
    for cls in type(exc).__mro__:
        if cls in _CLIENT_ERRORS:
            status_code, level = _CLIENT_ERRORS[cls]
            logger.log(
                level,
                "%s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                extra=exc.details,
            )
            return _error_response(status_code, exc)

    logger.error("SquashRank error: %s", exc.message, extra=exc.details, exc_info=True)
    return _error_response(500, exc)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    """Handle database integrity constraint violations."""
    error_msg = str(exc.orig) if exc.orig else str(exc)
    logger.warning("Database integrity error: %s", error_msg)

    if "UNIQUE constraint failed" in error_msg or "duplicate key" in error_msg:
        return JSONResponse(
            status_code=409,
            content={"detail": "Resource already exists with given unique field(s)"},
        )

    return JSONResponse(
        status_code=400,
        content={"detail": "Database constraint violation"},
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Catch-all for other SQLAlchemy database errors."""
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal database error occurred"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred"},
    )


app.include_router(player.router, prefix=config.API_PREFIX)
app.include_router(match.router, prefix=config.API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}
