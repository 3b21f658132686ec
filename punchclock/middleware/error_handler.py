"""Structured error responses."""
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import structlog
from .correlation import get_correlation_id
from ..adapters.base import StoreError

log = structlog.get_logger()


def error_body(request: Request, error: str, message: str) -> dict:
    return {
        "error": error,
        "message": message,
        "correlation_id": get_correlation_id(),
        "path": str(request.url.path),
    }


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """A punch that could not be persisted is a failed submission."""
    log.error("store.failure", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=503,
        content=error_body(request, "StoreUnavailable", "The record could not be persisted"),
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns unhandled exceptions into structured 500 responses."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            log.error(
                "unhandled.exception",
                error=str(exc),
                error_type=exc.__class__.__name__,
                path=request.url.path,
                exc_info=True
            )
            return JSONResponse(
                status_code=500,
                content=error_body(request, "InternalServerError", "An unexpected error occurred"),
            )
